"""Content hashing and URL/content deduplication for captured pages."""

import hashlib
from dataclasses import dataclass
from typing import Literal, Optional
from urllib.parse import urlparse

from models import RecordDB


@dataclass
class IngestDecision:
    outcome: Literal["created", "updated", "duplicate"]
    record: Optional[RecordDB] = None
    similar_url: Optional[str] = None
    message: Optional[str] = None


def text_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def domain_of(url: str, fallback: str = "") -> str:
    """Hostname of ``url``, or ``fallback`` if it has none."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return fallback
    return host or fallback


def decide(existing_by_url: Optional[RecordDB], existing_by_hash: Optional[RecordDB], new_hash: str) -> IngestDecision:
    """
    Decide what to do with a captured page.

    Same URL + same content is a duplicate, same URL + new content is an
    update, and the same content under another URL is a duplicate that
    points at the earlier URL.
    """
    if existing_by_url is not None:
        if existing_by_url.text_hash == new_hash:
            return IngestDecision("duplicate", existing_by_url, message="Page already captured, content unchanged")
        return IngestDecision("updated", existing_by_url, message="Page content updated")

    if existing_by_hash is not None:
        return IngestDecision(
            "duplicate",
            existing_by_hash,
            similar_url=existing_by_hash.url,
            message="Similar content already captured",
        )

    return IngestDecision("created")
