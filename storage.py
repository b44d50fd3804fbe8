"""Database access for records, cards and plans."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ingest import domain_of
from models import CardDB, PlanDB, RecordDB, ReviewHistory, to_db_time
from spaced_rep import advance, initialize

logger = logging.getLogger("studytrace.storage")

RELATED_RECORD_REASON = "You studied similar content on this site before"


# --- Records ---

def get_records(db: Session, limit: int = 20) -> list[RecordDB]:
    return db.query(RecordDB).order_by(RecordDB.captured_at.desc(), RecordDB.id.desc()).limit(limit).all()


def get_record_by_id(db: Session, record_id: int) -> Optional[RecordDB]:
    return db.query(RecordDB).filter(RecordDB.id == record_id).first()


def get_record_by_url(db: Session, url: str) -> Optional[RecordDB]:
    return db.query(RecordDB).filter(RecordDB.url == url).first()


def get_record_by_hash(db: Session, text_hash: str) -> Optional[RecordDB]:
    return db.query(RecordDB).filter(RecordDB.text_hash == text_hash).first()


def add_record(db: Session, record: RecordDB) -> RecordDB:
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def update_record(db: Session, record: RecordDB, **updates) -> RecordDB:
    for key, value in updates.items():
        setattr(record, key, value)
    db.commit()
    db.refresh(record)
    return record


def get_related_records(db: Session, url: str, limit: int = 5) -> list[dict]:
    """Other captured pages from the same site."""
    domain = domain_of(url)
    if not domain:
        return []

    records = (
        db.query(RecordDB)
        .filter(RecordDB.domain == domain, RecordDB.url != url)
        .order_by(RecordDB.captured_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {"record_id": r.id, "title": r.title, "reason": RELATED_RECORD_REASON}
        for r in records
    ]


# --- Cards ---

def get_cards(db: Session, limit: int = 20) -> list[CardDB]:
    """Newest cards first, at most ``limit`` of them."""
    return db.query(CardDB).order_by(CardDB.created_at.desc(), CardDB.id.desc()).limit(limit).all()


def get_card_by_id(db: Session, card_id: int) -> Optional[CardDB]:
    return db.query(CardDB).filter(CardDB.id == card_id).first()


def add_card(db: Session, card: CardDB, now: Optional[datetime] = None) -> CardDB:
    """Store a new card with a freshly initialized review state."""
    card.apply_review_state(initialize(now))
    db.add(card)
    db.commit()
    db.refresh(card)
    return card


def update_card(db: Session, card: CardDB, **updates) -> CardDB:
    for key, value in updates.items():
        setattr(card, key, value)
    db.commit()
    db.refresh(card)
    return card


def delete_card(db: Session, card_id: int) -> bool:
    card = get_card_by_id(db, card_id)
    if card is None:
        return False
    db.delete(card)
    db.commit()
    return True


def record_review(db: Session, card_id: int, quality: int, now: Optional[datetime] = None) -> Optional[CardDB]:
    """
    Apply a review to a card and persist the new state in one transaction.

    The card row is locked while the new state is computed, so concurrent
    reviews of the same card are applied one after the other on backends
    that support row locks.
    """
    card = db.query(CardDB).filter(CardDB.id == card_id).with_for_update().first()
    if card is None:
        return None

    current = card.review_state or initialize(now)
    state = advance(current, quality, now)
    card.apply_review_state(state)

    db.add(ReviewHistory(
        card_id=card.id,
        quality=quality,
        reviewed_at=to_db_time(state.last_reviewed_at),
        interval=state.interval,
        ease_factor=state.ease_factor,
    ))
    db.commit()
    db.refresh(card)

    logger.debug("Card %s reviewed (quality=%s): next in %s days", card.id, quality, state.interval)
    return card


def get_related_cards(db: Session, card_id: int, limit: int = 5) -> list[CardDB]:
    """Cards from other records sharing at least one tag with this card's record."""
    card = get_card_by_id(db, card_id)
    if card is None or card.record is None:
        return []

    tags = set(card.record.tags or [])
    if not tags:
        return []

    related_record_ids = [
        r.id for r in db.query(RecordDB).filter(RecordDB.id != card.record_id).all()
        if tags.intersection(r.tags or [])
    ]
    if not related_record_ids:
        return []

    return (
        db.query(CardDB)
        .filter(CardDB.record_id.in_(related_record_ids), CardDB.id != card_id)
        .order_by(CardDB.created_at.desc())
        .limit(limit)
        .all()
    )


# --- Plans ---

def add_plan(db: Session, plan: PlanDB) -> PlanDB:
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


def get_plans(db: Session, limit: int = 20) -> list[PlanDB]:
    return db.query(PlanDB).order_by(PlanDB.created_at.desc(), PlanDB.id.desc()).limit(limit).all()
