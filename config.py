"""Configuration for the StudyTrace API."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(override=False)

# OpenAI-compatible chat endpoints
LLM_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com",
    "moonshot": "https://api.moonshot.cn/v1",
}


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """
    Runtime settings.

    Every field is overridable at construction for testing; anything left
    as None is read from the environment.
    """
    database_url: Optional[str] = None
    cors_allow_origin: Optional[str] = None
    llm_provider: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None
    max_input_chars: Optional[int] = None
    request_timeout_s: Optional[float] = None
    log_level: Optional[str] = None
    port: Optional[int] = None
    preview_chars: int = 500
    due_scan_limit: int = 1000

    def __post_init__(self):
        if self.database_url is None:
            default_db = Path(__file__).resolve().parent / "studytrace.db"
            self.database_url = os.environ.get("DATABASE_URL", f"sqlite:///{default_db}")

        if self.cors_allow_origin is None:
            self.cors_allow_origin = os.environ.get("CORS_ALLOW_ORIGIN", "*")

        if self.llm_provider is None:
            self.llm_provider = os.environ.get("LLM_PROVIDER", "openai")
        if self.llm_api_key is None:
            self.llm_api_key = os.environ.get("LLM_API_KEY", "")
        if self.llm_model is None:
            self.llm_model = os.environ.get("LLM_MODEL", "gpt-3.5-turbo")

        if self.max_input_chars is None:
            self.max_input_chars = _env_int("MAX_INPUT_CHARS", 12000)
        if self.request_timeout_s is None:
            self.request_timeout_s = _env_int("REQUEST_TIMEOUT_MS", 20000) / 1000

        if self.port is None:
            self.port = _env_int("PORT", 8000)

        if self.log_level is None:
            self.log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    @property
    def llm_base_url(self) -> str:
        return LLM_BASE_URLS.get(self.llm_provider, LLM_BASE_URLS["openai"])


@lru_cache
def get_settings() -> Settings:
    return Settings()
