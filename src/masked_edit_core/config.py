"""Runtime settings read from the environment (and a `.env` file when present)."""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from .broker import FALLBACK_IMAGE_MODEL, PRIMARY_IMAGE_MODEL, GenerativeEditBroker
from .genai_client import GenaiTransport
from .types import RetryPolicy
from .utils.records import JsonSectionRepository
from .utils.storage import LocalObjectStorage, ObjectStorage, SupabaseStorage

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


class Settings(BaseModel):
    google_api_key: Optional[str] = None
    primary_model: str = PRIMARY_IMAGE_MODEL
    fallback_model: Optional[str] = FALLBACK_IMAGE_MODEL
    max_attempts: int = 3
    backoff_base_ms: int = 4000
    section_stagger_ms: int = 500
    max_concurrent_sections: int = 3
    storage_bucket: str = "images"
    storage_dir: str = "data/storage"
    records_path: str = "data/records.json"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    log_level: str = "INFO"

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, backoff_base_ms=self.backoff_base_ms)

    @property
    def has_api_key(self) -> bool:
        return bool(self.google_api_key)


_ENV_FIELDS = {
    "GOOGLE_API_KEY": "google_api_key",
    "MEC_PRIMARY_MODEL": "primary_model",
    "MEC_FALLBACK_MODEL": "fallback_model",
    "MEC_MAX_ATTEMPTS": "max_attempts",
    "MEC_BACKOFF_BASE_MS": "backoff_base_ms",
    "MEC_SECTION_STAGGER_MS": "section_stagger_ms",
    "MEC_MAX_CONCURRENT_SECTIONS": "max_concurrent_sections",
    "MEC_STORAGE_BUCKET": "storage_bucket",
    "MEC_STORAGE_DIR": "storage_dir",
    "MEC_RECORDS_PATH": "records_path",
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_SERVICE_ROLE_KEY": "supabase_key",
    "MEC_LOG_LEVEL": "log_level",
}


def load_settings(dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()
    values = {field: os.environ[var] for var, field in _ENV_FIELDS.items() if os.environ.get(var)}
    return Settings(**values)


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_storage(settings: Settings) -> ObjectStorage:
    if settings.supabase_url and settings.supabase_key:
        return SupabaseStorage(settings.supabase_url, settings.supabase_key)
    return LocalObjectStorage(settings.storage_dir)


def build_repository(settings: Settings) -> JsonSectionRepository:
    return JsonSectionRepository(settings.records_path)


def build_broker(settings: Settings) -> GenerativeEditBroker:
    return GenerativeEditBroker(
        GenaiTransport(api_key=settings.google_api_key),
        primary_model=settings.primary_model,
        fallback_model=settings.fallback_model,
        policy=settings.retry_policy(),
    )
