from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel


class MediaRecord(BaseModel):
    id: int
    file_path: str
    mime: str = "image/png"
    width: int = 0
    height: int = 0
    source_type: Optional[str] = None
    source_url: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str = ""


class SectionRecord(BaseModel):
    id: int
    page_id: int
    order: int
    image_id: Optional[int] = None


class HistoryRecord(BaseModel):
    """Immutable fact: an image was replaced. External undo tooling replays these."""

    id: int
    section_id: Optional[int] = None
    previous_image_id: Optional[int] = None
    new_image_id: int
    action_type: str
    prompt: Optional[str] = None
    user_id: Optional[str] = None
    detail: Dict[str, Any] = {}
    created_at: str = ""


class SectionRepository(Protocol):
    def get_media(self, media_id: int) -> Optional[MediaRecord]: ...

    def list_media(self, predicate: Optional[Callable[[MediaRecord], bool]] = None) -> List[MediaRecord]: ...

    def create_media(self, **fields: Any) -> MediaRecord: ...

    def update_media_path(self, media_id: int, file_path: str) -> MediaRecord: ...

    def get_section(self, section_id: int) -> Optional[SectionRecord]: ...

    def list_page_sections(self, page_id: int) -> List[SectionRecord]: ...

    def set_section_image(self, section_id: int, image_id: int) -> SectionRecord: ...

    def append_history(self, **fields: Any) -> HistoryRecord: ...


def _now() -> str:
    return datetime.now().isoformat()


class JsonSectionRepository:
    """Records kept in a single JSON document.

    Layout:
    {"media": [...], "sections": [...], "history": [...]}

    History rows are only ever appended.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()
        self._doc: Optional[Dict[str, List[Dict[str, Any]]]] = None

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        if self._doc is None:
            if self.path.exists():
                payload = json.loads(self.path.read_text(encoding="utf-8"))
            else:
                payload = {}
            self._doc = {key: list(payload.get(key, [])) for key in ("media", "sections", "history")}
        return self._doc

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._load(), indent=2), encoding="utf-8")

    def _next_id(self, table: str) -> int:
        rows = self._load()[table]
        return max((row["id"] for row in rows), default=0) + 1

    def _find(self, table: str, row_id: int) -> Optional[Dict[str, Any]]:
        return next((row for row in self._load()[table] if row["id"] == row_id), None)

    # media

    def get_media(self, media_id: int) -> Optional[MediaRecord]:
        with self._lock:
            row = self._find("media", media_id)
            return MediaRecord(**row) if row else None

    def list_media(self, predicate: Optional[Callable[[MediaRecord], bool]] = None) -> List[MediaRecord]:
        with self._lock:
            records = [MediaRecord(**row) for row in self._load()["media"]]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def create_media(self, **fields: Any) -> MediaRecord:
        with self._lock:
            record = MediaRecord(id=self._next_id("media"), created_at=_now(), **fields)
            self._load()["media"].append(record.model_dump())
            self._save()
            return record

    def update_media_path(self, media_id: int, file_path: str) -> MediaRecord:
        with self._lock:
            row = self._find("media", media_id)
            if row is None:
                raise KeyError(f"media {media_id} not found")
            row["file_path"] = file_path
            self._save()
            return MediaRecord(**row)

    # sections

    def add_section(self, page_id: int, order: int, image_id: Optional[int] = None) -> SectionRecord:
        with self._lock:
            record = SectionRecord(id=self._next_id("sections"), page_id=page_id, order=order, image_id=image_id)
            self._load()["sections"].append(record.model_dump())
            self._save()
            return record

    def get_section(self, section_id: int) -> Optional[SectionRecord]:
        with self._lock:
            row = self._find("sections", section_id)
            return SectionRecord(**row) if row else None

    def list_page_sections(self, page_id: int) -> List[SectionRecord]:
        with self._lock:
            rows = [SectionRecord(**row) for row in self._load()["sections"] if row["page_id"] == page_id]
        return sorted(rows, key=lambda s: s.order)

    def set_section_image(self, section_id: int, image_id: int) -> SectionRecord:
        with self._lock:
            row = self._find("sections", section_id)
            if row is None:
                raise KeyError(f"section {section_id} not found")
            row["image_id"] = image_id
            self._save()
            return SectionRecord(**row)

    # history

    def append_history(self, **fields: Any) -> HistoryRecord:
        with self._lock:
            record = HistoryRecord(id=self._next_id("history"), created_at=_now(), **fields)
            self._load()["history"].append(record.model_dump())
            self._save()
            return record

    def history(self, section_id: Optional[int] = None) -> List[HistoryRecord]:
        with self._lock:
            rows = [HistoryRecord(**row) for row in self._load()["history"]]
        if section_id is not None:
            rows = [r for r in rows if r.section_id == section_id]
        return rows
