"""
Local-only JSON file store used by the client when the server is unreachable.

Records are kept in the shape the client saved them in (legacy or canonical)
so that a later migration sends exactly what the user typed. The store cannot
obtain server identifiers, so it assigns its own id and save timestamp.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional
import json
import logging
import uuid

from recetas.core.config import get_settings
from recetas.domain.fields import canonicalize, uses_legacy_shape

logger = logging.getLogger(__name__)


def _saved_at(record: Mapping[str, Any]) -> str:
    return str(record.get("fechaGuardado") or record.get("created_at") or "")


class LocalPrescriptionStore:
    """List of raw prescription records persisted to one JSON file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or get_settings().local_store_file)

    def load(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as exc:
            logger.warning("Unreadable local prescriptions file %s, treating it as empty: %s", self.path, exc)
            return []
        return data if isinstance(data, list) else []

    def save(self, records: list[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")

    def all(self, limit: Optional[int] = None, offset: int = 0) -> list[dict]:
        records = sorted(self.load(), key=_saved_at, reverse=True)
        end = None if limit is None else offset + limit
        return records[offset:end]

    def get(self, record_id: str) -> Optional[dict]:
        for record in self.load():
            if record.get("id") == record_id:
                return record
        return None

    def search(self, term: str, limit: Optional[int] = None) -> list[dict]:
        needle = (term or "").lower()
        matches = []
        for record in self.all():
            data = canonicalize(record)
            haystack = (data["patient_name"], data["owner_name"], data["notes"])
            if any(needle in str(value).lower() for value in haystack if value):
                matches.append(record)
        return matches if limit is None else matches[:limit]

    def add(self, record: Mapping[str, Any]) -> dict:
        entry = dict(record)
        entry["id"] = str(uuid.uuid4())
        saved_key = "fechaGuardado" if uses_legacy_shape(record) else "created_at"
        entry[saved_key] = datetime.now(timezone.utc).isoformat()
        records = self.load()
        records.append(entry)
        self.save(records)
        return entry

    def delete(self, record_id: str) -> bool:
        records = self.load()
        remaining = [r for r in records if r.get("id") != record_id]
        if len(remaining) == len(records):
            return False
        self.save(remaining)
        return True

    def count(self) -> int:
        return len(self.load())

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
