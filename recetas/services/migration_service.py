"""Best-effort batch import of raw records into the prescription store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional

from recetas.core.errors import PartialBatchError, RecetaError
from recetas.domain.fields import canonicalize, to_wire, uses_legacy_shape
from recetas.domain.validation import validate_prescription
from recetas.repositories.prescription_repository import PrescriptionRepository

logger = logging.getLogger(__name__)

IMPORT_NOTE = "Imported from local storage on {day}"


def _describe(exc: RecetaError) -> str:
    details = exc.details if isinstance(exc.details, list) else []
    messages = [d.get("message") for d in details if isinstance(d, dict) and d.get("message")]
    return f"{exc.message}: {'; '.join(messages)}" if messages else exc.message


@dataclass
class ImportFailure:
    index: int
    error: str
    original: Any

    def to_dict(self) -> dict:
        return {"index": self.index, "error": self.error, "data": self.original}


@dataclass
class BulkImportResult:
    imported: int = 0
    total: int = 0
    errors: list[ImportFailure] = field(default_factory=list)
    results: list[dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> "BulkImportResult":
        if self.errors:
            raise PartialBatchError(
                f"{len(self.errors)} of {self.total} prescriptions failed to import", self
            )
        return self

    def to_dict(self) -> dict:
        return {
            "imported": self.imported,
            "total": self.total,
            "errors": [failure.to_dict() for failure in self.errors],
            "results": list(self.results),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BulkImportResult":
        errors = [
            ImportFailure(index=int(e.get("index", -1)), error=str(e.get("error", "")), original=e.get("data"))
            for e in (data.get("errors") or [])
        ]
        return cls(
            imported=int(data.get("imported") or 0),
            total=int(data.get("total") or 0),
            errors=errors,
            results=list(data.get("results") or []),
        )


class MigrationCoordinator:
    """Imports records one by one; a failing record never aborts the batch.

    There is no natural key for de-duplication: importing the same record
    twice creates two prescriptions.
    """

    def __init__(
        self,
        store: Optional[PrescriptionRepository] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store or PrescriptionRepository()
        self.today = today

    def _prepare(self, raw: Any) -> dict:
        data = canonicalize(raw)
        if not data["notes"]:
            data["notes"] = IMPORT_NOTE.format(day=self.today().isoformat())
        validate_prescription(data)
        return data

    def bulk_import(self, raw_records: Iterable[Any]) -> BulkImportResult:
        records = list(raw_records)
        result = BulkImportResult(total=len(records))
        logger.info("Bulk importing %d prescriptions", result.total)
        for index, raw in enumerate(records):
            try:
                aggregate = self.store.create(self._prepare(raw))
            except RecetaError as exc:
                message = _describe(exc)
                logger.warning("Error importing prescription %d: %s", index, message)
                result.errors.append(ImportFailure(index=index, error=message, original=raw))
                continue
            except Exception as exc:
                logger.exception("Unexpected error importing prescription %d", index)
                result.errors.append(ImportFailure(index=index, error=str(exc), original=raw))
                continue
            result.imported += 1
            result.results.append(to_wire(aggregate.to_dict(), legacy=uses_legacy_shape(raw)))
        logger.info("Imported %d of %d prescriptions", result.imported, result.total)
        return result
