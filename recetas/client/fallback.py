"""
Primary/secondary record store for clients.

The primary backend is the prescription API; the secondary is a local JSON
file that only this client can see. Which failures are absorbed locally and
which are handed back to the caller is decided per operation kind by
``FallbackPolicy``.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Protocol

from recetas.core.errors import TransportError, ValidationError
from recetas.repositories.json_storage import LocalPrescriptionStore
from recetas.services.migration_service import BulkImportResult

logger = logging.getLogger(__name__)

EXPORT_PAGE_SIZE = 100


class PrimaryBackend(Protocol):
    def list(self, limit: int = 20, offset: int = 0) -> list[dict]: ...
    def search(self, term: str, limit: int = 20) -> list[dict]: ...
    def get(self, prescription_id: str) -> Optional[dict]: ...
    def create(self, record: dict) -> dict: ...
    def update(self, prescription_id: str, record: dict) -> dict: ...
    def delete(self, prescription_id: str) -> bool: ...
    def bulk_import(self, records: list) -> BulkImportResult: ...


class Operation(str, enum.Enum):
    READ = "read"
    WRITE = "write"
    UPDATE = "update"
    DELETE = "delete"


class Tier(str, enum.Enum):
    LOCAL = "local"  # retry against the secondary store
    SURFACE = "surface"  # re-raise to the caller


class MigrationState(str, enum.Enum):
    CLEAN = "clean"
    PENDING = "pending-migration"
    MIGRATING = "migrating"
    MIGRATED = "migrated"


@dataclass(frozen=True)
class FallbackPolicy:
    rules: Mapping[Operation, Tier]

    def on_transport_failure(self, operation: Operation) -> Tier:
        return self.rules.get(operation, Tier.SURFACE)


# updates have no local path
DEFAULT_POLICY = FallbackPolicy(
    rules={
        Operation.READ: Tier.LOCAL,
        Operation.WRITE: Tier.LOCAL,
        Operation.UPDATE: Tier.SURFACE,
        Operation.DELETE: Tier.LOCAL,
    }
)


@dataclass
class MigrationReport:
    imported: int
    total: int
    errors: list
    cleared: bool = False


class FallbackCache:
    """One logical prescription store over a primary and a secondary backend.

    Not safe for concurrent writers on the same local file, and ``migrate``
    assumes nothing else writes to the secondary while it runs.
    """

    def __init__(
        self,
        primary: PrimaryBackend,
        secondary: Optional[LocalPrescriptionStore] = None,
        policy: FallbackPolicy = DEFAULT_POLICY,
    ) -> None:
        self.primary = primary
        self.secondary = secondary or LocalPrescriptionStore()
        self.policy = policy
        self._state = MigrationState.PENDING if self.secondary.count() else MigrationState.CLEAN

    @property
    def state(self) -> MigrationState:
        return self._state

    @property
    def pending_local_records(self) -> int:
        return self.secondary.count()

    def _run(
        self, operation: Operation, remote: Callable[[], Any], local: Optional[Callable[[], Any]] = None
    ) -> Any:
        try:
            return remote()
        except TransportError as exc:
            if local is None or self.policy.on_transport_failure(operation) is Tier.SURFACE:
                logger.warning("API unavailable for %s operation", operation.value)
                raise
            logger.warning("API unavailable, %s served from local storage: %s", operation.value, exc.message)
            return local()

    # -------------------------- reads --------------------------
    def get_all(self, limit: int = 20, offset: int = 0) -> list[dict]:
        return self._run(
            Operation.READ,
            lambda: self.primary.list(limit=limit, offset=offset),
            lambda: self.secondary.all(limit=limit, offset=offset),
        )

    def get_one(self, prescription_id: str) -> Optional[dict]:
        return self._run(
            Operation.READ,
            lambda: self.primary.get(prescription_id),
            lambda: self.secondary.get(prescription_id),
        )

    def search(self, term: str, limit: int = 20) -> list[dict]:
        return self._run(
            Operation.READ,
            lambda: self.primary.search(term, limit=limit),
            lambda: self.secondary.search(term, limit=limit),
        )

    # -------------------------- writes --------------------------
    def _save_locally(self, record: dict) -> dict:
        entry = self.secondary.add(record)
        if self._state in (MigrationState.CLEAN, MigrationState.MIGRATED):
            self._state = MigrationState.PENDING
        return entry

    def save(self, record: dict) -> dict:
        return self._run(Operation.WRITE, lambda: self.primary.create(record), lambda: self._save_locally(record))

    def update(self, prescription_id: str, record: dict) -> dict:
        return self._run(Operation.UPDATE, lambda: self.primary.update(prescription_id, record))

    def _delete_locally(self, prescription_id: str) -> bool:
        deleted = self.secondary.delete(prescription_id)
        if self._state is MigrationState.PENDING and not self.secondary.count():
            self._state = MigrationState.CLEAN
        return deleted

    def delete(self, prescription_id: str) -> bool:
        return self._run(
            Operation.DELETE,
            lambda: self.primary.delete(prescription_id),
            lambda: self._delete_locally(prescription_id),
        )

    # -------------------------- import / export --------------------------
    def _import_locally(self, records: list) -> BulkImportResult:
        entries = [self._save_locally(record) for record in records]
        return BulkImportResult(imported=len(entries), total=len(records), results=entries)

    def import_records(self, records: Any) -> BulkImportResult:
        """Bulk import an exported list, keeping it locally when the API is down."""
        if not isinstance(records, list):
            raise ValidationError("Formato de archivo incorrecto")
        return self._run(
            Operation.WRITE,
            lambda: self.primary.bulk_import(records),
            lambda: self._import_locally(records),
        )

    def _export_remote(self) -> list[dict]:
        records: list[dict] = []
        while True:
            page = self.primary.list(limit=EXPORT_PAGE_SIZE, offset=len(records))
            records.extend(page)
            if len(page) < EXPORT_PAGE_SIZE:
                return records

    def export(self) -> list[dict]:
        """Every visible record, newest first."""
        return self._run(Operation.READ, self._export_remote, self.secondary.all)

    def export_to(self, path: str | Path) -> int:
        records = self.export()
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info("Exported %d prescriptions to %s", len(records), target)
        return len(records)

    # -------------------------- migration --------------------------
    def migrate(self, confirm: Optional[Callable[[MigrationReport], bool]] = None) -> MigrationReport:
        """Push every local record through the primary bulk import.

        The local file is cleared only when ``confirm`` is given and returns
        True for the report; any failure leaves it untouched.
        """
        records = self.secondary.load()
        if not records:
            self._state = MigrationState.CLEAN
            return MigrationReport(imported=0, total=0, errors=[])

        self._state = MigrationState.MIGRATING
        try:
            result = self.primary.bulk_import(records)
        except Exception:
            self._state = MigrationState.PENDING
            logger.exception("Migration of %d local prescriptions failed", len(records))
            raise

        report = MigrationReport(imported=result.imported, total=result.total, errors=list(result.errors))
        logger.info("Migrated %d of %d local prescriptions", report.imported, report.total)
        if confirm is not None and confirm(report):
            self.clear_secondary(confirmed=True)
            report.cleared = True
        else:
            self._state = MigrationState.PENDING
        return report

    def clear_secondary(self, *, confirmed: bool) -> None:
        """Irreversibly drop every local record."""
        if not confirmed:
            raise ValueError("Clearing local prescriptions requires explicit confirmation")
        self.secondary.clear()
        self._state = MigrationState.MIGRATED
        logger.info("Local prescriptions cleared")
