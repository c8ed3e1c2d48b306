"""Prescription use cases behind the HTTP boundary."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from recetas.core.errors import NotFoundError, ValidationError
from recetas.domain.fields import canonicalize
from recetas.domain.prescriptions import PrescriptionAggregate
from recetas.domain.validation import validate_prescription
from recetas.repositories.prescription_repository import PrescriptionRepository
from recetas.services.migration_service import BulkImportResult, MigrationCoordinator

logger = logging.getLogger(__name__)

RECENT_DAYS = 30


@dataclass
class PrescriptionPage:
    items: list[PrescriptionAggregate]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total


class PrescriptionService:
    def __init__(self, repository: Optional[PrescriptionRepository] = None) -> None:
        self.repository = repository or PrescriptionRepository()
        self.coordinator = MigrationCoordinator(self.repository)

    def list(self, limit: int = 20, offset: int = 0, search: Optional[str] = None) -> PrescriptionPage:
        if search:
            items = self.repository.search(search, limit)
        else:
            items = self.repository.find_all(limit, offset)
        return PrescriptionPage(items=items, total=self.repository.count(), limit=limit, offset=offset)

    def get(self, prescription_id: str) -> PrescriptionAggregate:
        aggregate = self.repository.find_by_id(prescription_id)
        if aggregate is None:
            raise NotFoundError("Receta no encontrada")
        return aggregate

    def create(self, raw: Any) -> PrescriptionAggregate:
        data = validate_prescription(canonicalize(raw))
        logger.info(
            "Creating prescription (patient=%s, owner=%s, medications=%d)",
            data["patient_name"],
            data["owner_name"],
            len(data["medications"]),
        )
        return self.repository.create(data)

    def update(self, prescription_id: str, raw: Any) -> PrescriptionAggregate:
        data = validate_prescription(canonicalize(raw))
        logger.info("Updating prescription %s (patient=%s, owner=%s)", prescription_id, data["patient_name"], data["owner_name"])
        return self.repository.update(prescription_id, data)

    def delete(self, prescription_id: str) -> None:
        if not self.repository.delete(prescription_id):
            raise NotFoundError("Receta no encontrada")

    def stats(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        return {
            "total_prescriptions": self.repository.count(),
            "recent_prescriptions": self.repository.count_since(now - timedelta(days=RECENT_DAYS)),
            "period": f"last_{RECENT_DAYS}_days",
        }

    def bulk_import(self, payload: Any) -> BulkImportResult:
        records = payload.get("prescriptions") if isinstance(payload, dict) else None
        if not isinstance(records, list) or not records:
            raise ValidationError("Invalid prescriptions data")
        return self.coordinator.bulk_import(records)
