"""Transactional persistence of the prescription aggregate backed by SQLAlchemy.

A prescription and its ordered medication items are always written together:
every write runs inside one ``transaction()`` and either fully commits or
leaves the database untouched.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from recetas.core.config import Settings, get_settings
from recetas.core.errors import NotFoundError, WriteFailed
from recetas.db.models import Prescription, PrescriptionItem
from recetas.db.session import get_session, transaction
from recetas.domain.fields import canonicalize
from recetas.domain.prescriptions import MedicationItem, PrescriptionAggregate

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise WriteFailed(f"Invalid prescription date: {value!r}") from exc


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops the offset on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_aggregate(entity: Prescription, items: list[PrescriptionItem]) -> PrescriptionAggregate:
    prescription_date = entity.prescription_date
    return PrescriptionAggregate(
        id=entity.id,
        patient_name=entity.patient_name,
        owner_name=entity.owner_name,
        prescription_date=prescription_date.isoformat() if prescription_date else None,
        veterinarian_name=entity.veterinarian_name,
        veterinarian_license=entity.veterinarian_license,
        notes=entity.notes,
        created_at=_as_utc(entity.created_at),
        updated_at=_as_utc(entity.updated_at),
        medications=[
            MedicationItem(medication_name=item.medication_name, dosage_instructions=item.dosage_instructions)
            for item in sorted(items, key=lambda it: it.position)
        ],
    )


class PrescriptionRepository:
    """CRUD for the prescription aggregate (parent row + ordered items)."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    # -------------------------- helpers --------------------------
    def _apply_scalars(self, entity: Prescription, data: Mapping[str, Any]) -> None:
        entity.patient_name = data.get("patient_name")
        entity.owner_name = data.get("owner_name")
        entity.prescription_date = _to_date(data.get("prescription_date"))
        entity.veterinarian_name = data.get("veterinarian_name") or self.settings.veterinarian_name
        entity.veterinarian_license = data.get("veterinarian_license") or self.settings.veterinarian_license
        entity.notes = data.get("notes")

    def _insert_items(self, session: Session, prescription_id: str, medications: list, now: datetime) -> list[PrescriptionItem]:
        if not isinstance(medications, list):
            raise WriteFailed("Medications must be a list")
        items = []
        # one flush per item keeps insert order equal to sequence order
        for position, medication in enumerate(medications):
            item = PrescriptionItem(
                id=str(uuid.uuid4()),
                prescription_id=prescription_id,
                position=position,
                medication_name=medication.get("medication_name"),
                dosage_instructions=medication.get("dosage_instructions"),
                created_at=now,
            )
            session.add(item)
            session.flush()
            items.append(item)
        return items

    # -------------------------- writes --------------------------
    def create(self, record: Mapping[str, Any]) -> PrescriptionAggregate:
        data = canonicalize(record)
        now = _now()
        try:
            with transaction() as session:
                entity = Prescription(id=str(uuid.uuid4()), created_at=now, updated_at=now)
                self._apply_scalars(entity, data)
                session.add(entity)
                session.flush()
                items = self._insert_items(session, entity.id, data["medications"], now)
        except SQLAlchemyError as exc:
            logger.error("Prescription insert rolled back: %s", exc)
            raise WriteFailed("No se pudo guardar la receta") from exc
        logger.info(
            "Created prescription %s (patient=%s, owner=%s, medications=%d)",
            entity.id,
            entity.patient_name,
            entity.owner_name,
            len(items),
        )
        return _to_aggregate(entity, items)

    def update(self, prescription_id: str, record: Mapping[str, Any]) -> PrescriptionAggregate:
        """Full replace of the scalar fields and of the whole item sequence."""
        data = canonicalize(record)
        now = _now()
        try:
            with transaction() as session:
                entity = session.get(Prescription, prescription_id)
                if entity is None:
                    raise NotFoundError("Receta no encontrada")
                self._apply_scalars(entity, data)
                entity.updated_at = now
                session.flush()
                session.execute(delete(PrescriptionItem).where(PrescriptionItem.prescription_id == prescription_id))
                items = self._insert_items(session, prescription_id, data["medications"], now)
        except SQLAlchemyError as exc:
            logger.error("Prescription %s update rolled back: %s", prescription_id, exc)
            raise WriteFailed("No se pudo actualizar la receta") from exc
        logger.info("Updated prescription %s (medications=%d)", prescription_id, len(items))
        return _to_aggregate(entity, items)

    def delete(self, prescription_id: str) -> bool:
        try:
            with transaction() as session:
                entity = session.get(Prescription, prescription_id)
                if entity is None:
                    return False
                session.delete(entity)
        except SQLAlchemyError as exc:
            logger.error("Prescription %s delete rolled back: %s", prescription_id, exc)
            raise WriteFailed("No se pudo eliminar la receta") from exc
        logger.info("Deleted prescription %s", prescription_id)
        return True

    # -------------------------- reads --------------------------
    def find_by_id(self, prescription_id: str) -> Optional[PrescriptionAggregate]:
        with get_session() as session:
            stmt = (
                select(Prescription)
                .options(selectinload(Prescription.items))
                .where(Prescription.id == prescription_id)
            )
            entity = session.execute(stmt).scalar_one_or_none()
            if entity is None:
                return None
            return _to_aggregate(entity, entity.items)

    def find_all(self, limit: int = 100, offset: int = 0) -> list[PrescriptionAggregate]:
        with get_session() as session:
            stmt = (
                select(Prescription)
                .options(selectinload(Prescription.items))
                .order_by(Prescription.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return [_to_aggregate(entity, entity.items) for entity in session.execute(stmt).scalars().all()]

    def search(self, term: str, limit: int = 20) -> list[PrescriptionAggregate]:
        pattern = f"%{_escape_like(term or '')}%"
        with get_session() as session:
            stmt = (
                select(Prescription)
                .options(selectinload(Prescription.items))
                .where(
                    or_(
                        Prescription.patient_name.ilike(pattern, escape="\\"),
                        Prescription.owner_name.ilike(pattern, escape="\\"),
                        Prescription.notes.ilike(pattern, escape="\\"),
                    )
                )
                .order_by(Prescription.created_at.desc())
                .limit(limit)
            )
            return [_to_aggregate(entity, entity.items) for entity in session.execute(stmt).scalars().all()]

    def count(self) -> int:
        with get_session() as session:
            return int(session.execute(select(func.count()).select_from(Prescription)).scalar_one())

    def count_since(self, since: datetime) -> int:
        with get_session() as session:
            stmt = select(func.count()).select_from(Prescription).where(Prescription.created_at >= since)
            return int(session.execute(stmt).scalar_one())
