"""Plain aggregate types handed out by the store (detached from any session)."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class MedicationItem:
    medication_name: str
    dosage_instructions: str


@dataclass
class PrescriptionAggregate:
    id: str
    patient_name: str
    owner_name: str
    prescription_date: str
    veterinarian_name: str
    veterinarian_license: str
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime
    medications: list[MedicationItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Canonical record form."""
        return asdict(self)
