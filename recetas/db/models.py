"""SQLAlchemy models for the prescription aggregate."""
from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(String(36), primary_key=True, default=_new_id)
    patient_name = Column(String(255), nullable=False)
    owner_name = Column(String(255), nullable=False)
    prescription_date = Column(Date, nullable=False)
    veterinarian_name = Column(String(255), nullable=False)
    veterinarian_license = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    items = relationship(
        "PrescriptionItem",
        back_populates="prescription",
        cascade="all,delete-orphan",
        order_by="PrescriptionItem.position",
    )


class PrescriptionItem(Base):
    __tablename__ = "prescription_items"

    id = Column(String(36), primary_key=True, default=_new_id)
    prescription_id = Column(
        String(36), ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    medication_name = Column(String(255), nullable=False)
    dosage_instructions = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    prescription = relationship("Prescription", back_populates="items")
