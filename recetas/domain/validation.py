"""Boundary checks applied to canonical records before they reach the store."""
from __future__ import annotations

import re
import uuid
from datetime import date
from typing import Any, Mapping

from recetas.core.errors import ValidationError

ISO_DAY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

NAME_MAX = 255
LICENSE_MAX = 100
NOTES_MAX = 1000
LIST_LIMIT_MAX = 100
SEARCH_MAX = 100


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def is_valid_date(value: Any) -> bool:
    if not isinstance(value, str) or not ISO_DAY.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def collect_errors(record: Mapping[str, Any]) -> list[dict]:
    """Return one ``{"field", "message"}`` entry per problem found."""
    errors: list[dict] = []

    def fail(name: str, message: str) -> None:
        errors.append({"field": name, "message": message})

    for name, label in (("patient_name", "Patient name"), ("owner_name", "Owner name")):
        value = _text(record.get(name))
        if not value:
            fail(name, f"{label} is required")
        elif len(value) > NAME_MAX:
            fail(name, f"{label} must be between 1 and {NAME_MAX} characters")

    prescription_date = record.get("prescription_date")
    if not prescription_date:
        fail("prescription_date", "Prescription date is required")
    elif not is_valid_date(prescription_date):
        fail("prescription_date", "Prescription date must be a valid date")

    medications = record.get("medications")
    if not isinstance(medications, list) or not medications:
        fail("medications", "At least one medication is required")
    else:
        for index, item in enumerate(medications):
            item = item if isinstance(item, Mapping) else {}
            if not _text(item.get("medication_name")):
                fail(f"medications[{index}].medication_name", "Medication name is required")
            if not _text(item.get("dosage_instructions")):
                fail(f"medications[{index}].dosage_instructions", "Medication instructions are required")

    optional_limits = (
        ("veterinarian_name", NAME_MAX, "Veterinarian name"),
        ("veterinarian_license", LICENSE_MAX, "Veterinarian license"),
        ("notes", NOTES_MAX, "Notes"),
    )
    for name, limit, label in optional_limits:
        value = record.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            fail(name, f"{label} must be text")
        elif len(value.strip()) > limit:
            fail(name, f"{label} must be less than {limit} characters")
    return errors


def validate_prescription(record: Mapping[str, Any]) -> Mapping[str, Any]:
    errors = collect_errors(record)
    if errors:
        raise ValidationError("Validation failed", details=errors)
    return record


def validate_uuid(value: str) -> str:
    try:
        uuid.UUID(str(value))
    except ValueError:
        raise ValidationError("Invalid ID format", details=[{"field": "id", "message": "Invalid ID format"}])
    return str(value)


def validate_list_params(limit: Any, offset: Any, search: Any = None) -> tuple[int, int, str | None]:
    try:
        limit_value = int(limit)
        offset_value = int(offset)
    except (TypeError, ValueError):
        raise ValidationError("Limit and offset must be integers")
    if not 1 <= limit_value <= LIST_LIMIT_MAX:
        raise ValidationError(f"Limit must be between 1 and {LIST_LIMIT_MAX}")
    if offset_value < 0:
        raise ValidationError("Offset must be a non-negative integer")
    term = None
    if search is not None:
        term = str(search).strip()
        if not 1 <= len(term) <= SEARCH_MAX:
            raise ValidationError(f"Search term must be between 1 and {SEARCH_MAX} characters")
    return limit_value, offset_value, term
