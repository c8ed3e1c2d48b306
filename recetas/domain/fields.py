"""Reconciliation of the two field-naming schemes used by clients.

Older clients send the short Spanish keys (``paciente``, ``tutora``, ``fecha``,
``medicamentos[].nombre`` ...) and expect them back; newer ones use the long
canonical keys. Everything stored goes through ``canonicalize`` first.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Mapping

# canonical key -> legacy synonym; canonical wins when both are non-empty
RECORD_FIELDS: tuple[tuple[str, str], ...] = (
    ("id", "id"),
    ("patient_name", "paciente"),
    ("owner_name", "tutora"),
    ("prescription_date", "fecha"),
    ("veterinarian_name", "veterinario"),
    ("veterinarian_license", "licencia"),
    ("notes", "notas"),
    ("created_at", "fechaGuardado"),
    ("medications", "medicamentos"),
)

ITEM_FIELDS: tuple[tuple[str, str], ...] = (
    ("medication_name", "nombre"),
    ("dosage_instructions", "indicacion"),
)

LEGACY_ONLY_KEYS = frozenset(legacy for canonical, legacy in RECORD_FIELDS if canonical != legacy)
CANONICAL_ONLY_KEYS = frozenset(canonical for canonical, legacy in RECORD_FIELDS if canonical != legacy)

ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
LOCAL_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


def _pick(raw: Mapping[str, Any], canonical: str, legacy: str) -> Any:
    value = raw.get(canonical)
    if _is_empty(value):
        value = raw.get(legacy)
    return None if _is_empty(value) else value


def normalize_date(value: Any) -> Any:
    """Return ``YYYY-MM-DD`` for ISO or ``DD/MM/YYYY`` input.

    Anything unrecognized is returned untouched so the boundary can reject it.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return value
    text = value.strip()
    match = ISO_DATE.match(text)
    if match:
        year, month, day = match.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
    match = LOCAL_DATE.match(text)
    if match:
        day, month, year = match.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
    return value


def localize(iso_date: Any) -> str:
    """Display helper: ``2024-03-15`` -> ``15/03/2024``. Never used for storage."""
    normalized = normalize_date(iso_date)
    if not isinstance(normalized, str):
        return ""
    match = ISO_DATE.match(normalized)
    if not match:
        return normalized
    year, month, day = match.groups()
    return f"{day}/{month}/{year}"


def canonicalize_item(raw: Any) -> dict:
    if not isinstance(raw, Mapping):
        return {canonical: None for canonical, _ in ITEM_FIELDS}
    return {canonical: _pick(raw, canonical, legacy) for canonical, legacy in ITEM_FIELDS}


def canonicalize(raw: Mapping[str, Any]) -> dict:
    """Map either key set (or a mix) onto the canonical record shape.

    Total over ``RECORD_FIELDS``: every canonical key is present in the
    result, ``None`` when no synonym carried a value. The input is not
    mutated and ``canonicalize(canonicalize(x)) == canonicalize(x)``.
    """
    if not isinstance(raw, Mapping):
        raw = {}
    record = {canonical: _pick(raw, canonical, legacy) for canonical, legacy in RECORD_FIELDS}
    record["prescription_date"] = normalize_date(record["prescription_date"])
    medications = record["medications"]
    if isinstance(medications, (list, tuple)):
        record["medications"] = [canonicalize_item(item) for item in medications]
    elif medications is None:
        record["medications"] = []
    return record


def uses_legacy_shape(raw: Any) -> bool:
    """True when the record was written with legacy keys only."""
    if not isinstance(raw, Mapping):
        return False
    keys = set(raw.keys())
    return bool(keys & LEGACY_ONLY_KEYS) and not (keys & CANONICAL_ONLY_KEYS)


def _iso(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def to_wire(record: Mapping[str, Any], legacy: bool = False) -> dict:
    """Outgoing JSON shape; canonical unless the legacy shape was requested."""
    canonical = canonicalize(record)
    medications = canonical["medications"] if isinstance(canonical["medications"], list) else []
    if legacy:
        return {
            "id": canonical["id"],
            "paciente": canonical["patient_name"],
            "tutora": canonical["owner_name"],
            "fecha": canonical["prescription_date"],
            "medicamentos": [
                {"nombre": item["medication_name"], "indicacion": item["dosage_instructions"]}
                for item in medications
            ],
            "fechaGuardado": _iso(canonical["created_at"]),
            "veterinario": canonical["veterinarian_name"],
            "licencia": canonical["veterinarian_license"],
            "notas": canonical["notes"],
        }
    return {
        "id": canonical["id"],
        "patient_name": canonical["patient_name"],
        "owner_name": canonical["owner_name"],
        "prescription_date": canonical["prescription_date"],
        "veterinarian_name": canonical["veterinarian_name"],
        "veterinarian_license": canonical["veterinarian_license"],
        "notes": canonical["notes"],
        "medications": [dict(item) for item in medications],
        "created_at": _iso(canonical["created_at"]),
        "updated_at": _iso(record.get("updated_at")),
    }
