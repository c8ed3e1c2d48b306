#!/usr/bin/env python3
"""
Import a local prescriptions file (JSON list or ``{"prescriptions": [...]}``)
straight into the SQL store.

Uso:
  python scripts/migrate_local.py [--file recetas_local.json] [--clear] [--yes] [--strict]

The file is only deleted with ``--clear`` and after confirmation.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Garantiza que el paquete recetas sea importable cuando se ejecuta directamente
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from recetas.core.config import get_settings
from recetas.core.logging_setup import configure_logging
from recetas.db.session import dispose_engine, init_engine
from recetas.repositories.json_storage import LocalPrescriptionStore
from recetas.services.migration_service import BulkImportResult, MigrationCoordinator


def _load_records(path: Path) -> list:
    if not path.exists():
        raise SystemExit(f"Archivo no encontrado: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("prescriptions")
    if not isinstance(data, list):
        raise SystemExit("Formato invalido: se esperaba una lista de recetas")
    return data


def _print_summary(result: BulkImportResult) -> None:
    print(f"Se migraron {result.imported} de {result.total} recetas")
    for failure in result.errors:
        print(f"  [{failure.index}] {failure.error}")


def migrate(path: Path, *, clear: bool = False, assume_yes: bool = False, strict: bool = False) -> BulkImportResult:
    records = _load_records(path)
    init_engine(create_tables=get_settings().db_auto_create)
    try:
        result = MigrationCoordinator().bulk_import(records)
    finally:
        dispose_engine()
    _print_summary(result)
    if strict:
        result.raise_for_errors()
    if clear:
        answer = "s" if assume_yes else input("¿Desea eliminar las recetas locales? [s/N] ").strip().lower()
        if answer in {"s", "si", "y", "yes"}:
            LocalPrescriptionStore(path).clear()
            print("Recetas locales eliminadas.")
    return result


def main() -> None:
    ap = argparse.ArgumentParser(description="Migrar recetas locales a la base de datos")
    ap.add_argument("--file", default=get_settings().local_store_file, help="Archivo JSON de recetas locales")
    ap.add_argument("--clear", action="store_true", help="Eliminar el archivo local tras la migracion")
    ap.add_argument("--yes", action="store_true", help="No pedir confirmacion para --clear")
    ap.add_argument("--strict", action="store_true", help="Terminar con error si alguna receta falla")
    args = ap.parse_args()

    configure_logging()
    migrate(Path(args.file), clear=args.clear, assume_yes=args.yes, strict=args.strict)


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover - uso CLI
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
