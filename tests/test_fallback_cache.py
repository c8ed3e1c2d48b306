from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

# Garantiza que el paquete recetas sea importable durante los tests locales
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from recetas.client import fallback  # noqa: E402
from recetas.client.fallback import (  # noqa: E402
    FallbackCache,
    FallbackPolicy,
    MigrationState,
    Operation,
    Tier,
)
from recetas.core.errors import NotFoundError, TransportError, ValidationError  # noqa: E402
from recetas.repositories.json_storage import LocalPrescriptionStore  # noqa: E402
from recetas.services.migration_service import BulkImportResult, ImportFailure  # noqa: E402

RECETA = {
    "paciente": "Firulais",
    "tutora": "Maria",
    "fecha": "2024-03-15",
    "medicamentos": [{"nombre": "Amoxicilina", "indicacion": "500mg cada 12h"}],
}


class FakePrimary:
    """In-memory stand-in for the HTTP API."""

    def __init__(self, online: bool = True) -> None:
        self.online = online
        self.records: dict[str, dict] = {}
        self.bulk_calls: list[list] = []

    def _check(self) -> None:
        if not self.online:
            raise TransportError("API no disponible: connection refused")

    def list(self, limit=20, offset=0):
        self._check()
        return list(self.records.values())[offset:offset + limit]

    def search(self, term, limit=20):
        self._check()
        return [r for r in self.records.values() if term.lower() in r["paciente"].lower()][:limit]

    def get(self, prescription_id):
        self._check()
        return self.records.get(prescription_id)

    def create(self, record):
        self._check()
        entry = dict(record, id=f"srv-{len(self.records) + 1}")
        self.records[entry["id"]] = entry
        return entry

    def update(self, prescription_id, record):
        self._check()
        if prescription_id not in self.records:
            raise NotFoundError("Receta no encontrada")
        self.records[prescription_id] = dict(record, id=prescription_id)
        return self.records[prescription_id]

    def delete(self, prescription_id):
        self._check()
        return self.records.pop(prescription_id, None) is not None

    def bulk_import(self, records):
        self._check()
        self.bulk_calls.append(list(records))
        result = BulkImportResult(total=len(records))
        for index, record in enumerate(records):
            if not record.get("medicamentos"):
                result.errors.append(ImportFailure(index=index, error="At least one medication is required", original=record))
                continue
            result.results.append(self.create(record))
            result.imported += 1
        return result


@pytest.fixture()
def local_store(tmp_path):
    return LocalPrescriptionStore(tmp_path / "recetas_local.json")


def test_state_detected_at_startup(local_store):
    assert FallbackCache(FakePrimary(), local_store).state is MigrationState.CLEAN
    local_store.add(RECETA)
    assert FallbackCache(FakePrimary(), local_store).state is MigrationState.PENDING


def test_save_prefers_primary(local_store):
    primary = FakePrimary()
    cache = FallbackCache(primary, local_store)
    saved = cache.save(dict(RECETA))
    assert saved["id"] == "srv-1"
    assert local_store.count() == 0


def test_save_falls_back_and_self_assigns_id(local_store):
    cache = FallbackCache(FakePrimary(online=False), local_store)
    saved = cache.save(dict(RECETA))

    assert saved["id"]
    assert saved["fechaGuardado"]
    assert cache.state is MigrationState.PENDING
    on_disk = json.loads(local_store.path.read_text(encoding="utf-8"))
    assert on_disk[0]["id"] == saved["id"]
    assert on_disk[0]["paciente"] == "Firulais"


def test_reads_fall_back_to_local(local_store):
    first = local_store.add(dict(RECETA, notas="control"))
    local_store.add(dict(RECETA, paciente="Rex", tutora="Luis"))
    cache = FallbackCache(FakePrimary(online=False), local_store)

    assert len(cache.get_all()) == 2
    assert cache.get_one(first["id"])["paciente"] == "Firulais"
    assert [r["paciente"] for r in cache.search("luis")] == ["Rex"]
    assert [r["id"] for r in cache.search("CONTROL")] == [first["id"]]


def test_update_never_degrades_to_local(local_store):
    entry = local_store.add(dict(RECETA))
    cache = FallbackCache(FakePrimary(online=False), local_store)
    with pytest.raises(TransportError):
        cache.update(entry["id"], dict(RECETA, paciente="Rex"))
    assert local_store.get(entry["id"])["paciente"] == "Firulais"


def test_non_transport_errors_are_not_absorbed(local_store):
    local_store.add(dict(RECETA))
    cache = FallbackCache(FakePrimary(), local_store)
    assert cache.get_one("missing") is None
    assert cache.delete("missing") is False
    assert local_store.count() == 1
    with pytest.raises(NotFoundError):
        cache.update("missing", dict(RECETA))


def test_delete_falls_back_to_local(local_store):
    entry = local_store.add(dict(RECETA))
    cache = FallbackCache(FakePrimary(online=False), local_store)
    assert cache.delete(entry["id"]) is True
    assert local_store.count() == 0
    assert cache.delete(entry["id"]) is False


def test_policy_can_surface_reads(local_store):
    policy = FallbackPolicy(rules={Operation.READ: Tier.SURFACE})
    cache = FallbackCache(FakePrimary(online=False), local_store, policy=policy)
    with pytest.raises(TransportError):
        cache.get_all()
    # operations without a rule surface too
    with pytest.raises(TransportError):
        cache.save(dict(RECETA))


def test_migrate_without_confirmation_keeps_local_data(local_store):
    local_store.add(dict(RECETA))
    local_store.add({"paciente": "X"})
    primary = FakePrimary()
    cache = FallbackCache(primary, local_store)

    report = cache.migrate()
    assert (report.imported, report.total) == (1, 2)
    assert report.errors[0].index == 1
    assert report.cleared is False
    assert local_store.count() == 2
    assert cache.state is MigrationState.PENDING


def test_migrate_clears_only_after_confirmation(local_store):
    local_store.add(dict(RECETA))
    primary = FakePrimary()
    cache = FallbackCache(primary, local_store)
    seen = []

    def confirm(report):
        seen.append((report.imported, report.total))
        assert local_store.count() == 1
        return True

    report = cache.migrate(confirm=confirm)
    assert seen == [(1, 1)]
    assert report.cleared is True
    assert local_store.count() == 0
    assert cache.state is MigrationState.MIGRATED
    assert len(primary.records) == 1


def test_declined_confirmation_keeps_local_data(local_store):
    local_store.add(dict(RECETA))
    cache = FallbackCache(FakePrimary(), local_store)
    report = cache.migrate(confirm=lambda report: False)
    assert report.cleared is False
    assert local_store.count() == 1
    assert cache.state is MigrationState.PENDING


def test_failed_migration_returns_to_pending(local_store):
    local_store.add(dict(RECETA))
    cache = FallbackCache(FakePrimary(online=False), local_store)
    with pytest.raises(TransportError):
        cache.migrate(confirm=lambda report: True)
    assert cache.state is MigrationState.PENDING
    assert local_store.count() == 1


def test_repeated_migration_duplicates_on_primary(local_store):
    local_store.add(dict(RECETA))
    primary = FakePrimary()
    cache = FallbackCache(primary, local_store)
    cache.migrate()
    cache.migrate()
    assert len(primary.bulk_calls) == 2
    assert len(primary.records) == 2


def test_migrate_with_nothing_local(local_store):
    primary = FakePrimary()
    cache = FallbackCache(primary, local_store)
    report = cache.migrate(confirm=lambda report: True)
    assert report.total == 0
    assert primary.bulk_calls == []
    assert cache.state is MigrationState.CLEAN


def test_clear_requires_confirmation(local_store):
    local_store.add(dict(RECETA))
    cache = FallbackCache(FakePrimary(), local_store)
    with pytest.raises(ValueError):
        cache.clear_secondary(confirmed=False)
    assert local_store.count() == 1


def test_deleting_last_local_record_returns_to_clean(local_store):
    entry = local_store.add(dict(RECETA))
    cache = FallbackCache(FakePrimary(online=False), local_store)
    assert cache.state is MigrationState.PENDING
    cache.delete(entry["id"])
    assert cache.state is MigrationState.CLEAN


def test_import_prefers_primary_bulk(local_store):
    primary = FakePrimary()
    cache = FallbackCache(primary, local_store)
    result = cache.import_records([dict(RECETA), {"paciente": "X"}])
    assert (result.imported, result.total) == (1, 2)
    assert len(primary.bulk_calls) == 1
    assert local_store.count() == 0
    assert cache.state is MigrationState.CLEAN


def test_import_falls_back_to_local(local_store):
    cache = FallbackCache(FakePrimary(online=False), local_store)
    result = cache.import_records([dict(RECETA), dict(RECETA, paciente="Rex")])
    assert (result.imported, result.total) == (2, 2)
    assert all(entry["id"] and entry["fechaGuardado"] for entry in result.results)
    assert local_store.count() == 2
    assert cache.state is MigrationState.PENDING


def test_import_rejects_non_list(local_store):
    primary = FakePrimary()
    cache = FallbackCache(primary, local_store)
    with pytest.raises(ValidationError):
        cache.import_records({"paciente": "Firulais"})
    assert primary.bulk_calls == []


def test_export_pages_through_primary(local_store, monkeypatch):
    monkeypatch.setattr(fallback, "EXPORT_PAGE_SIZE", 2)
    primary = FakePrimary()
    for name in ("Firulais", "Rex", "Luna", "Toby", "Kira"):
        primary.create(dict(RECETA, paciente=name))
    cache = FallbackCache(primary, local_store)
    assert [r["paciente"] for r in cache.export()] == ["Firulais", "Rex", "Luna", "Toby", "Kira"]


def test_export_to_file_from_local(local_store, tmp_path):
    local_store.add(dict(RECETA, paciente="Ñandú"))
    cache = FallbackCache(FakePrimary(online=False), local_store)
    target = tmp_path / "export" / "recetas.json"
    assert cache.export_to(target) == 1
    exported = json.loads(target.read_text(encoding="utf-8"))
    assert exported[0]["paciente"] == "Ñandú"


def test_corrupt_local_file_reads_as_empty(local_store):
    local_store.path.write_text("{not json", encoding="utf-8")
    cache = FallbackCache(FakePrimary(online=False), local_store)
    assert cache.state is MigrationState.CLEAN
    assert cache.get_all() == []
    assert cache.search("firu") == []
