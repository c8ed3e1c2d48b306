from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from recetas.domain.fields import to_wire, uses_legacy_shape
from recetas.domain.prescriptions import PrescriptionAggregate
from recetas.domain.validation import validate_list_params, validate_uuid
from recetas.services.prescription_service import PrescriptionService

router = APIRouter(prefix="/api/recetas", tags=["recetas"])

SHAPE_LEGACY = "legacy"
SHAPE_CANONICAL = "canonical"


def _get_service(request: Request) -> PrescriptionService:
    svc = getattr(getattr(request.app, "state", None), "prescription_service", None)
    if not svc:
        raise RuntimeError("PrescriptionService no configurado")
    return svc


def _wants_legacy(shape: Optional[str], body: Any = None) -> bool:
    value = (shape or "").strip().lower()
    if value:
        return value == SHAPE_LEGACY
    return uses_legacy_shape(body)


def _wire(aggregate: PrescriptionAggregate, legacy: bool) -> dict:
    return to_wire(aggregate.to_dict(), legacy=legacy)


def _ok(data: Any = None, status_code: int = 200, **extra) -> JSONResponse:
    body = {"ok": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return JSONResponse(body, status_code=status_code)


@router.get("")
def list_prescriptions(
    request: Request,
    limit: int = 20,
    offset: int = 0,
    search: Optional[str] = None,
    shape: Optional[str] = None,
):
    limit, offset, term = validate_list_params(limit, offset, search)
    page = _get_service(request).list(limit, offset, term)
    legacy = _wants_legacy(shape)
    return _ok(
        [_wire(item, legacy) for item in page.items],
        pagination={"total": page.total, "limit": page.limit, "offset": page.offset, "has_more": page.has_more},
    )


@router.get("/stats")
def prescription_stats(request: Request):
    return _ok(_get_service(request).stats())


@router.post("/bulk")
def bulk_import(request: Request, payload: Any = Body(...), shape: Optional[str] = None):
    result = _get_service(request).bulk_import(payload)
    data = result.to_dict()
    if shape:
        legacy = _wants_legacy(shape)
        data["results"] = [to_wire(item, legacy=legacy) for item in result.results]
    return _ok(
        data,
        status_code=201,
        message=f"Successfully imported {result.imported} of {result.total} prescriptions",
    )


@router.post("")
def create_prescription(request: Request, payload: dict = Body(...), shape: Optional[str] = None):
    aggregate = _get_service(request).create(payload)
    return _ok(_wire(aggregate, _wants_legacy(shape, payload)), status_code=201, message="Prescription created successfully")


@router.get("/{prescription_id}")
def get_prescription(prescription_id: str, request: Request, shape: Optional[str] = None):
    aggregate = _get_service(request).get(validate_uuid(prescription_id))
    return _ok(_wire(aggregate, _wants_legacy(shape)))


@router.put("/{prescription_id}")
def update_prescription(prescription_id: str, request: Request, payload: dict = Body(...), shape: Optional[str] = None):
    aggregate = _get_service(request).update(validate_uuid(prescription_id), payload)
    return _ok(_wire(aggregate, _wants_legacy(shape, payload)), message="Prescription updated successfully")


@router.delete("/{prescription_id}")
def delete_prescription(prescription_id: str, request: Request):
    _get_service(request).delete(validate_uuid(prescription_id))
    return _ok(message="Prescription deleted successfully")
