"""HTTP client for the prescription API (the primary backend)."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import requests

from recetas.core.config import get_settings
from recetas.core.errors import BackendError, NotFoundError, TransportError, ValidationError
from recetas.services.migration_service import BulkImportResult

logger = logging.getLogger(__name__)

PRESCRIPTIONS_PATH = "/api/recetas"
# gateway answers that mean the API itself could not be reached
UNREACHABLE_STATUSES = {502, 503, 504}


class HttpPrimaryBackend:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        shape: str = "legacy",
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout
        self.session = session or requests.Session()
        self.shape = shape

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{PRESCRIPTIONS_PATH}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransportError(f"API no disponible: {exc}") from exc
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.ok:
            return body
        message = body.get("message") or body.get("error") or f"HTTP error! status: {response.status_code}"
        details = body.get("details")
        if response.status_code in UNREACHABLE_STATUSES:
            raise TransportError(message, status_code=response.status_code)
        if response.status_code == 404:
            raise NotFoundError(message, details=details)
        if response.status_code == 400:
            raise ValidationError(message, details=details)
        raise BackendError(message, status_code=response.status_code, details=details)

    def list(self, limit: int = 20, offset: int = 0) -> list[dict]:
        body = self._request("GET", "", params={"limit": limit, "offset": offset, "shape": self.shape})
        return body.get("data") or []

    def search(self, term: str, limit: int = 20) -> list[dict]:
        body = self._request("GET", "", params={"search": term, "limit": limit, "shape": self.shape})
        return body.get("data") or []

    def get(self, prescription_id: str) -> Optional[dict]:
        try:
            body = self._request("GET", f"/{prescription_id}", params={"shape": self.shape})
        except NotFoundError:
            return None
        return body.get("data")

    def create(self, record: dict) -> dict:
        return self._request("POST", "", json=record, params={"shape": self.shape}).get("data")

    def update(self, prescription_id: str, record: dict) -> dict:
        return self._request("PUT", f"/{prescription_id}", json=record, params={"shape": self.shape}).get("data")

    def delete(self, prescription_id: str) -> bool:
        try:
            self._request("DELETE", f"/{prescription_id}")
        except NotFoundError:
            return False
        return True

    def stats(self) -> dict:
        return self._request("GET", "/stats").get("data") or {}

    def bulk_import(self, records: Iterable[Any]) -> BulkImportResult:
        body = self._request("POST", "/bulk", json={"prescriptions": list(records)}, params={"shape": self.shape})
        return BulkImportResult.from_dict(body.get("data") or {})
