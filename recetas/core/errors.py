"""Error taxonomy shared by the store, the HTTP boundary and the client."""
from __future__ import annotations

from typing import Any, Optional


class RecetaError(Exception):
    """Base class; carries a machine code and the HTTP status it maps to."""

    code = "error"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ValidationError(RecetaError):
    """Malformed input shape, rejected before reaching the store."""

    code = "validation_failed"
    status_code = 400


class NotFoundError(RecetaError):
    code = "not_found"
    status_code = 404


class WriteFailed(RecetaError):
    """A write failed mid-transaction; everything was rolled back."""

    code = "write_failed"
    status_code = 500


TransactionError = WriteFailed


class TransportError(RecetaError):
    """Primary backend unreachable or timed out (client side only)."""

    code = "transport"
    status_code = 503


class BackendError(RecetaError):
    """Primary backend answered, but with an unexpected error status."""

    code = "backend"
    status_code = 502


class PartialBatchError(RecetaError):
    """Some records of a bulk import failed; ``result`` holds the full report."""

    code = "partial_batch"
    status_code = 207

    def __init__(self, message: str, result: Any):
        super().__init__(message, details=getattr(result, "errors", None))
        self.result = result
