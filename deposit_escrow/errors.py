# deposit_escrow/errors.py
from __future__ import annotations

from typing import Any, Optional


class EscrowError(Exception):
    """
    Base for every rejected escrow operation.

    `code` is a stable machine token (e.g. "exceeds_legal_cap"), `message` is
    the human-readable reason surfaced to the end user. Nothing here is ever
    retried by the core.
    """

    status_code: int = 500
    default_code: str = "escrow_error"

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None, **context: Any) -> None:
        self.code = code or self.default_code
        self.message = message or self.code.replace("_", " ")
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.context:
            out["context"] = self.context
        return out


class ValidationError(EscrowError):
    status_code = 422
    default_code = "validation_error"


class ConflictError(EscrowError):
    status_code = 409
    default_code = "conflict"


class StateError(EscrowError):
    status_code = 409
    default_code = "invalid_transition"


class NotFoundError(EscrowError):
    status_code = 404
    default_code = "not_found"


class ServiceUnavailable(EscrowError):
    status_code = 503
    default_code = "storage_unavailable"
