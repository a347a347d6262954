"""Shared error helpers and codes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from starlette.responses import JSONResponse


class ErrorCode:
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    SERVER_NOT_READY = "server_not_ready"
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"


class FatalConfigError(Exception):
    """Required configuration is missing; the process must not start."""


class ItemNotFoundError(Exception):
    """No item exists with the requested id."""

    def __init__(self, item_id: int | str) -> None:
        super().__init__(f"Item {item_id} not found")
        self.item_id = item_id


class ItemValidationError(Exception):
    """Item payload failed validation."""


class AuthFailureKind(str, Enum):
    """Reasons a request is refused by an auth gate."""

    MISSING_CREDENTIALS = "missing_credentials"
    INVALID_CREDENTIAL = "invalid_credential"
    SIGNATURE_MISMATCH = "signature_mismatch"
    UNSUPPORTED_METHOD = "unsupported_method"
    NOT_IMPLEMENTED = "not_implemented"
    MALFORMED_BODY = "malformed_body"
    MISSING_AUTH = "missing_auth"
    MALFORMED_AUTH = "malformed_auth"
    INVALID_TOKEN = "invalid_token"


_FAILURE_RESPONSES: dict[AuthFailureKind, tuple[int, str]] = {
    AuthFailureKind.MISSING_CREDENTIALS: (401, "Check your headers again!"),
    AuthFailureKind.INVALID_CREDENTIAL: (401, "Invalid Credential"),
    AuthFailureKind.SIGNATURE_MISMATCH: (401, "Signature Failure"),
    AuthFailureKind.UNSUPPORTED_METHOD: (405, "Method not allowed"),
    AuthFailureKind.NOT_IMPLEMENTED: (404, "{method} requests are not implemented yet"),
    AuthFailureKind.MALFORMED_BODY: (400, "Invalid request body"),
    AuthFailureKind.MISSING_AUTH: (401, "Authorization header missing"),
    AuthFailureKind.MALFORMED_AUTH: (400, "Malformed authorization header"),
    AuthFailureKind.INVALID_TOKEN: (401, "Invalid token"),
}


@dataclass(frozen=True)
class AuthFailure:
    """A terminal auth decision with its client-safe response."""

    kind: AuthFailureKind
    method: str = ""

    @property
    def status_code(self) -> int:
        return _FAILURE_RESPONSES[self.kind][0]

    @property
    def message(self) -> str:
        return _FAILURE_RESPONSES[self.kind][1].format(method=self.method)

    def to_response(self) -> JSONResponse:
        return error_response(self.kind.value, self.message, self.status_code)


def error_response(
    code: str,
    message: str,
    status_code: int,
) -> JSONResponse:
    return JSONResponse({"message": message, "code": code}, status_code=status_code)
