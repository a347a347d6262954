"""Authentication gates and middleware.

Requests to the protected resource pass through an ordered list of gates.
Each gate returns ``None`` to let the request continue, or an ``AuthFailure``
that ends the request before any handler runs.
"""

from __future__ import annotations

import hmac
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from itemgate.common.credentials import CredentialPair, load_bearer_token, load_credentials
from itemgate.common.errors import AuthFailure, AuthFailureKind
from itemgate.common.hmac import SignatureScheme, canonical_string, sign, verify
from itemgate.common.http import parse_request_body
from itemgate.common.logging import get_logger
from itemgate.common.metrics import record_auth_decision
from itemgate.common.settings import Settings

logger = get_logger(__name__)
audit_logger = get_logger("itemgate.audit")

WRITE_METHODS = frozenset({"POST", "PUT", "DELETE"})
SUPPORTED_METHODS = frozenset({"GET"}) | WRITE_METHODS

MethodPolicy = Literal["uniform", "get-only"]


@dataclass(frozen=True)
class HeaderNames:
    """Names of the headers carrying the signed-request credentials."""

    key: str = "access_key"
    signature: str = "access_sign"
    timestamp: str = "access_timestamp"


@dataclass(frozen=True)
class SignedHeaders:
    """Credential values presented by the caller."""

    api_key: str = field(repr=False)
    signature: str
    timestamp: str


def extract_signed_headers(
    headers: Mapping[str, str],
    names: HeaderNames = HeaderNames(),
) -> SignedHeaders | AuthFailure:
    """Pull the three credential headers, or report them missing."""
    if not isinstance(headers, Headers):
        headers = Headers(headers=dict(headers))

    api_key = headers.get(names.key)
    signature = headers.get(names.signature)
    timestamp = headers.get(names.timestamp)
    if not api_key or not signature or not timestamp:
        return AuthFailure(AuthFailureKind.MISSING_CREDENTIALS)
    return SignedHeaders(api_key=api_key, signature=signature, timestamp=timestamp)


@dataclass(frozen=True)
class SignatureVerifier:
    """Stateless check of one request against the configured credentials."""

    credentials: CredentialPair
    path: str
    scheme: SignatureScheme = SignatureScheme.BASE64
    policy: MethodPolicy = "uniform"
    header_names: HeaderNames = HeaderNames()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialPair | None = None,
    ) -> SignatureVerifier:
        return cls(
            credentials=credentials or load_credentials(settings),
            path=settings.protected_path,
            scheme=SignatureScheme(settings.signature_scheme),
            policy=settings.method_policy,
            header_names=HeaderNames(
                key=settings.key_header,
                signature=settings.signature_header,
                timestamp=settings.timestamp_header,
            ),
        )

    def check_method(self, method: str) -> AuthFailure | None:
        """Reject methods the protocol does not cover."""
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            return AuthFailure(AuthFailureKind.UNSUPPORTED_METHOD, method=method)
        # Legacy policy: writes were never wired up to verification.
        if self.policy == "get-only" and method in WRITE_METHODS:
            return AuthFailure(AuthFailureKind.NOT_IMPLEMENTED, method=method)
        return None

    def expected_signature(self, method: str, timestamp: str, body: Any | None = None) -> str:
        """Signature a correctly configured client would send."""
        method = method.upper()
        signed_body = body if method in WRITE_METHODS else None
        message = canonical_string(method, self.path, timestamp, signed_body)
        return sign(self.credentials.secret, message, self.scheme)

    def authenticate(self, method: str, headers: Mapping[str, str]) -> SignedHeaders | AuthFailure:
        """Run every check that does not need the body."""
        method = method.upper()
        failure = self.check_method(method)
        if failure is not None:
            return failure

        extracted = extract_signed_headers(headers, self.header_names)
        if isinstance(extracted, AuthFailure):
            return extracted

        # Key before signature, so a wrong key never reports a signature failure.
        if not hmac.compare_digest(
            extracted.api_key.encode("utf-8"),
            self.credentials.api_key.encode("utf-8"),
        ):
            return AuthFailure(AuthFailureKind.INVALID_CREDENTIAL)
        return extracted

    def check_signature(
        self,
        method: str,
        signed: SignedHeaders,
        body: Any | None = None,
    ) -> AuthFailure | None:
        """Compare the presented signature with the one computed locally."""
        method = method.upper()
        signed_body = body if method in WRITE_METHODS else None
        message = canonical_string(method, self.path, signed.timestamp, signed_body)
        if not verify(self.credentials.secret, message, signed.signature, self.scheme):
            return AuthFailure(AuthFailureKind.SIGNATURE_MISMATCH)
        return None

    def verify(
        self,
        method: str,
        headers: Mapping[str, str],
        body: Any | None = None,
    ) -> AuthFailure | None:
        """Return ``None`` to admit the request, or the reason it is refused."""
        signed = self.authenticate(method, headers)
        if isinstance(signed, AuthFailure):
            return signed
        return self.check_signature(method, signed, body)


def check_bearer(authorization: str | None, token: str) -> AuthFailure | None:
    """Compare an ``Authorization: Bearer <token>`` header against ``token``."""
    if not authorization:
        return AuthFailure(AuthFailureKind.MISSING_AUTH)

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return AuthFailure(AuthFailureKind.MALFORMED_AUTH)

    if not hmac.compare_digest(parts[1].encode("utf-8"), token.encode("utf-8")):
        return AuthFailure(AuthFailureKind.INVALID_TOKEN)
    return None


Gate = Callable[[Request], Awaitable[AuthFailure | None]]


class SignatureGate:
    """Gate that verifies access_sign signatures."""

    name = "signature"

    def __init__(self, verifier: SignatureVerifier) -> None:
        self._verifier = verifier

    async def __call__(self, request: Request) -> AuthFailure | None:
        method = request.method.upper()
        signed = self._verifier.authenticate(method, request.headers)
        if isinstance(signed, AuthFailure):
            return signed

        body = None
        if method in WRITE_METHODS:
            try:
                body = await parse_request_body(request)
            except ValueError:
                return AuthFailure(AuthFailureKind.MALFORMED_BODY)

        failure = self._verifier.check_signature(method, signed, body)
        if failure is None:
            audit_logger.info(
                "Request admitted",
                method=method,
                path=request.url.path,
                scheme=self._verifier.scheme.value,
            )
        return failure


class BearerGate:
    """Gate that compares a static bearer token."""

    name = "bearer"

    def __init__(self, token: str) -> None:
        self._token = token

    async def __call__(self, request: Request) -> AuthFailure | None:
        failure = check_bearer(request.headers.get("Authorization"), self._token)
        if failure is None:
            audit_logger.info("Request admitted", method=request.method, path=request.url.path)
        return failure


def build_gates(settings: Settings) -> list[Gate]:
    """Assemble the gate pipeline for the configured auth mode.

    Raises:
        FatalConfigError: If the mode's credentials are not configured.
    """
    if settings.auth_mode == "signature":
        return [SignatureGate(SignatureVerifier.from_settings(settings))]
    if settings.auth_mode == "bearer":
        return [BearerGate(load_bearer_token(settings))]
    return []


class AuthGateMiddleware(BaseHTTPMiddleware):
    """Run the gate pipeline in front of the protected resource."""

    def __init__(
        self,
        app: ASGIApp,
        settings: Settings,
        gates: list[Gate] | None = None,
    ) -> None:
        super().__init__(app)
        self._protected_path = settings.protected_path
        self._exempt_paths = set(settings.auth_exempt_paths)
        self._gates = gates if gates is not None else build_gates(settings)

    def _is_protected(self, path: str) -> bool:
        if path in self._exempt_paths:
            return False
        return path == self._protected_path or path.startswith(self._protected_path + "/")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._is_protected(request.url.path):
            return await call_next(request)

        for gate in self._gates:
            gate_name = getattr(gate, "name", type(gate).__name__)
            failure = await gate(request)
            if failure is not None:
                logger.warning(
                    "Request rejected",
                    gate=gate_name,
                    check=failure.kind.value,
                    method=request.method,
                    path=request.url.path,
                )
                record_auth_decision(gate_name, "denied", failure.kind.value)
                return failure.to_response()
            record_auth_decision(gate_name, "admitted", "ok")

        return await call_next(request)
