"""HTTP client that signs item API requests."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import aiohttp

from itemgate.common.auth import WRITE_METHODS
from itemgate.common.credentials import CredentialPair, load_credentials
from itemgate.common.hmac import SignatureScheme, canonical_string, serialize_body, sign
from itemgate.common.logging import get_logger
from itemgate.common.settings import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class SignedRequest:
    """Headers and exact body bytes for one signed call."""

    headers: dict[str, str]
    body: bytes | None
    canonical: str


def sign_request(
    credentials: CredentialPair,
    method: str,
    path: str,
    timestamp: str,
    body: Any | None = None,
    scheme: SignatureScheme = SignatureScheme.BASE64,
    key_header: str = "access_key",
    signature_header: str = "access_sign",
    timestamp_header: str = "access_timestamp",
) -> SignedRequest:
    """
    Sign a request the way the server will verify it.

    Args:
        credentials: API key and secret
        method: HTTP method
        path: Protected resource path (not the item URL)
        timestamp: Opaque timestamp token
        body: Parsed JSON body for write methods
        scheme: Signature encoding

    Returns:
        Headers to attach and the body bytes to send unchanged
    """
    method = method.upper()
    signed_body = body if method in WRITE_METHODS else None
    message = canonical_string(method, path, timestamp, signed_body)
    headers = {
        key_header: credentials.api_key,
        signature_header: sign(credentials.secret, message, scheme),
        timestamp_header: timestamp,
    }
    payload = None
    if signed_body is not None:
        payload = serialize_body(signed_body).encode("utf-8")
        headers["Content-Type"] = "application/json"
    return SignedRequest(headers=headers, body=payload, canonical=message)


class ItemClientError(Exception):
    """Error returned by the item API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ItemClient:
    """
    Async client for the item API.

    Every call is signed with the current unix time as its timestamp.
    """

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialPair | None = None,
        base_url: str | None = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Application settings
            credentials: Credential pair (defaults to the one in settings)
            base_url: Server URL (defaults to ``client_base_url``)
        """
        self._settings = settings
        self._credentials = credentials or load_credentials(settings)
        self._base_url = (base_url or settings.client_base_url).rstrip("/")
        self._path = settings.protected_path
        self._scheme = SignatureScheme(settings.signature_scheme)
        self._timeout = aiohttp.ClientTimeout(total=settings.http_timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> ItemClient:
        """Enter async context."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        if self._session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists."""
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _request(
        self,
        method: str,
        suffix: str = "",
        body: Any | None = None,
    ) -> Any:
        signed = sign_request(
            self._credentials,
            method,
            self._path,
            str(int(time.time())),
            body,
            scheme=self._scheme,
            key_header=self._settings.key_header,
            signature_header=self._settings.signature_header,
            timestamp_header=self._settings.timestamp_header,
        )
        url = f"{self._base_url}{self._path}{suffix}"
        session = self._ensure_session()
        try:
            async with session.request(
                method,
                url,
                headers=signed.headers,
                data=signed.body,
            ) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None
                if response.status >= 400:
                    message = payload.get("message") if isinstance(payload, dict) else None
                    raise ItemClientError(
                        message or f"HTTP {response.status}",
                        status_code=response.status,
                    )
                return payload
        except aiohttp.ClientError as exc:
            logger.warning("Item API request failed", method=method, url=url, error=str(exc))
            raise ItemClientError(str(exc)) from exc

    async def list_items(self) -> list[dict[str, Any]]:
        """Get all items."""
        return await self._request("GET")

    async def get_item(self, item_id: int) -> dict[str, Any]:
        """Get one item."""
        return await self._request("GET", f"/{item_id}")

    async def create_item(self, name: str) -> dict[str, Any]:
        """Create an item."""
        return await self._request("POST", body={"name": name})

    async def update_item(self, item_id: int, name: str) -> dict[str, Any]:
        """Rename an item."""
        return await self._request("PUT", f"/{item_id}", body={"name": name})

    async def delete_item(self, item_id: int) -> dict[str, Any]:
        """Delete an item and return the server's confirmation."""
        return await self._request("DELETE", f"/{item_id}")
