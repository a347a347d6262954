"""Pytest configuration and fixtures."""

from typing import Any

import pytest

from itemgate.common.credentials import CredentialPair
from itemgate.common.hmac import SignatureScheme, canonical_string, serialize_body, sign
from itemgate.common.settings import Settings

API_KEY = "k1"
SECRET = "s3cr3t"

# HMAC-SHA256("GET/items1700000000", "s3cr3t"), computed with openssl.
GET_SIGNATURE = "KAC9rZuyrAkxEPLmFEKipCvAgINmtjSLMc3vKlcDpkU="
GET_SIGNATURE_HEX_BASE64 = (
    "MjgwMGJkYWQ5YmIyYWMwOTMxMTBmMmU2MTQ0MmEyYTQyYmMwODA4MzY2YjYzNDhiMzFjZGVmMmE1NzAzYTY0NQ=="
)
GET_SIGNATURE_NEXT_SECOND = "aDBt1rMXDW7G+XhXY2DeEXW/EzPEmTi+No1rgbXLocQ="
# HMAC-SHA256('POST/items1700000000{"name":"widget"}', "s3cr3t")
POST_WIDGET_SIGNATURE = "2Hqx86onzTee0gChwbqAoJ8BzKfig6SJ+MrFnccaG+Q="


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        api_key=API_KEY,
        secret=SECRET,
        auth_mode="signature",
        signature_scheme="base64",
        method_policy="uniform",
        protected_path="/items",
        item_storage="memory",
    )


@pytest.fixture
def credentials() -> CredentialPair:
    """Fixture credential pair."""
    return CredentialPair(api_key=API_KEY, secret=SECRET)


def signed_headers(
    method: str,
    timestamp: str = "1700000000",
    body: Any | None = None,
    api_key: str = API_KEY,
    secret: str = SECRET,
    path: str = "/items",
    scheme: SignatureScheme = SignatureScheme.BASE64,
) -> dict[str, str]:
    """Headers a well-behaved client would send."""
    message = canonical_string(method, path, timestamp, body)
    headers = {
        "access_key": api_key,
        "access_sign": sign(secret, message, scheme),
        "access_timestamp": timestamp,
    }
    if body is not None:
        headers["Content-Type"] = "application/json"
    return headers


def body_bytes(body: Any) -> bytes:
    """Exact bytes matching the signed serialization."""
    return serialize_body(body).encode("utf-8")
