"""HMAC signing utilities for the access_sign protocol.

The signed string is ``METHOD + path + timestamp`` with the compact JSON body
appended for write requests. Two encodings of the digest are in use:

* ``base64``: base64 of the raw 32-byte HMAC-SHA256 digest.
* ``hex-base64``: base64 of the ASCII hex digest (older clients).

Body serialization is not canonical. Keys keep the order in which they were
received, so two equivalent objects with different key order sign
differently. Clients must sign the exact bytes they send.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from enum import Enum
from typing import Any


class SignatureScheme(str, Enum):
    """Encoding applied to the HMAC digest before transport."""

    BASE64 = "base64"
    HEX_BASE64 = "hex-base64"


def serialize_body(body: Any) -> str:
    """Serialize a parsed body the way JSON.stringify does."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def canonical_string(
    method: str,
    path: str,
    timestamp: str,
    body: Any | None = None,
) -> str:
    """Build the exact string both sides feed to HMAC."""
    message = f"{method.upper()}{path}{timestamp}"
    if body is not None:
        message += serialize_body(body)
    return message


def sign(secret: str, message: str, scheme: SignatureScheme = SignatureScheme.BASE64) -> str:
    """Create a base64 signature for ``message`` under ``scheme``."""
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256)
    if scheme is SignatureScheme.HEX_BASE64:
        raw = digest.hexdigest().encode("ascii")
    else:
        raw = digest.digest()
    return base64.b64encode(raw).decode("ascii")


def verify(
    secret: str,
    message: str,
    signature: str,
    scheme: SignatureScheme = SignatureScheme.BASE64,
) -> bool:
    """Verify a signature in constant time."""
    expected = sign(secret, message, scheme)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))
