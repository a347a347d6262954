"""Common utilities for ItemGate."""

from itemgate.common.hmac import SignatureScheme, canonical_string, sign
from itemgate.common.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "SignatureScheme",
    "canonical_string",
    "sign",
]
