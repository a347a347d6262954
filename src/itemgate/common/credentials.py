"""Credential loading at process start."""

from __future__ import annotations

from dataclasses import dataclass, field

from itemgate.common.errors import FatalConfigError
from itemgate.common.settings import Settings


@dataclass(frozen=True)
class CredentialPair:
    """API key and HMAC secret, fixed for the life of the process."""

    api_key: str = field(repr=False)
    secret: str = field(repr=False)


def load_credentials(settings: Settings) -> CredentialPair:
    """Build the credential pair, failing closed if either half is missing."""
    api_key = settings.api_key
    secret = settings.secret
    if not api_key or not secret:
        missing = [
            name
            for name, value in (("api_key", api_key), ("secret", secret))
            if not value
        ]
        env_names = ", ".join(f"ITEMGATE_{name.upper()}" for name in missing)
        raise FatalConfigError(f"Missing required credentials: {env_names}")
    return CredentialPair(api_key=api_key, secret=secret)


def load_bearer_token(settings: Settings) -> str:
    """Return the static bearer token or fail closed."""
    if not settings.bearer_token:
        raise FatalConfigError("Missing required credentials: ITEMGATE_BEARER_TOKEN")
    return settings.bearer_token
