"""
ItemGate: HMAC-signed access to a small item API.

Every request to the item resource carries an API key, an opaque timestamp
and an HMAC-SHA256 signature; the server recomputes the signature before any
handler runs.
"""

__version__ = "1.0.0"
