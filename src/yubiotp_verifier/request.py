"""
Construction of canonical, signed validation requests (protocol 2.0).
"""

import base64
import hashlib
import hmac
import uuid
from typing import Any

# Named sync levels accepted by the validation servers
SYNC_LEVELS = frozenset({"fast", "secure"})


def generate_nonce() -> str:
    """Return a fresh 32 character nonce for a single request."""
    return uuid.uuid4().hex


def sign(data: str, key: bytes) -> str:
    """Base64-encoded HMAC-SHA1 of `data` under `key`."""
    digest = hmac.new(key, data.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def _check_sync_level(sl: Any) -> str:
    value = str(sl).strip().lower()
    if value in SYNC_LEVELS:
        return value
    if value.isdigit() and 0 <= int(value) <= 100:
        return str(int(value))
    raise ValueError(
        f"Invalid sync level {sl!r}: expected a percentage (0-100), 'fast' or 'secure'"
    )


def build_params(
    otp: str,
    client_id: str,
    *,
    nonce: str | None = None,
    timestamp: bool = False,
    sl: int | str | None = None,
    timeout: int | None = None,
) -> dict[str, str]:
    """
    Build the request parameters, sorted by name.

    Optional parameters are only included when set.

    Raises:
        ValueError: If the sync level is neither a percentage nor a named level
    """
    params: dict[str, str] = {
        "id": str(client_id),
        "otp": otp,
        "nonce": nonce or generate_nonce(),
    }
    if timestamp:
        params["timestamp"] = "1"
    if sl is not None and sl != "":
        params["sl"] = _check_sync_level(sl)
    if timeout:
        params["timeout"] = str(int(timeout))

    return dict(sorted(params.items()))


def build_query(
    otp: str,
    client_id: str,
    key: bytes = b"",
    *,
    nonce: str | None = None,
    timestamp: bool = False,
    sl: int | str | None = None,
    timeout: int | None = None,
) -> tuple[str, dict[str, str]]:
    """
    Build the query string sent to every validation server.

    Parameters are serialized as `name=value` pairs in ascending name order.
    When a key is configured the serialized string is signed and the signature
    appended as a trailing `h` parameter, with `+` escaped so it survives in a
    query string.

    Args:
        otp: The OTP to validate
        client_id: Client identity issued with the API key
        key: Decoded shared key; empty to send unsigned requests
        nonce: Nonce to use (generated when omitted)
        timestamp: Ask for timestamp and session counter information
        sl: Sync level, percentage or "fast"/"secure"
        timeout: Seconds the server may wait for sync responses

    Returns:
        (query string, parameters used), the parameters without `h`

    Examples:
        >>> query, _ = build_query("vvvv", "1", nonce="abc")
        >>> query
        'id=1&nonce=abc&otp=vvvv'
    """
    params = build_params(
        otp,
        client_id,
        nonce=nonce,
        timestamp=timestamp,
        sl=sl,
        timeout=timeout,
    )
    query = "&".join(f"{name}={value}" for name, value in params.items())

    if key:
        signature = sign(query, key).replace("+", "%2B")
        query = f"{query}&h={signature}"

    return query, params
