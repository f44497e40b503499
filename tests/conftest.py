"""Shared fixtures and helpers for the verifier tests."""

import asyncio
import base64
from urllib.parse import parse_qsl, urlsplit

import httpx
import pytest
import respx

from yubiotp_verifier.errors import TransportError
from yubiotp_verifier.request import sign
from yubiotp_verifier.response import response_check_string

KEY = b"\x8a\x1f\xd4shared-test-key\x00\x17"
KEY_B64 = base64.b64encode(KEY).decode("ascii")
CLIENT_ID = "87"

PREFIX = "ccccccbchvth"
CIPHERTEXT = "livuitriujjifivbvtrjkjfirllluurj"
OTP = PREFIX + CIPHERTEXT

ENDPOINTS = [
    "api1.test/wsapi/2.0/verify",
    "api2.test/wsapi/2.0/verify",
    "api3.test/wsapi/2.0/verify",
]


def make_body(
    otp: str,
    nonce: str,
    status: str = "OK",
    key: bytes = b"",
    **extra: str,
) -> str:
    """Build a validation response body, signed when a key is given."""
    fields = {
        "t": "2024-05-01T10:20:30Z0123",
        "otp": otp,
        "nonce": nonce,
        "sl": "25",
        "status": status,
        **extra,
    }
    if key:
        fields = {"h": sign(response_check_string(fields), key), **fields}
    return "".join(f"{name}={value}\r\n" for name, value in fields.items()) + "\r\n"


def request_params(url: str) -> dict[str, str]:
    return dict(parse_qsl(urlsplit(str(url)).query, keep_blank_values=True))


def answer(status: str = "OK", key: bytes = b"", otp: str | None = None, **extra: str):
    """Responder echoing the request's otp (unless overridden) and nonce."""

    def respond(params: dict[str, str]) -> str:
        return make_body(otp or params["otp"], params["nonce"], status, key, **extra)

    return respond


class ScriptedFetcher:
    """
    Fetcher answering each host from a script.

    Script values are (delay, responder) where the responder is a callable
    taking the request parameters, or an exception instance to raise.
    """

    def __init__(self, script):
        self.script = script
        self.calls: list[str] = []
        self.cancelled: list[str] = []
        self.timeouts: list[float | None] = []

    async def __call__(self, url, *, verify_tls, timeout):
        self.calls.append(url)
        self.timeouts.append(timeout)
        host = urlsplit(url).netloc
        delay, responder = self.script[host]
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(host)
            raise
        if isinstance(responder, Exception):
            raise responder
        return responder(request_params(url))


def transport_error(message: str = "connection refused") -> TransportError:
    return TransportError(message)


def respx_answer(responder):
    """Adapt a responder to a respx side effect."""

    def side_effect(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=responder(request_params(request.url)))

    return side_effect


@pytest.fixture
def mock_servers():
    """Create a respx mock for the validation servers."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock
