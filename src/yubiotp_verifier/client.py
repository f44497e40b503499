"""
Verifier client for validating Yubico OTPs against the YubiCloud servers.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from typing import TYPE_CHECKING, Sequence

import structlog

from .config import DEFAULT_ENDPOINTS
from .errors import (
    NoValidAnswer,
    ReplayedOTP,
    ServerReportedError,
    TokenParseError,
    TransportFailure,
)
from .models import ParsedToken, VerificationResult, Verdict
from .racer import Fetcher, HttpxFetcher, race
from .request import build_query
from .token import DEFAULT_DELIMITER, parse_token

if TYPE_CHECKING:
    from .config import YubicoSettings

logger = structlog.get_logger(__name__)


def _decode_key(key: str | bytes) -> bytes:
    key = key.strip()
    if not key:
        return b""
    try:
        return base64.b64decode(key, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Shared key is not valid base64: {e}") from e


def raise_for_verdict(result: VerificationResult) -> VerificationResult:
    """
    Return the result if the OTP is valid, otherwise raise the matching error.

    Raises:
        TokenParseError: The input was not an OTP
        ReplayedOTP: A server reported the OTP as replayed
        ServerReportedError: A checked response carried another status
        NoValidAnswer: Responses arrived but none was decisive
        TransportFailure: No server returned a body
    """
    verdict = result.verdict
    if verdict is Verdict.VALID:
        return result
    if verdict is Verdict.PARSE_FAILURE:
        raise TokenParseError("Could not parse Yubikey OTP", result=result)
    if verdict is Verdict.REPLAYED:
        raise ReplayedOTP("REPLAYED_OTP", result=result)
    if verdict is Verdict.SERVER_ERROR:
        raise ServerReportedError(result.status or "UNKNOWN", result=result)
    if verdict is Verdict.TRANSPORT_FAILURE:
        raise TransportFailure("No validation server could be reached", result=result)
    raise NoValidAnswer(result=result, status=result.status)


class VerifierClient:
    """
    Client for the Yubico OTP validation service (protocol 2.0).

    Every verification sends the same signed request to all endpoints at
    once; the first server to answer OK or REPLAYED_OTP decides.

    Args:
        client_id: Client identity issued with the API key
        key: Base64 API key. Default: "" (requests and responses unsigned)
        https: Use https:// for requests. Default: True
        verify_tls: Verify server certificates. Default: True
        endpoints: Host and path fragments of the validation servers.
            Default: api.yubico.com ... api5.yubico.com
        timeout_s: Per-request timeout in seconds. Default: 5.0
        fetcher: Transport override, see racer.Fetcher

    Example:
        >>> client = VerifierClient("12345", key="c2VjcmV0")
        >>> result = await client.verify("ccccccbchvthlivuitriujjifivbvtrjkjfirllluurj")
        >>> result.get_parameters(["timestamp"])
    """

    def __init__(
        self,
        client_id: str,
        key: str | bytes = "",
        https: bool = True,
        verify_tls: bool = True,
        endpoints: Sequence[str] | None = None,
        timeout_s: float = 5.0,
        fetcher: Fetcher | None = None,
    ):
        self.client_id = str(client_id)
        self.key = _decode_key(key)
        self.https = https
        self.verify_tls = verify_tls
        self.timeout_s = timeout_s
        self.endpoints = endpoints or DEFAULT_ENDPOINTS
        self.fetcher = fetcher or HttpxFetcher(timeout_s=timeout_s)

    @classmethod
    def from_settings(
        cls,
        settings: YubicoSettings | None = None,
        fetcher: Fetcher | None = None,
    ) -> VerifierClient:
        """Build a client from YubicoSettings (read from YUBICO_* variables by default)."""
        if settings is None:
            from .config import YubicoSettings

            settings = YubicoSettings()

        return cls(
            client_id=settings.client_id,
            key=settings.secret_key,
            https=settings.https,
            verify_tls=settings.verify_tls,
            endpoints=settings.endpoints,
            timeout_s=settings.timeout_s,
            fetcher=fetcher,
        )

    @property
    def endpoints(self) -> list[str]:
        """Host and path fragments queried on each verification."""
        return list(self._endpoints)

    @endpoints.setter
    def endpoints(self, value: Sequence[str]) -> None:
        if isinstance(value, str) or not value:
            raise ValueError("endpoints must be a non-empty sequence of host/path strings")
        self._endpoints = tuple(value)

    def parse_token(self, raw: str, delimiter: str = DEFAULT_DELIMITER) -> ParsedToken | None:
        """Split input into password and OTP, see token.parse_token."""
        return parse_token(raw, delimiter)

    async def check(
        self,
        token: str,
        use_timestamp: bool = False,
        wait_for_all: bool = False,
        sl: int | str | None = None,
        timeout: int | None = None,
    ) -> VerificationResult:
        """
        Verify an OTP and return the outcome without raising on failure.

        Args:
            token: OTP, optionally preceded by "password:"
            use_timestamp: Ask for timestamp and session counter information
            wait_for_all: Wait for every server and collect all responses
            sl: Sync level, percentage (0-100) or "fast"/"secure"
            timeout: Seconds the servers may spend; also bounds each request

        Returns:
            VerificationResult with the verdict, query and response

        Raises:
            ValueError: If the sync level is invalid
        """
        parsed = parse_token(token)
        if parsed is None:
            logger.info("Rejected input that is not a Yubikey OTP")
            return VerificationResult(verdict=Verdict.PARSE_FAILURE)

        query, params = build_query(
            parsed.otp,
            self.client_id,
            self.key,
            timestamp=use_timestamp,
            sl=sl,
            timeout=timeout,
        )

        return await race(
            query,
            self._endpoints,
            self.fetcher,
            otp=params["otp"],
            nonce=params["nonce"],
            key=self.key,
            https=self.https,
            verify_tls=self.verify_tls,
            wait_for_all=wait_for_all,
            timeout=timeout,
        )

    async def verify(
        self,
        token: str,
        use_timestamp: bool = False,
        wait_for_all: bool = False,
        sl: int | str | None = None,
        timeout: int | None = None,
    ) -> VerificationResult:
        """
        Verify an OTP asynchronously.

        Args:
            token: OTP, optionally preceded by "password:"
            use_timestamp: Ask for timestamp and session counter information
            wait_for_all: Wait for every server and collect all responses
            sl: Sync level, percentage (0-100) or "fast"/"secure"
            timeout: Seconds the servers may spend; also bounds each request

        Returns:
            VerificationResult of a valid OTP

        Raises:
            TokenParseError: If the input is not an OTP (no request is sent)
            ReplayedOTP: If the OTP was already used
            ServerReportedError: If a server answered e.g. NO_SUCH_CLIENT
            NoValidAnswer: If no server gave a decisive answer
            TransportFailure: If no server could be reached
        """
        result = await self.check(
            token,
            use_timestamp=use_timestamp,
            wait_for_all=wait_for_all,
            sl=sl,
            timeout=timeout,
        )
        return raise_for_verdict(result)

    def verify_sync(
        self,
        token: str,
        use_timestamp: bool = False,
        wait_for_all: bool = False,
        sl: int | str | None = None,
        timeout: int | None = None,
    ) -> VerificationResult:
        """
        Verify an OTP synchronously.

        Runs the same race as verify() on a private event loop, so it must not
        be called from a running loop.
        """
        return asyncio.run(
            self.verify(
                token,
                use_timestamp=use_timestamp,
                wait_for_all=wait_for_all,
                sl=sl,
                timeout=timeout,
            )
        )
