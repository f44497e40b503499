"""
Exceptions raised by the Yubico OTP verifier.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import VerificationResult


class YubicoError(Exception):
    """
    Base exception for verification failures.

    Attributes:
        code: Short machine-readable error code
        message: Human readable description
        result: Per-call diagnostics (query, response) when a race took place
    """

    code = "YUBICO_ERROR"

    def __init__(
        self,
        message: str,
        result: VerificationResult | None = None,
        code: str | None = None,
    ):
        if code is not None:
            self.code = code
        self.message = message
        self.result = result
        super().__init__(message)


class TokenParseError(YubicoError):
    """Input matches neither the modhex nor the Dvorak alphabet."""

    code = "PARSE_FAILURE"


class ReplayedOTP(YubicoError):
    """A validation server reported the OTP as already used."""

    code = "REPLAYED_OTP"


class NoValidAnswer(YubicoError):
    """
    No server produced a decisive answer.

    `status` holds the last status token seen in any response, if one was seen.
    """

    code = "NO_VALID_ANSWER"

    def __init__(
        self,
        message: str = "NO_VALID_ANSWER",
        result: VerificationResult | None = None,
        status: str | None = None,
        code: str | None = None,
    ):
        self.status = status
        super().__init__(message, result=result, code=code)


class ServerReportedError(NoValidAnswer):
    """A checked response carried a status other than OK or REPLAYED_OTP."""

    def __init__(self, status: str, result: VerificationResult | None = None):
        super().__init__(status, result=result, status=status, code=status)


class TransportFailure(YubicoError):
    """Every endpoint failed at the transport level."""

    code = "TRANSPORT_FAILURE"


class TransportError(YubicoError):
    """A single fetch failed (connection error, timeout or HTTP error status)."""

    code = "TRANSPORT_ERROR"


class ParameterNotFound(YubicoError):
    """A requested numeric field is absent from the response body."""

    code = "PARAMETER_NOT_FOUND"
