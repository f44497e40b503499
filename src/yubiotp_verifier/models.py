"""
Data models for Yubico OTP verification.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Sequence


class Verdict(str, enum.Enum):
    """Terminal outcome of a verification call."""

    VALID = "VALID"
    REPLAYED = "REPLAYED"
    SERVER_ERROR = "SERVER_ERROR"
    NO_DECISIVE_ANSWER = "NO_DECISIVE_ANSWER"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    PARSE_FAILURE = "PARSE_FAILURE"


@dataclass(frozen=True)
class ParsedToken:
    """
    A raw token split into its structural parts.

    Attributes:
        password: Text before the delimiter, if the input carried one
        prefix: Public identity of the device (0-16 modhex characters)
        ciphertext: Encrypted block (exactly 32 modhex characters)
    """
    password: str | None
    prefix: str
    ciphertext: str

    @property
    def otp(self) -> str:
        return self.prefix + self.ciphertext


@dataclass
class Classification:
    """
    What a single response body contributed to the race.

    Attributes:
        url: Endpoint URL the body came from
        status: Status token found in the body, if any
        verdict: VALID or REPLAYED when the body is decisive, otherwise None
        relevant: Whether the body echoed the request's otp and nonce
        signature_ok: Result of the HMAC check (None when no key is configured
            or the body was not relevant)
    """
    url: str
    status: str | None = None
    verdict: Verdict | None = None
    relevant: bool = False
    signature_ok: bool | None = None

    @property
    def checked(self) -> bool:
        """True when the body passed the relevance and signature checks."""
        return self.relevant and self.signature_ok is not False


@dataclass
class VerificationResult:
    """
    Outcome and diagnostics of one verification call.

    Attributes:
        verdict: Final verdict
        status: Literal status token behind the verdict, when known
        query: Space-joined list of every URL queried
        response: Decisive response body, or every body tagged with its URL
            when waiting for all servers
        url: Endpoint that produced the decisive response
        responses_received: Number of bodies received before the race ended
    """
    verdict: Verdict
    status: str | None = None
    query: str = ""
    response: str = ""
    url: str | None = None
    responses_received: int = 0
    classifications: Sequence[Classification] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return self.verdict is Verdict.VALID

    def get_parameters(self, names: Sequence[str] | None = None) -> dict[str, str]:
        """Extract numeric fields (timestamp, session counters) from the response."""
        from .response import get_parameters

        return get_parameters(self.response, names, result=self)


@dataclass
class OTPState:
    """
    Yubico OTP state attached to requests by the middleware.

    Attributes:
        present: Whether the request carried an OTP header
        result: Verification result if an OTP was checked
        error: Error message when verification did not succeed
    """
    present: bool
    result: VerificationResult | None = None
    error: str | None = None

    @property
    def verified(self) -> bool:
        return self.result is not None and self.result.verified
