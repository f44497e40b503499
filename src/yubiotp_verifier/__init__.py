"""
Yubico OTP verifier for Python

Validate Yubico OTPs against the YubiCloud validation servers (protocol 2.0),
racing all servers concurrently and checking response signatures.
"""

__version__ = "0.1.0"

from .models import ParsedToken, Verdict, VerificationResult, OTPState
from .errors import (
    YubicoError,
    TokenParseError,
    ReplayedOTP,
    NoValidAnswer,
    ServerReportedError,
    TransportFailure,
    TransportError,
    ParameterNotFound,
)
from .token import parse_token
from .request import build_query
from .response import classify, get_parameters
from .racer import HttpxFetcher, race
from .config import YubicoSettings
from .client import VerifierClient, raise_for_verdict

__all__ = [
    "ParsedToken",
    "Verdict",
    "VerificationResult",
    "OTPState",
    "YubicoError",
    "TokenParseError",
    "ReplayedOTP",
    "NoValidAnswer",
    "ServerReportedError",
    "TransportFailure",
    "TransportError",
    "ParameterNotFound",
    "parse_token",
    "build_query",
    "classify",
    "get_parameters",
    "HttpxFetcher",
    "race",
    "YubicoSettings",
    "VerifierClient",
    "raise_for_verdict",
]

# Middleware imports - optional, require framework dependencies
try:
    from .middleware.asgi import YubicoOTPASGIMiddleware
    __all__.append("YubicoOTPASGIMiddleware")
except ImportError:
    pass

try:
    from .middleware.wsgi import YubicoOTPWSGIMiddleware
    __all__.append("YubicoOTPWSGIMiddleware")
except ImportError:
    pass
