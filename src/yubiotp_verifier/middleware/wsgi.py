"""
WSGI middleware for Yubico OTP verification (Flask).
"""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable

import structlog

from . import DECISION_HEADER, OTP_HEADER
from ..client import VerifierClient
from ..errors import YubicoError
from ..models import OTPState, VerificationResult

logger = structlog.get_logger(__name__)

# WSGI environ key holding the OTPState
ENVIRON_KEY = "yubiotp.state"


def _environ_key(header_name: str) -> str:
    """X-Yubico-OTP -> HTTP_X_YUBICO_OTP"""
    return "HTTP_" + header_name.upper().replace("-", "_")


class YubicoOTPWSGIMiddleware:
    """
    WSGI middleware for Yubico OTP verification.

    Attaches verification state to `environ["yubiotp.state"]` with:
    - present: bool - whether the request carried an OTP header
    - result: VerificationResult | None - verification result if present
    - error: str | None - failure reason if not verified

    Args:
        app: WSGI application
        client: VerifierClient to use (default: built from YUBICO_* settings)
        require_verified: If True, return 401 for a missing or unverified OTP.
            If False (default), operate in observe mode - attach state but allow all.
        header_name: Request header carrying the OTP (default: X-Yubico-OTP)

    Example (Flask):
        >>> from flask import Flask, g, request
        >>> from yubiotp_verifier.middleware.wsgi import YubicoOTPWSGIMiddleware
        >>>
        >>> app = Flask(__name__)
        >>> app.wsgi_app = YubicoOTPWSGIMiddleware(app.wsgi_app, require_verified=True)
        >>>
        >>> @app.route("/protected")
        >>> def protected():
        ...     state = request.environ["yubiotp.state"]
        ...     return {"device": state.result.url}
    """

    def __init__(
        self,
        app: Callable[..., Iterable[bytes]],
        client: VerifierClient | None = None,
        require_verified: bool = False,
        header_name: str = OTP_HEADER,
    ):
        self.app = app
        self.client = client or VerifierClient.from_settings()
        self.require_verified = require_verified
        self.environ_key = _environ_key(header_name)

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        token = environ.get(self.environ_key)

        if not token:
            environ[ENVIRON_KEY] = OTPState(present=False)

            if self.require_verified:
                return self._error_response(start_response, "Missing Yubico OTP")

            return self.app(environ, start_response)

        error: str | None = None
        result: VerificationResult | None = None
        try:
            result = self.client.verify_sync(token)
        except YubicoError as e:
            result = e.result
            error = e.message
        except Exception as e:
            logger.exception("OTP verification failed", path=environ.get("PATH_INFO"))
            error = f"Verification failed: {e}"

        state = OTPState(present=True, result=result, error=error)
        environ[ENVIRON_KEY] = state

        if self.require_verified and not state.verified:
            return self._error_response(
                start_response,
                error or "OTP verification failed",
            )

        def custom_start_response(
            status: str,
            response_headers: list[tuple[str, str]],
            exc_info: Any = None,
        ) -> Any:
            decision = "allow" if state.verified else "observe"
            response_headers.append((DECISION_HEADER, decision))
            return start_response(status, response_headers, exc_info)

        return self.app(environ, custom_start_response)

    def _error_response(
        self,
        start_response: Callable[..., Any],
        error: str,
    ) -> Iterable[bytes]:
        """Return 401 error response."""
        body = json.dumps({"error": error}).encode("utf-8")
        start_response(
            "401 Unauthorized",
            [
                ("Content-Type", "application/json"),
                ("Content-Length", str(len(body))),
                (DECISION_HEADER, "deny"),
            ],
        )
        return [body]
