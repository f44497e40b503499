"""
ASGI middleware for Yubico OTP verification (FastAPI/Starlette).
"""

from typing import Any, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from . import DECISION_HEADER, OTP_HEADER
from ..client import VerifierClient
from ..errors import YubicoError
from ..models import OTPState, VerificationResult

logger = structlog.get_logger(__name__)


class YubicoOTPASGIMiddleware(BaseHTTPMiddleware):
    """
    ASGI middleware for Yubico OTP verification.

    Attaches verification state to `request.state.yubico` with:
    - present: bool - whether the request carried an OTP header
    - result: VerificationResult | None - verification result if present
    - error: str | None - failure reason if not verified

    Args:
        app: ASGI application
        client: VerifierClient to use (default: built from YUBICO_* settings)
        require_verified: If True, return 401 for a missing or unverified OTP.
            If False (default), operate in observe mode - attach state but allow all.
        header_name: Request header carrying the OTP (default: X-Yubico-OTP)

    Example (FastAPI):
        >>> from fastapi import FastAPI, Request
        >>> from yubiotp_verifier import VerifierClient, YubicoOTPASGIMiddleware
        >>>
        >>> app = FastAPI()
        >>> app.add_middleware(
        ...     YubicoOTPASGIMiddleware,
        ...     client=VerifierClient("12345", key="c2VjcmV0"),
        ...     require_verified=True,
        ... )
    """

    def __init__(
        self,
        app: Any,
        client: VerifierClient | None = None,
        require_verified: bool = False,
        header_name: str = OTP_HEADER,
    ):
        super().__init__(app)
        self.client = client or VerifierClient.from_settings()
        self.require_verified = require_verified
        self.header_name = header_name.lower()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        token = request.headers.get(self.header_name)

        if not token:
            request.state.yubico = OTPState(present=False)

            if self.require_verified:
                return JSONResponse(
                    status_code=401,
                    content={"error": "Missing Yubico OTP"},
                    headers={DECISION_HEADER: "deny"},
                )

            return await call_next(request)

        error: str | None = None
        result: VerificationResult | None = None
        try:
            result = await self.client.verify(token)
        except YubicoError as e:
            result = e.result
            error = e.message
        except Exception as e:
            logger.exception("OTP verification failed", path=request.url.path)
            error = f"Verification failed: {e}"

        state = OTPState(present=True, result=result, error=error)
        request.state.yubico = state

        if self.require_verified and not state.verified:
            return JSONResponse(
                status_code=401,
                content={"error": error or "OTP verification failed"},
                headers={DECISION_HEADER: "deny"},
            )

        response = await call_next(request)
        response.headers[DECISION_HEADER] = "allow" if state.verified else "observe"
        return response
