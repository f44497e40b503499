"""
FastAPI demo with Yubico OTP verification.

Usage:
    # Install dependencies
    pip install -e ".[fastapi]"

    # Run the server
    uvicorn examples.fastapi_demo:app --port 8009 --reload

    # Or directly
    python examples/fastapi_demo.py

Test with curl (touch the key to type an OTP):
    # Public endpoint (no OTP required)
    curl http://localhost:8009/public

    # Protected endpoint (401 in require mode without a valid OTP)
    curl -H "X-Yubico-OTP: <otp>" http://localhost:8009/protected

Environment variables:
    YUBICO_CLIENT_ID - Client id from https://upgrade.yubico.com/getapikey/
    YUBICO_SECRET_KEY - Base64 API key matching the client id
    YUBICO_ENDPOINTS - JSON list overriding the validation servers
    YUBICO_REQUIRE_VERIFIED - Set to "true" to enforce verification (default: observe mode)
"""

import os

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Import from installed package
from yubiotp_verifier import VerifierClient, YubicoOTPASGIMiddleware, YubicoSettings

settings = YubicoSettings()
REQUIRE_VERIFIED = os.getenv("YUBICO_REQUIRE_VERIFIED", "false").lower() == "true"

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
)

app = FastAPI(
    title="Yubico OTP Demo API",
    description="Demo API guarded by Yubico OTP verification",
    version="0.1.0",
)

app.add_middleware(
    YubicoOTPASGIMiddleware,
    client=VerifierClient.from_settings(settings),
    require_verified=REQUIRE_VERIFIED,
)


@app.get("/")
async def root():
    """API info endpoint."""
    return {
        "service": "Yubico OTP Demo API",
        "validation_servers": settings.endpoints,
        "require_verified": REQUIRE_VERIFIED,
        "endpoints": {
            "/public": "No OTP required",
            "/protected": "OTP verification checked (401 in require mode)",
        },
    }


@app.get("/public")
async def public():
    """Public endpoint - no OTP required."""
    return {"message": "This is public content", "access": "unrestricted"}


@app.get("/protected")
async def protected(request: Request):
    """
    Protected endpoint - checks OTP verification.

    In observe mode (require_verified=False):
        Returns 200 with verification status.

    In require mode (require_verified=True):
        Returns 401 if not verified (handled by middleware before reaching this handler).
    """
    state = getattr(request.state, "yubico", None)

    if not state:
        return JSONResponse(
            status_code=500,
            content={"error": "Middleware not configured"},
        )

    response_data = {
        "present": state.present,
        "verified": state.verified,
    }

    if state.present:
        if state.verified:
            response_data["message"] = "Access granted - OTP verified"
            response_data["server"] = state.result.url
        else:
            response_data["message"] = "OTP present but verification failed"
            response_data["error"] = state.error
    else:
        response_data["message"] = "No OTP provided"
        response_data["hint"] = "Send the OTP in the X-Yubico-OTP header"

    return response_data


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8009)
