"""
Flask demo with Yubico OTP verification.

Usage:
    # Install dependencies
    pip install -e ".[flask]"

    # Run the server
    flask --app examples.flask_demo run --port 8010

    # Or directly
    python examples/flask_demo.py

Test with curl (touch the key to type an OTP):
    # Public endpoint (no OTP required)
    curl http://localhost:8010/public

    # Protected endpoint (401 in require mode without a valid OTP)
    curl -H "X-Yubico-OTP: <otp>" http://localhost:8010/protected

Environment variables:
    YUBICO_CLIENT_ID - Client id from https://upgrade.yubico.com/getapikey/
    YUBICO_SECRET_KEY - Base64 API key matching the client id
    YUBICO_REQUIRE_VERIFIED - Set to "true" to enforce verification (default: observe mode)
"""

import os
from flask import Flask, g, request, jsonify

# Import from installed package
from yubiotp_verifier import VerifierClient, YubicoSettings
from yubiotp_verifier.middleware import YubicoOTPWSGIMiddleware

settings = YubicoSettings()
REQUIRE_VERIFIED = os.getenv("YUBICO_REQUIRE_VERIFIED", "false").lower() == "true"

app = Flask(__name__)

# Wrap with Yubico OTP middleware
app.wsgi_app = YubicoOTPWSGIMiddleware(
    app.wsgi_app,
    client=VerifierClient.from_settings(settings),
    require_verified=REQUIRE_VERIFIED,
)


@app.before_request
def extract_otp_state():
    """Extract OTP state from environ and attach to Flask g object."""
    g.yubico = request.environ.get("yubiotp.state")


@app.route("/")
def root():
    """API info endpoint."""
    return jsonify({
        "service": "Yubico OTP Flask Demo API",
        "validation_servers": settings.endpoints,
        "require_verified": REQUIRE_VERIFIED,
        "endpoints": {
            "/public": "No OTP required",
            "/protected": "OTP verification checked (401 in require mode)",
        },
    })


@app.route("/public")
def public():
    """Public endpoint - no OTP required."""
    return jsonify({"message": "This is public content", "access": "unrestricted"})


@app.route("/protected")
def protected():
    """
    Protected endpoint - checks OTP verification.

    In require mode (require_verified=True):
        Returns 401 if not verified (handled by middleware before reaching this handler).
    """
    state = g.yubico

    if not state:
        return jsonify({"error": "Middleware not configured"}), 500

    response_data = {
        "present": state.present,
        "verified": state.verified,
    }

    if state.present and state.verified:
        response_data["message"] = "Access granted - OTP verified"
        response_data["server"] = state.result.url
    elif state.present:
        response_data["message"] = "OTP present but verification failed"
        response_data["error"] = state.error
    else:
        response_data["message"] = "No OTP provided"

    return jsonify(response_data)


@app.route("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"})


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8010, debug=True)
