"""
Yubico OTP middleware for ASGI and WSGI frameworks.

Re-exports middleware classes for convenient imports:
    from yubiotp_verifier.middleware import YubicoOTPASGIMiddleware
    from yubiotp_verifier.middleware import YubicoOTPWSGIMiddleware
"""

# Header carrying the OTP, optionally as "password:otp"
OTP_HEADER = "x-yubico-otp"

# Response header reporting the middleware decision
DECISION_HEADER = "X-Yubico-Decision"

__all__: list[str] = ["OTP_HEADER", "DECISION_HEADER"]

# ASGI middleware (FastAPI, Starlette)
try:
    from .asgi import YubicoOTPASGIMiddleware
    __all__.append("YubicoOTPASGIMiddleware")
except ImportError:
    pass

# WSGI middleware (Flask)
try:
    from .wsgi import YubicoOTPWSGIMiddleware
    __all__.append("YubicoOTPWSGIMiddleware")
except ImportError:
    pass
