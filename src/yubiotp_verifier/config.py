"""Settings for the verifier client, loaded from the environment or .env."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINTS = [
    "api.yubico.com/wsapi/2.0/verify",
    "api2.yubico.com/wsapi/2.0/verify",
    "api3.yubico.com/wsapi/2.0/verify",
    "api4.yubico.com/wsapi/2.0/verify",
    "api5.yubico.com/wsapi/2.0/verify",
]


class YubicoSettings(BaseSettings):
    client_id: str = ""
    # Base64 API key as issued by upgrade.yubico.com/getapikey
    secret_key: str = ""
    https: bool = True
    verify_tls: bool = True
    # JSON list in the environment, e.g. YUBICO_ENDPOINTS='["api.example.com/verify"]'
    endpoints: list[str] = Field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    timeout_s: float = 5.0

    @field_validator("endpoints")
    @classmethod
    def strip_scheme(cls, value: list[str]) -> list[str]:
        endpoints = [e.strip().split("://", 1)[-1] for e in value if e.strip()]
        if not endpoints:
            raise ValueError("at least one validation endpoint is required")
        return endpoints

    model_config = SettingsConfigDict(
        env_prefix="YUBICO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
