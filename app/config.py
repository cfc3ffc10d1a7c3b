"""
Application configuration from environment.
Gateway credentials and URLs are read from env; no defaults for secrets.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment (and .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gateway OAuth (client-credentials grant)
    phonepe_client_id: str = ""
    phonepe_client_secret: str = ""
    phonepe_client_version: str = "1"
    phonepe_merchant_id: str = ""
    phonepe_base_url: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"

    # Callback verification: v2 Authorization header, or legacy X-VERIFY checksum
    phonepe_callback_username: Optional[str] = None
    phonepe_callback_password: Optional[str] = None
    phonepe_salt_key: Optional[str] = None
    phonepe_salt_index: int = 1

    # Public URLs used for redirect/callback and for the pages polling the API
    frontend_url: str = "http://localhost:5000"
    backend_url: str = "http://localhost:5000"

    # Server
    host: str = "0.0.0.0"
    port: int = 5000
    api_prefix: str = "/api"

    # Observability
    sentry_dsn: Optional[str] = None
    app_env: str = "development"
    log_level: str = "INFO"

    # Timeouts (seconds)
    gateway_request_timeout: float = 15.0
    backend_request_timeout: float = 10.0

    # Bank transfer instructions shown instead of the hosted checkout
    bank_account_name: str = "Subscriptions Pvt Ltd"
    bank_account_number: str = "000000000000"
    bank_ifsc: str = "XXXX0000000"
    bank_name: str = "Your Bank"

    @property
    def callback_url(self) -> str:
        return f"{self.backend_url.rstrip('/')}{self.api_prefix}/payment/callback"

    @property
    def redirect_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/success"


@lru_cache
def get_settings() -> Settings:
    return Settings()
