# ==================================================================================
# core/config.py: FastAPI Configuration (PhonePe + SendGrid + Pydantic v2)
# ==================================================================================
from functools import lru_cache
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import EmailStr

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # ------------------------
    # DATABASE CONFIG
    # ------------------------
    DATABASE_URL: str = "sqlite:///./mess.db"

    # ------------------------
    # IDENTITY PROVIDER (JWT verification only)
    # ------------------------
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str | None = None

    # ------------------------
    # PHONEPE / PAYMENT CONFIG
    # ------------------------
    PHONEPE_MERCHANT_ID: str = "PGTESTPAYUAT"
    PHONEPE_SALT_KEY: str
    PHONEPE_SALT_INDEX: str = "1"
    PHONEPE_ENVIRONMENT: str = "UAT"  # 'UAT' | 'PROD'
    PHONEPE_TIMEOUT_SECONDS: float = 20.0
    PHONEPE_MAX_RETRIES: int = 2
    PHONEPE_REDIRECT_MODE: str = "POST"
    PHONEPE_INSTRUMENT_TYPE: str = "PAY_PAGE"

    MIN_PAYMENT_AMOUNT: int = 500
    STATUS_REFRESH_INTERVAL_SECONDS: int = 3600

    # ------------------------
    # SENDGRID EMAIL CONFIG
    # ------------------------
    SENDGRID_API_KEY: str | None = None
    MAIL_FROM: EmailStr | None = None

    # -----------------------------------------
    # FRONTEND & BACKEND CONFIG For LOCAL DEV
    # -----------------------------------------
    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_URL: str = "http://localhost:8000"

    # ------------------------
    # ENVIRONMENT SETTINGS
    # ------------------------
    ENVIRONMENT: str = "development"  # 'development' | 'production'
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @property
    def IS_PRODUCTION(self) -> bool:
        """Convenience helper to check if running in production"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def PHONEPE_BASE_URL(self) -> str:
        if self.PHONEPE_ENVIRONMENT.upper() == "PROD":
            return "https://api.phonepe.com/apis/hermes"
        return "https://api-preprod.phonepe.com/apis/hermes"

    def payment_redirect_url(self, transaction_id: str) -> str:
        """Where the gateway sends the payer's browser once checkout finishes."""
        return f"{self.FRONTEND_URL}/payment-success?txnId={transaction_id}"

    @property
    def PAYMENT_CALLBACK_URL(self) -> str:
        return f"{self.BACKEND_URL}/api/payments/callback"

    # ------------------------
    # Pydantic v2 Settings
    # ------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process; also used as a FastAPI dependency."""
    settings = Settings()
    logger.info(f"🌍 Environment: {settings.ENVIRONMENT}, PhonePe: {settings.PHONEPE_ENVIRONMENT}")
    return settings
