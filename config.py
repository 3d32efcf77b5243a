"""
Application configuration, read from the environment (and an optional .env).

Every setting is optional. A missing value disables the feature that needs it
instead of failing startup.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

EMBEDDED_DATA_ROOT = Path(__file__).resolve().parent / "data"


def _env(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Settings(BaseModel):
    data_root: str = str(EMBEDDED_DATA_ROOT)
    default_tenant_id: str = "demo"
    root_admin_password: Optional[str] = None

    attestation_url: Optional[str] = None
    attestation_api_key: Optional[str] = None
    payment_webhook_secret: Optional[str] = None

    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    mail_from: str = "noreply@localhost"

    http_timeout: float = 4.0
    bcrypt_rounds: int = 10
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        data_root=_env("STOREFRONT_DATA_ROOT") or str(EMBEDDED_DATA_ROOT),
        default_tenant_id=_env("DEFAULT_TENANT_ID") or "demo",
        root_admin_password=_env("ROOT_ADMIN_PASSWORD"),
        attestation_url=_env("ATTESTATION_URL"),
        attestation_api_key=_env("ATTESTATION_API_KEY"),
        payment_webhook_secret=_env("PAYMENT_WEBHOOK_SECRET"),
        smtp_host=_env("SMTP_HOST"),
        smtp_port=_env_int("SMTP_PORT", 587),
        smtp_user=_env("SMTP_USER"),
        smtp_pass=_env("SMTP_PASS"),
        mail_from=_env("MAIL_FROM") or _env("SMTP_USER") or "noreply@localhost",
        http_timeout=_env_float("HTTP_TIMEOUT_SECONDS", 4.0),
        bcrypt_rounds=_env_int("BCRYPT_ROUNDS", 10),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
    )


settings = load_settings()


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
