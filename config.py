import logging
import os
from typing import List

from dotenv import load_dotenv
from fastapi import Request
from pydantic import BaseModel

import secretmanager

logger = logging.getLogger('uvicorn.error')

ROOT = os.path.dirname(os.path.abspath(__file__))

DEFAULT_ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]


def allowed_hosts() -> List[str]:
    hosts = os.getenv("ALLOWED_HOSTS")
    if not hosts:
        return list(DEFAULT_ALLOWED_HOSTS)
    return [h.strip() for h in hosts.split(",") if h.strip()]


class Settings(BaseModel):
    jwt_secret: str = ""
    jwt_expires_minutes: int = 90 * 24 * 60
    reset_token_ttl_minutes: int = 10
    public_base_url: str = "http://localhost:8000"
    mail_from: str = "no-reply@localhost"
    sendgrid_api_key: str = ""
    firestore_project: str | None = None


def _resolve_secret(value: str, secret_name: str) -> str:
    # an explicit value wins over a Secret Manager lookup
    if value or not secret_name:
        return value
    logger.info(f"Loading secret {secret_name} from Secret Manager")
    return secretmanager.get_secret(secret_name)


def load_settings() -> Settings:
    """Build the process-wide settings once, at startup."""
    env_path = os.path.join(ROOT, ".env")
    if os.path.exists(env_path):
        load_dotenv(env_path)

    settings = Settings(
        jwt_secret=_resolve_secret(os.getenv("JWT_SECRET", ""), os.getenv("JWT_SECRET_NAME", "")),
        jwt_expires_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", str(90 * 24 * 60))),
        reset_token_ttl_minutes=int(os.getenv("RESET_TOKEN_TTL_MINUTES", "10")),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        mail_from=os.getenv("MAIL_FROM", "no-reply@localhost"),
        sendgrid_api_key=_resolve_secret(
            os.getenv("SENDGRID_API_KEY", ""), os.getenv("SENDGRID_API_KEY_NAME", "")
        ),
        firestore_project=os.getenv("FIRESTORE_PROJECT") or None,
    )
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET (or JWT_SECRET_NAME) must be configured")
    return settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
