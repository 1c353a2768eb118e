from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Force-load .env (Windows-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

DEFAULT_BASE_URL = "https://pixgo.org/api/v1"
DEFAULT_DATABASE_URL = "sqlite:///./pix_checkout.db"
MISSING_API_KEY_WARNING = (
    "A API Key não foi encontrada. Verifique o arquivo .env do projeto."
)


@dataclass(frozen=True)
class Settings:
    pixgo_api_key: str | None
    pixgo_base_url: str
    poll_interval: float
    database_url: str
    jwt_secret: str
    admin_password: str | None
    public_base_url: str
    log_level: str
    session_idle_timeout: float = 900.0

    @property
    def api_key_configured(self) -> bool:
        return bool(self.pixgo_api_key)


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default).strip()
    try:
        value = float(raw)
    except ValueError as e:
        raise RuntimeError(f"{name}='{raw}' is not a number") from e
    if value < 0:
        raise RuntimeError(f"{name} must not be negative")
    return value


def load_settings() -> Settings:
    """Read the process configuration once; the result never changes."""
    api_key = os.getenv("PIXGO_API_KEY", "").strip() or None

    jwt_secret = os.getenv("JWT_SECRET", "").strip()
    if not jwt_secret:
        # Admin tokens only need to outlive the process.
        jwt_secret = os.urandom(32).hex()

    return Settings(
        pixgo_api_key=api_key,
        pixgo_base_url=os.getenv("PIXGO_BASE_URL", DEFAULT_BASE_URL).strip().rstrip("/"),
        poll_interval=_float_env("POLL_INTERVAL_SECONDS", "5"),
        database_url=os.getenv("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL,
        jwt_secret=jwt_secret,
        admin_password=os.getenv("ADMIN_PASSWORD", "").strip() or None,
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").strip().rstrip("/"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        session_idle_timeout=_float_env("SESSION_IDLE_SECONDS", "900"),
    )
