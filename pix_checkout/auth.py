import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt

from pix_checkout.config import Settings
from pix_checkout.dependencies import get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_TTL = timedelta(hours=12)


def create_access_token(settings: Settings, password: str) -> str:
    if not settings.admin_password:
        logger.warning("Admin login attempted but ADMIN_PASSWORD is not set")
        raise HTTPException(status_code=401, detail="Senha incorreta")
    if not secrets.compare_digest(password.encode(), settings.admin_password.encode()):
        raise HTTPException(status_code=401, detail="Senha incorreta")

    claims = {"sub": "admin", "exp": datetime.now(timezone.utc) + TOKEN_TTL}
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def verify_token(authorization: str = Header(None), settings: Settings = Depends(get_settings)):
    try:
        scheme, token = (authorization or "").split()
        if scheme.lower() != "bearer":
            raise ValueError(scheme)
        return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")
