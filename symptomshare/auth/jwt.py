# symptomshare/auth/jwt.py
"""Verification of access tokens issued by the external auth provider."""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError

from symptomshare.config import get_settings

ALGORITHM = "HS256"


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    settings = get_settings()
    options = {"verify_aud": settings.auth_jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[ALGORITHM],
            audience=settings.auth_jwt_audience,
            options=options,
        )
    except JWTError:
        return None


def get_current_user_from_token(token: str) -> Optional[Dict[str, Any]]:
    payload = decode_token(token)
    if not payload:
        return None
    # The provider puts the user id in "sub"
    if not payload.get("sub"):
        return None
    return payload


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Mint a provider-compatible token; used by local tooling and tests."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    if settings.auth_jwt_audience and "aud" not in to_encode:
        to_encode["aud"] = settings.auth_jwt_audience
    return jwt.encode(to_encode, settings.auth_jwt_secret, algorithm=ALGORITHM)
