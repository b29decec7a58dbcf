# pharmastock/core/jwt.py

"""
Staff access tokens.

Tokens are minted by the account service with the shared SECRET_KEY; this API
only verifies them and reads the staff id from `sub`. create_access_token is
kept for that service and for test fixtures.
"""
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from pharmastock.core.config import settings

TOKEN_TYPE = "access"


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    claims = data.copy()
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims.update({"exp": datetime.now(timezone.utc) + lifetime, "type": TOKEN_TYPE})

    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    if claims.get("type") != TOKEN_TYPE:
        return None

    return claims


def staff_id_from_token(token: str) -> int | None:
    """Return the PharmacyUser id a valid token was issued for, else None."""
    claims = decode_access_token(token)
    if claims is None:
        return None

    subject = str(claims.get("sub", ""))
    return int(subject) if subject.isdigit() else None
