from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from clinic_scheduler.core.config import settings


def create_access_token(subject: str | int, clinic_id: int) -> str:
    """Mint an access token; used by the auth provider integration and tests."""
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {"sub": str(subject), "clinic_id": clinic_id, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict | None:
    """Returns the claims of a valid access token, else None."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != "access" or not payload.get("sub"):
        return None
    return payload
