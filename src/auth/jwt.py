from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from src.config import settings


def create_access_token(subject_id: str, session_id: str, principal_type: str = "user") -> str:
    """Create a signed JWT pointing at a server-side tenant session."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject_id,
        "sid": session_id,
        "principal": principal_type,
        "type": "session",
        "exp": now + timedelta(minutes=settings.jwt_expiration_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a session JWT. Returns payload or None if invalid."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != "session" or not payload.get("sid") or not payload.get("sub"):
        return None
    return payload


def create_super_admin_token(super_admin_id: str) -> str:
    """Create a signed JWT for super-admin. No organization - operates above tenant layer."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": super_admin_id,
        "type": "super_admin",
        "exp": now + timedelta(minutes=settings.jwt_expiration_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_super_admin_token(token: str) -> dict | None:
    """Decode and validate a super-admin JWT. Returns payload or None if invalid."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != "super_admin":
        return None
    return payload
