from __future__ import annotations

from datetime import datetime, timedelta, timezone
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt

from app.core.config import settings


_BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    if not isinstance(password, str):
        raise TypeError("password must be a string")

    password_bytes = password.encode("utf-8")
    # bcrypt max: 72 bytes; safest is to enforce pre-validation in schema,
    # but we guard here too to avoid 500s.
    if len(password_bytes) > _BCRYPT_MAX_BYTES:
        raise ValueError("password must be 72 bytes or fewer")

    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not isinstance(password, str) or not isinstance(password_hash, str):
        return False
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > _BCRYPT_MAX_BYTES:
        return False
    return bcrypt.checkpw(password_bytes, password_hash.encode("utf-8"))


def create_session_token(session_id: str, username: str) -> str:
    """Sign a cookie value pointing at a server-side session row.

    The token only names the session; revocation happens by deleting the row,
    so the cookie is worthless after logout or a newer login.
    """
    now = datetime.now(timezone.utc)
    # Hard ceiling; the idle timeout is enforced on the session row.
    expire = now + timedelta(days=1)
    payload = {
        "sub": username,
        "sid": session_id,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "typ": "session",
    }
    return jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)


def decode_session_token(token: str) -> tuple[str | None, str | None]:
    """Return ``(session_id, error)``; exactly one of them is ``None``."""
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])
    except ExpiredSignatureError:
        return None, "expired"
    except JWTError:
        return None, "invalid"

    session_id = payload.get("sid")
    if payload.get("typ") != "session" or not isinstance(session_id, str) or not session_id:
        return None, "invalid"
    return session_id, None
