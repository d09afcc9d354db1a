from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from orderflow.core.config import IDENTITY_JWT_ALGORITHM, IDENTITY_JWT_AUDIENCE, IDENTITY_JWT_SECRET
from orderflow.services.actor import Identity


class IdentityTokenError(ValueError):
    pass


def create_access_token(
    user_id: str,
    email: str | None = None,
    extra: Optional[Dict[str, Any]] = None,
    expires_minutes: int = 60,
    secret: str | None = None,
) -> str:
    """Issue a token shaped like the identity provider's (used by scripts and tests).

    "sub" must be a string, otherwise jose refuses to decode it.
    """
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_minutes)

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if email:
        payload["email"] = email
    if IDENTITY_JWT_AUDIENCE:
        payload["aud"] = IDENTITY_JWT_AUDIENCE
    if extra:
        payload.update(extra)

    return jwt.encode(payload, secret or IDENTITY_JWT_SECRET, algorithm=IDENTITY_JWT_ALGORITHM)


def decode_access_token(token: str, secret: str | None = None) -> Dict[str, Any]:
    key = secret or IDENTITY_JWT_SECRET
    if not key:
        raise IdentityTokenError("Identity secret not configured")
    options = {"verify_aud": IDENTITY_JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=[IDENTITY_JWT_ALGORITHM],
            audience=IDENTITY_JWT_AUDIENCE,
            options=options,
        )
    except Exception as exc:
        raise IdentityTokenError("Token tidak valid atau sudah kedaluwarsa") from exc


def identity_from_token(token: str, secret: str | None = None) -> Identity:
    payload = decode_access_token(token, secret=secret)
    raw_sub = payload.get("sub")
    if raw_sub is None or not str(raw_sub).strip():
        raise IdentityTokenError("Token tanpa subject")
    email = payload.get("email")
    return Identity(user_id=str(raw_sub).strip(), email=str(email) if email else None)
