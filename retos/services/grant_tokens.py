from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from jose import JWTError, jwt

ALGORITHM = "HS256"
AGENDA_GRANT_TOKEN_TTL = timedelta(minutes=5)
# jose only checks aud and exp when present; inbound tokens must carry both.
REQUIRED_CLAIM_OPTIONS = {"require_aud": True, "require_exp": True, "require_iss": True}


class InvalidGrantTokenError(Exception):
    pass


def sign_agenda_grant_token(
    *,
    email: str,
    secret: str,
    issuer: str,
    audience: str,
    now_utc: datetime | None = None,
) -> str:
    issued_at = now_utc or datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "email": email,
        "product": "agenda",
        "scope": "grant",
        "jti": str(uuid4()),
        "iss": issuer,
        "aud": audience,
        "iat": issued_at,
        "exp": issued_at + AGENDA_GRANT_TOKEN_TTL,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def decode_inbound_grant_token(
    token: str,
    *,
    secret: str,
    issuer: str,
    audience: str,
) -> dict[str, Any]:
    if not secret:
        raise InvalidGrantTokenError("shared secret is not configured")
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            issuer=issuer,
            audience=audience,
            options=REQUIRED_CLAIM_OPTIONS,
        )
    except JWTError as exc:
        raise InvalidGrantTokenError(str(exc)) from exc
