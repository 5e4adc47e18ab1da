from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from retos.services.grant_tokens import (
    AGENDA_GRANT_TOKEN_TTL,
    InvalidGrantTokenError,
    decode_inbound_grant_token,
    extract_bearer_token,
    sign_agenda_grant_token,
)

SECRET = "shared-secret"


def test_sign_agenda_grant_token_carries_expected_claims() -> None:
    token = sign_agenda_grant_token(email="ana@example.com", secret=SECRET, issuer="retos", audience="agenda-grant")

    claims = jwt.decode(token, SECRET, algorithms=["HS256"], audience="agenda-grant", issuer="retos")

    assert claims["email"] == "ana@example.com"
    assert claims["product"] == "agenda"
    assert claims["scope"] == "grant"
    assert claims["exp"] - claims["iat"] == int(AGENDA_GRANT_TOKEN_TTL.total_seconds())
    assert claims["jti"]


def test_each_agenda_grant_token_has_unique_jti() -> None:
    first = sign_agenda_grant_token(email="a@example.com", secret=SECRET, issuer="retos", audience="agenda-grant")
    second = sign_agenda_grant_token(email="a@example.com", secret=SECRET, issuer="retos", audience="agenda-grant")

    assert jwt.get_unverified_claims(first)["jti"] != jwt.get_unverified_claims(second)["jti"]


def test_extract_bearer_token() -> None:
    assert extract_bearer_token("Bearer abc.def") == "abc.def"
    assert extract_bearer_token("bearer   xyz ") == "xyz"
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token("Bearer ") is None
    assert extract_bearer_token(None) is None


def _inbound(**overrides: object) -> str:
    now = datetime.now(timezone.utc)
    claims: dict[str, object] = {
        "email": "ana@example.com",
        "product": "retos",
        "iss": "agenda",
        "aud": "retos-grant",
        "iat": now,
        "exp": now + timedelta(minutes=5),
    }
    claims.update(overrides)
    return jwt.encode(claims, SECRET, algorithm="HS256")


def test_decode_inbound_grant_token_accepts_valid_token() -> None:
    claims = decode_inbound_grant_token(_inbound(), secret=SECRET, issuer="agenda", audience="retos-grant")

    assert claims["email"] == "ana@example.com"


@pytest.mark.parametrize(
    "token",
    [
        _inbound(exp=datetime.now(timezone.utc) - timedelta(minutes=1)),
        _inbound(aud="someone-else"),
        _inbound(iss="mallory"),
        "not-a-jwt",
    ],
)
def test_decode_inbound_grant_token_rejects_invalid_tokens(token: str) -> None:
    with pytest.raises(InvalidGrantTokenError):
        decode_inbound_grant_token(token, secret=SECRET, issuer="agenda", audience="retos-grant")


def test_decode_inbound_grant_token_requires_configured_secret() -> None:
    with pytest.raises(InvalidGrantTokenError):
        decode_inbound_grant_token(_inbound(), secret="", issuer="agenda", audience="retos-grant")


def _inbound_without(*claim_names: str) -> str:
    claims = jwt.get_unverified_claims(_inbound())
    for name in claim_names:
        claims.pop(name)
    return jwt.encode(claims, SECRET, algorithm="HS256")


@pytest.mark.parametrize("missing", [("aud",), ("exp",), ("iss",), ("aud", "exp")])
def test_decode_inbound_grant_token_requires_audience_expiry_and_issuer(missing: tuple[str, ...]) -> None:
    with pytest.raises(InvalidGrantTokenError):
        decode_inbound_grant_token(_inbound_without(*missing), secret=SECRET, issuer="agenda", audience="retos-grant")
