from __future__ import annotations


def normalize_email(email: object) -> str | None:
    if not isinstance(email, str):
        return None
    normalized = email.strip().lower()
    if not normalized or "@" not in normalized:
        return None
    return normalized
