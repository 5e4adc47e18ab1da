from __future__ import annotations

import ipaddress
import secrets
from functools import lru_cache

from fastapi import Request

from retos.services.grant_tokens import extract_bearer_token

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


def tokens_match(*, expected: str, received: str | None) -> bool:
    if not expected or not received:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def is_internal_request_authenticated(request: Request, *, expected_token: str) -> bool:
    return tokens_match(expected=expected_token, received=request.headers.get("X-Internal-Token"))


def is_cron_request_authorized(request: Request, *, cron_secret: str) -> bool:
    """An unset cron secret leaves the endpoint open; otherwise Bearer or X-Internal-Token must match."""
    if not cron_secret:
        return True
    candidates = (
        extract_bearer_token(request.headers.get("Authorization")),
        request.headers.get("X-Internal-Token"),
    )
    return any(tokens_match(expected=cron_secret, received=candidate) for candidate in candidates)


@lru_cache(maxsize=32)
def _parse_networks(allowlist: str) -> tuple[IPNetwork, ...]:
    networks: list[IPNetwork] = []
    for entry in (part.strip() for part in allowlist.split(",")):
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(networks)


def _normalize_ip(value: str | None) -> str | None:
    if not value or not value.strip():
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def is_client_ip_allowed(*, client_ip: str | None, allowlist: str) -> bool:
    normalized = _normalize_ip(client_ip)
    if normalized is None:
        return False
    address = ipaddress.ip_address(normalized)
    return any(address in network for network in _parse_networks(allowlist))


def extract_client_ip(request: Request, *, trusted_proxies: str = "") -> str | None:
    peer_ip = _normalize_ip(request.client.host if request.client is not None else None)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for and is_client_ip_allowed(client_ip=peer_ip, allowlist=trusted_proxies):
        return _normalize_ip(forwarded_for.split(",", maxsplit=1)[0])
    return peer_ip
