from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from retos.core.config import get_settings

logger = structlog.get_logger(__name__)
DEFAULT_PAGERDUTY_EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"
VALID_CHANNELS = ("generic", "slack", "pagerduty")
VALID_SEVERITIES = ("critical", "error", "warning", "info")
SEVERITY_COLOR = {
    "critical": "#B42318",
    "error": "#F04438",
    "warning": "#F79009",
    "info": "#1570EF",
}


@dataclass(frozen=True, slots=True)
class AlertRoute:
    channels: tuple[str, ...]
    severity: str
    escalation_tier: str


DEFAULT_ALERT_ROUTE = AlertRoute(channels=("generic",), severity="warning", escalation_tier="ops_l3")
EVENT_ALERT_ROUTES = {
    "agenda_grant_failed": AlertRoute(
        channels=("pagerduty", "slack", "generic"),
        severity="error",
        escalation_tier="ops_l1",
    ),
}


def _setting_str(settings: object, attr: str) -> str:
    value = getattr(settings, attr, "")
    return value.strip() if isinstance(value, str) else ""


def _policy_override(raw_policy: str, event: str) -> dict[str, object] | None:
    if not raw_policy:
        return None
    try:
        parsed = json.loads(raw_policy)
    except json.JSONDecodeError:
        logger.warning("ops_alert_policy_parse_failed")
        return None
    if not isinstance(parsed, dict):
        logger.warning("ops_alert_policy_invalid_shape")
        return None

    override = parsed.get(event) or parsed.get("*")
    return override if isinstance(override, dict) else None


def resolve_alert_route(*, event: str, policy_raw: str) -> AlertRoute:
    route = EVENT_ALERT_ROUTES.get(event, DEFAULT_ALERT_ROUTE)
    override = _policy_override(policy_raw, event)
    if override is None:
        return route

    raw_channels = override.get("channels")
    if isinstance(raw_channels, list):
        channels = tuple(
            dict.fromkeys(
                channel.strip().lower()
                for channel in raw_channels
                if isinstance(channel, str) and channel.strip().lower() in VALID_CHANNELS
            )
        )
        if channels:
            route = replace(route, channels=channels)

    severity = override.get("severity")
    if isinstance(severity, str) and severity.strip().lower() in VALID_SEVERITIES:
        route = replace(route, severity=severity.strip().lower())

    tier = override.get("escalation_tier")
    if isinstance(tier, str) and tier.strip():
        route = replace(route, escalation_tier=tier.strip())
    return route


def resolve_targets(*, route: AlertRoute, settings: object) -> list[tuple[str, str]]:
    generic_url = _setting_str(settings, "ops_alert_webhook_url")
    channel_urls = {
        "generic": generic_url,
        "slack": _setting_str(settings, "ops_alert_slack_webhook_url"),
    }
    if _setting_str(settings, "ops_alert_pagerduty_routing_key"):
        channel_urls["pagerduty"] = (
            _setting_str(settings, "ops_alert_pagerduty_events_url") or DEFAULT_PAGERDUTY_EVENTS_URL
        )

    targets = [(channel, channel_urls[channel]) for channel in route.channels if channel_urls.get(channel)]
    if not targets and generic_url:
        targets.append(("generic", generic_url))
    return targets


def build_channel_payload(
    *,
    channel: str,
    event: str,
    payload: dict[str, object],
    sent_at: datetime,
    route: AlertRoute,
    app_env: str,
    pagerduty_routing_key: str = "",
) -> dict[str, Any]:
    if channel == "generic":
        return {
            "event": event,
            "payload": payload,
            "sent_at": sent_at.isoformat(),
            "severity": route.severity,
            "escalation_tier": route.escalation_tier,
        }
    if channel == "slack":
        payload_text = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        return {
            "text": f"[{route.severity.upper()}][{route.escalation_tier}] {event}",
            "attachments": [
                {
                    "color": SEVERITY_COLOR.get(route.severity, SEVERITY_COLOR["warning"]),
                    "fields": [
                        {"title": "Environment", "value": app_env, "short": True},
                        {"title": "Sent At", "value": sent_at.isoformat(), "short": True},
                        {"title": "Payload", "value": payload_text, "short": False},
                    ],
                }
            ],
        }
    if channel == "pagerduty":
        return {
            "routing_key": pagerduty_routing_key,
            "event_action": "trigger",
            "dedup_key": f"{event}:{payload.get('row_id', route.escalation_tier)}",
            "payload": {
                "summary": f"[{app_env}] {event}",
                "source": f"retos-backend/{app_env}",
                "severity": route.severity,
                "timestamp": sent_at.isoformat(),
                "group": route.escalation_tier,
                "custom_details": payload,
            },
        }
    raise ValueError(f"Unsupported alert channel: {channel}")


async def send_ops_alert(*, event: str, payload: dict[str, object]) -> bool:
    settings = get_settings()
    route = resolve_alert_route(
        event=event,
        policy_raw=_setting_str(settings, "ops_alert_escalation_policy_json"),
    )
    targets = resolve_targets(route=route, settings=settings)
    if not targets:
        return False

    sent_at = datetime.now(timezone.utc)
    app_env = _setting_str(settings, "app_env") or "dev"
    delivered_to: list[str] = []
    failed_to: list[str] = []
    async with httpx.AsyncClient(timeout=5.0) as client:
        for channel, url in targets:
            body = build_channel_payload(
                channel=channel,
                event=event,
                payload=payload,
                sent_at=sent_at,
                route=route,
                app_env=app_env,
                pagerduty_routing_key=_setting_str(settings, "ops_alert_pagerduty_routing_key"),
            )
            try:
                response = await client.post(url, json=body)
                response.raise_for_status()
            except Exception:
                logger.exception("ops_alert_delivery_failed", alert_event=event, provider=channel)
                failed_to.append(channel)
                continue
            delivered_to.append(channel)

    if not delivered_to:
        logger.error(
            "ops_alert_delivery_exhausted",
            alert_event=event,
            severity=route.severity,
            failed_to=failed_to,
        )
        return False

    logger.info(
        "ops_alert_delivered",
        alert_event=event,
        severity=route.severity,
        escalation_tier=route.escalation_tier,
        delivered_to=delivered_to,
        failed_to=failed_to,
    )
    return True
