from __future__ import annotations

from datetime import datetime, timezone

from core.keys import parse_timestamp_ms
from models.observation import Severity, parse_severity
from models.service import ServiceDescriptor

TEST_PING = ":mega: Monitor test ping - the status monitor is able to post to Slack"


def format_ts(value: object) -> str:
    """Human-readable UTC timestamp; empty when the value does not parse."""
    ms = parse_timestamp_ms(value)
    if ms is None:
        return ""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _emoji(severity: Severity) -> str:
    return ":red_circle:" if severity is Severity.CRITICAL else ":large_yellow_circle:"


def _link(service: ServiceDescriptor) -> str:
    return f"\nStatus: {service.status_url}" if service.status_url else ""


def start_message(
    service: ServiceDescriptor,
    severity: Severity,
    title: str | None,
    started_at: object,
) -> str:
    return (
        f"{_emoji(severity)} {service.name}: {title or 'Incident detected'}\n"
        f"Started: {format_ts(started_at)}{_link(service)}"
    )


def resolve_message(
    service: ServiceDescriptor,
    started_at: object,
    resolved_at_ms: int,
    title: str | None = None,
) -> str:
    suffix = f" - {title}" if title else ""
    return (
        f":white_check_mark: {service.name} back to normal{suffix}\n"
        f"Started: {format_ts(started_at)}\n"
        f"Resolved: {format_ts(resolved_at_ms)}{_link(service)}"
    )


def format_manual_message(payload: dict) -> str:
    """Format an ad-hoc notification posted to the HTTP surface."""
    severity = parse_severity(payload.get("severity"))
    title = payload.get("title") or "Service Incident"
    name = payload.get("service") or "Service"
    eta = f"\nPlanned fix: {format_ts(payload['eta']) or payload['eta']}" if payload.get("eta") else ""
    link = f"\nStatus: {payload['statusUrl']}" if payload.get("statusUrl") else ""
    return f"{_emoji(severity)} {name}: {title}{eta}{link}"
