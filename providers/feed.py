from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

import feedparser
import httpx

from models.observation import ServiceObservation, Severity, State
from models.service import ServiceDescriptor
from providers.base import ProviderError, StatusProvider
from providers.html_page import html_to_plain

_STATUS_RE = re.compile(r"Status:\s*(.+?)(?:<|$)", re.IGNORECASE)
_CLOSED_RE = re.compile(r"resolved|completed|restored|postmortem", re.IGNORECASE)
_CRITICAL_RE = re.compile(r"major outage|full outage|service (outage|down)|unavailable", re.IGNORECASE)

log = logging.getLogger(__name__)


def _extract_status(html: str) -> str:
    """Pull the status string (e.g. 'Resolved') from summary HTML."""
    m = _STATUS_RE.search(html)
    return m.group(1).strip() if m else "Unknown"


def _parse_timestamp(raw: str) -> str:
    """Normalise ISO 8601 / RFC 822 feed timestamps to ISO 8601 UTC."""
    cleaned = raw.replace("Z", "+00:00")
    return datetime.fromisoformat(cleaned).astimezone(timezone.utc).isoformat()


def _entry_started_at(entry) -> str | None:
    for field in ("published", "updated"):
        raw = entry.get(field) or ""
        try:
            return _parse_timestamp(raw)
        except ValueError:
            parsed = entry.get(f"{field}_parsed")
            if parsed:
                return datetime(*parsed[:6], tzinfo=timezone.utc).isoformat()
    return None


def parse_incident_feed(text: str) -> ServiceObservation:
    """Derive an observation from an Atom/RSS incident history feed.

    Entries are newest first. An ongoing incident is the newest entry whose
    status text does not say it is over; otherwise the service is
    operational. A feed with no parseable entries tells us nothing.
    """
    feed = feedparser.parse(text)
    if feed.bozo and not feed.entries:
        raise ProviderError(f"unparseable feed: {feed.get('bozo_exception')}")
    if not feed.entries:
        return ServiceObservation.operational()

    entry = feed.entries[0]
    summary_html: str = entry.get("summary", "")
    status_text = _extract_status(summary_html)
    if _CLOSED_RE.search(status_text):
        return ServiceObservation.operational()

    title: str = entry.get("title", "Unknown incident")
    body = f"{title} {html_to_plain(summary_html)}"
    return ServiceObservation(
        state=State.INCIDENT,
        severity=Severity.CRITICAL if _CRITICAL_RE.search(body) else Severity.MINOR,
        title=f"{title} -- {status_text}" if status_text != "Unknown" else title,
        started_at=_entry_started_at(entry),
        incident_id=_extract_incident_id(entry.get("id", "") or entry.get("link", "")),
    )


def _extract_incident_id(url: str) -> str | None:
    """Extract the incident identifier from the entry URL/ID."""
    marker = "/incidents/"
    idx = url.rfind(marker)
    if idx == -1:
        return url or None
    return url[idx + len(marker):]


class FeedStatusProvider(StatusProvider):
    """Provider adapter for a status page's Atom/RSS incident feed.

    Uses HTTP conditional requests (ETag / If-None-Match) to skip
    re-parsing when the feed has not changed.
    """

    def __init__(self, service: ServiceDescriptor, client: httpx.AsyncClient) -> None:
        super().__init__(service, client)
        if not service.url:
            raise ValueError(f"{service.name}: feed source needs a url")
        self._etag: str | None = None
        self._last: ServiceObservation | None = None

    async def fetch_observation(self) -> ServiceObservation:
        headers: dict[str, str] = {}
        if self._etag and self._last is not None:
            headers["If-None-Match"] = self._etag

        resp = await self._get(self._service.url, accept="application/atom+xml, application/rss+xml, */*", headers=headers)  # type: ignore[arg-type]

        if resp.status_code == 304 and self._last is not None:
            log.debug("[%s] feed not modified", self.name)
            return self._last

        if resp.status_code != 200:
            raise ProviderError(f"{self.name}: unexpected status {resp.status_code}")

        try:
            observation = parse_incident_feed(resp.text)
        except ProviderError as exc:
            raise ProviderError(f"{self.name}: {exc}") from exc
        self._etag = resp.headers.get("etag")
        self._last = observation
        return observation
