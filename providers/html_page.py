from __future__ import annotations

import re
from html.parser import HTMLParser

import httpx

from models.observation import ServiceObservation, Severity, State
from models.service import ServiceDescriptor
from providers.base import StatusProvider

_ALL_OK_RE = re.compile(
    r"all systems operational|all services operational|all services (are|now) (available|online)"
    r"|no incidents reported|no known issues",
    re.IGNORECASE,
)
_TRAILING_OK_RE = re.compile(r"operational\s*$")
_MAJOR_RE = re.compile(
    r"major outage|critical outage|critical incident|severe outage|service (outage|down)",
    re.IGNORECASE,
)
# Generic maintenance wording is left out to keep green pages green.
_MINOR_RE = re.compile(r"partial outage|degraded performance|degradation|incident", re.IGNORECASE)
_DETAIL_RE = re.compile(r"outage|disruption|degrad|incident|maintenance|unavail", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


class _TextExtractor(HTMLParser):
    """Collects visible text, dropping <script> and <style> bodies."""

    def __init__(self) -> None:
        super().__init__()
        self._skip = 0
        self._buf: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in ("script", "style"):
            self._skip += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in ("script", "style") and self._skip:
            self._skip -= 1

    def handle_data(self, data: str) -> None:
        if not self._skip:
            self._buf.append(data)

    def text(self) -> str:
        return " ".join(" ".join(self._buf).split())


def html_to_plain(html: str) -> str:
    parser = _TextExtractor()
    parser.feed(html)
    parser.close()
    return parser.text()


def analyze_plain_status_text(plain: str) -> ServiceObservation:
    """Classify the visible text of a status page.

    An explicit all-clear phrase beats incidental incident wording elsewhere
    on the page.
    """
    text = plain.lower()
    if _ALL_OK_RE.search(plain) or _TRAILING_OK_RE.search(text):
        return ServiceObservation.operational()
    if _MAJOR_RE.search(plain):
        return ServiceObservation(
            state=State.INCIDENT,
            severity=Severity.CRITICAL,
            title="Detected outage from status page",
        )
    if _MINOR_RE.search(plain):
        return ServiceObservation(
            state=State.INCIDENT,
            severity=Severity.MINOR,
            title="Detected degraded service from status page",
        )
    if "operational" in text:
        return ServiceObservation.operational()
    return ServiceObservation.unknown()


def extract_detail(plain: str) -> str | None:
    """First sentence (of the first 50) that mentions the disruption, max 240 chars."""
    sentences = _SENTENCE_SPLIT_RE.split(plain)[:50]
    for sentence in sentences:
        if _DETAIL_RE.search(sentence):
            return sentence.strip()[:240]
    return None


def analyze_html(html: str) -> tuple[ServiceObservation, str | None]:
    plain = html_to_plain(html)
    observation = analyze_plain_status_text(plain)
    detail = extract_detail(plain) if observation.state is State.INCIDENT else None
    return observation, detail


class HtmlStatusProvider(StatusProvider):
    """Best-effort classification of a human-facing status page."""

    def __init__(self, service: ServiceDescriptor, client: httpx.AsyncClient) -> None:
        super().__init__(service, client)
        self._url = service.url or service.status_url
        if not self._url:
            raise ValueError(f"{service.name}: html source needs a url")

    async def fetch_observation(self) -> ServiceObservation:
        html = await self._get_text(self._url)  # type: ignore[arg-type]
        observation, detail = analyze_html(html)
        if detail and observation.state is State.INCIDENT:
            return ServiceObservation(
                state=observation.state,
                severity=observation.severity,
                title=f"{observation.title}: {detail}",
            )
        return observation
