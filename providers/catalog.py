from __future__ import annotations

import httpx

from core.registry import ServiceRegistry
from core.settings import Settings
from core.state import StateRepository
from models.service import ServiceDescriptor, SourceKind
from providers.base import StatusProvider
from providers.feed import FeedStatusProvider
from providers.html_page import HtmlStatusProvider
from providers.local_json import LocalJsonProvider
from providers.statuspage import StatuspageIncidentsProvider, StatuspageProvider
from providers.webhook import WebhookProvider


def default_services(settings: Settings) -> list[ServiceDescriptor]:
    """The services this deployment watches."""
    base = settings.status_base_url.rstrip("/")
    services = [
        ServiceDescriptor("Google Play Store", SourceKind.HTML,
                          url="https://status.play.google.com/",
                          status_url="https://status.play.google.com/"),
        ServiceDescriptor("Apple App Store", SourceKind.LOCAL_JSON,
                          url=f"{base}/api/apple/status",
                          status_url="https://developer.apple.com/system-status/"),
        ServiceDescriptor("Apple Developer Services", SourceKind.WEBHOOK,
                          key="apple-developer",
                          status_url="https://developer.apple.com/system-status/#apple-developer"),
        ServiceDescriptor("Firebase", SourceKind.LOCAL_JSON,
                          url=f"{base}/api/firebase/status",
                          status_url="https://status.firebase.google.com/"),
        ServiceDescriptor("Mixpanel", SourceKind.STATUSPAGE,
                          url="https://status.mixpanel.com/api/v2/summary.json",
                          status_url="https://status.mixpanel.com/"),
        ServiceDescriptor("Singular", SourceKind.STATUSPAGE_MULTI,
                          url="https://status.singular.net/api/v2/summary.json",
                          status_url="https://status.singular.net/"),
        ServiceDescriptor("Sentry", SourceKind.STATUSPAGE_MULTI,
                          url="https://status.sentry.io/api/v2/summary.json",
                          status_url="https://status.sentry.io/"),
        ServiceDescriptor("Google AdMob", SourceKind.HTML,
                          url="https://status.cloud.google.com/",
                          status_url="https://status.cloud.google.com/"),
        ServiceDescriptor("Realm Database", SourceKind.STATUSPAGE_MULTI,
                          url="https://status.mongodb.com/api/v2/summary.json",
                          status_url="https://status.mongodb.com/"),
        ServiceDescriptor("Slack", SourceKind.FEED,
                          url="https://slack-status.com/feed/rss",
                          status_url="https://status.slack.com/"),
        ServiceDescriptor("Notion", SourceKind.STATUSPAGE_MULTI,
                          url="https://www.notion-status.com/api/v2/summary.json",
                          status_url="https://www.notion-status.com/"),
        ServiceDescriptor("Figma", SourceKind.STATUSPAGE_MULTI,
                          url="https://status.figma.com/api/v2/summary.json",
                          status_url="https://status.figma.com/"),
        ServiceDescriptor("Jira Software", SourceKind.STATUSPAGE_MULTI,
                          url="https://jira-software.status.atlassian.com/api/v2/summary.json",
                          status_url="https://jira-software.status.atlassian.com/"),
        ServiceDescriptor("OpenAI", SourceKind.FEED,
                          url="https://status.openai.com/feed.atom",
                          status_url="https://status.openai.com/"),
    ]
    if not base:
        # Vendor-normalised JSON is served by a separate deployment.
        return [s for s in services if s.source is not SourceKind.LOCAL_JSON]
    return services


def build_provider(
    service: ServiceDescriptor,
    client: httpx.AsyncClient,
    repo: StateRepository,
) -> StatusProvider:
    if service.source is SourceKind.STATUSPAGE:
        return StatuspageProvider(service, client)
    if service.source is SourceKind.STATUSPAGE_MULTI:
        return StatuspageIncidentsProvider(service, client)
    if service.source is SourceKind.LOCAL_JSON:
        return LocalJsonProvider(service, client)
    if service.source is SourceKind.HTML:
        return HtmlStatusProvider(service, client)
    if service.source is SourceKind.FEED:
        return FeedStatusProvider(service, client)
    if service.source is SourceKind.WEBHOOK:
        return WebhookProvider(service, repo)
    raise ValueError(f"Unsupported source {service.source!r} for {service.name}")


def build_registry(
    services: list[ServiceDescriptor],
    client: httpx.AsyncClient,
    repo: StateRepository,
) -> ServiceRegistry:
    registry = ServiceRegistry()
    for service in services:
        registry.register(build_provider(service, client, repo))
    return registry
