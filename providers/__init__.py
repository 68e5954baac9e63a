from providers.base import MultiIncidentProvider, ProviderError, StatusProvider
from providers.feed import FeedStatusProvider
from providers.html_page import HtmlStatusProvider
from providers.local_json import LocalJsonProvider
from providers.statuspage import StatuspageIncidentsProvider, StatuspageProvider
from providers.webhook import WebhookProvider

__all__ = [
    "FeedStatusProvider",
    "HtmlStatusProvider",
    "LocalJsonProvider",
    "MultiIncidentProvider",
    "ProviderError",
    "StatusProvider",
    "StatuspageIncidentsProvider",
    "StatuspageProvider",
    "WebhookProvider",
]
