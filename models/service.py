from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SourceKind(str, Enum):
    STATUSPAGE = "statuspage"
    STATUSPAGE_MULTI = "statuspage_multi"
    LOCAL_JSON = "local_json"
    HTML = "html"
    FEED = "feed"
    WEBHOOK = "webhook"


@dataclass(frozen=True)
class ServiceDescriptor:
    """Static description of one monitored service.

    Fields:
        name:       Display name used in notifications.
        source:     Which upstream family the observation comes from.
        url:        Endpoint the provider fetches (summary JSON, HTML page,
                    feed). Unused for webhook sources.
        status_url: Public status page, linked from notifications and
                    preferred for the dedupe key.
        key:        Webhook key for pushed sources.
    """

    name: str
    source: SourceKind
    url: str | None = None
    status_url: str | None = None
    key: str | None = None
