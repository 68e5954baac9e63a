from __future__ import annotations

import httpx

from core.dedup import ClaimCache, SuppressionGate
from core.monitor import Monitor
from core.multi_reconciler import MultiIncidentReconciler
from core.reconciler import IncidentReconciler
from core.settings import Settings
from core.state import StateRepository
from core.store import KeyValueStore, open_store
from models.service import ServiceDescriptor
from notifiers.base import Notifier
from notifiers.slack import SlackNotifier
from providers.catalog import build_registry, default_services


def build_monitor(
    settings: Settings,
    client: httpx.AsyncClient,
    store: KeyValueStore | None = None,
    notifier: Notifier | None = None,
    services: list[ServiceDescriptor] | None = None,
) -> Monitor:
    """Wire store, suppression gate, reconcilers, providers and notifier."""
    repo = StateRepository(store if store is not None else open_store(settings))
    gate = SuppressionGate(repo.store, settings.suppress_window_seconds, cache=ClaimCache())

    if notifier is None:
        notifier = SlackNotifier(
            client,
            webhook_url=settings.slack_webhook_url,
            bot_token=settings.slack_bot_token,
            channel=settings.slack_channel,
        )

    registry = build_registry(
        services if services is not None else default_services(settings),
        client,
        repo,
    )
    return Monitor(
        registry=registry,
        repo=repo,
        notifier=notifier,
        reconciler=IncidentReconciler(gate, settings.reset_unknown_minutes),
        multi_reconciler=MultiIncidentReconciler(gate),
        coalesce_seconds=settings.coalesce_seconds,
        concurrency_limit=settings.fetch_concurrency,
    )
