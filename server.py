"""HTTP surface for the status monitor.

Exposes the health/debug views, the manual trigger used by an external
scheduler, webhook ingestion for pushed status sources and a couple of
Slack helpers.
"""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from urllib.parse import parse_qsl

import httpx
from fastapi import FastAPI, HTTPException, Query, Request, Response
from pydantic import BaseModel

from core.factory import build_monitor
from core.messages import format_manual_message
from core.monitor import Monitor
from core.settings import Settings
from models.observation import ServiceObservation
from providers.base import USER_AGENT
from providers.html_page import analyze_html
from providers.webhook import normalize_statusgator_webhook, normalize_statuspage_webhook

log = logging.getLogger(__name__)


class NotifyRequest(BaseModel):
    service: str | None = None
    severity: str | None = None
    title: str | None = None
    eta: str | None = None
    statusUrl: str | None = None


async def _read_payload(request: Request) -> dict:
    """Webhook bodies arrive as JSON or, from some senders, form-encoded."""
    raw = (await request.body()).decode("utf-8", errors="replace")
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}
    except ValueError:
        return dict(parse_qsl(raw))


def create_app(
    settings: Settings | None = None,
    monitor: Monitor | None = None,
    client: httpx.AsyncClient | None = None,
) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: httpx.AsyncClient | None = None
        if client is None:
            owned = httpx.AsyncClient(timeout=float(settings.http_timeout_seconds))
        app.state.client = client or owned
        app.state.monitor = monitor or build_monitor(settings, app.state.client)
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()

    app = FastAPI(title="Status Monitor", version="1.0.0", docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.get("/api/health")
    async def health(request: Request) -> dict:
        return request.app.state.monitor.health()

    @app.get("/api/debug")
    async def debug(request: Request) -> list[dict]:
        return await request.app.state.monitor.inspect()

    @app.post("/api/run")
    async def run(request: Request, force: bool = False) -> dict:
        report = await request.app.state.monitor.run_cycle(force=force)
        return report.to_dict()

    @app.post("/api/test")
    async def test_ping(request: Request) -> dict:
        delivered = await request.app.state.monitor.test_ping()
        return {"delivered": delivered}

    @app.get("/api/notify/enabled")
    async def notify_enabled(request: Request) -> dict:
        return {"enabled": request.app.state.monitor.notifier.enabled}

    @app.post("/api/notify/slack")
    async def notify_slack(body: NotifyRequest, request: Request) -> Response:
        notifier = request.app.state.monitor.notifier
        if not notifier.enabled:
            return Response(status_code=204)
        text = format_manual_message(body.model_dump())
        if not await notifier.send(text):
            return Response("Slack delivery failed", status_code=502, media_type="text/plain")
        return Response("OK", media_type="text/plain")

    async def _ingest(request: Request, key: str | None, observation: ServiceObservation) -> Response:
        if not key:
            raise HTTPException(status_code=400, detail="Missing key")
        request.app.state.monitor.repo.save_webhook(key, observation)
        log.info("Webhook %s -> %s", key, observation.state.value)
        return Response(status_code=204)

    @app.post("/api/webhooks/statuspage")
    async def webhook_statuspage(request: Request, key: str | None = Query(default=None)) -> Response:
        payload = await _read_payload(request)
        return await _ingest(request, key, normalize_statuspage_webhook(payload))

    @app.post("/api/webhooks/statusgator")
    async def webhook_statusgator(request: Request, key: str | None = Query(default=None)) -> Response:
        payload = await _read_payload(request)
        return await _ingest(request, key, normalize_statusgator_webhook(payload))

    @app.get("/api/check-html")
    async def check_html(request: Request, url: str | None = Query(default=None)) -> dict:
        if not url:
            raise HTTPException(status_code=400, detail="Missing url")
        try:
            target = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as exc:
            raise HTTPException(status_code=400, detail="Invalid url") from exc
        if target.scheme not in ("http", "https") or not target.host:
            raise HTTPException(status_code=400, detail="Invalid url")

        try:
            resp = await request.app.state.client.get(
                target, headers={"User-Agent": USER_AGENT}, follow_redirects=True
            )
        except httpx.HTTPError as exc:
            log.error("HTML check error for %s: %s", target, exc)
            raise HTTPException(status_code=502, detail="Upstream error") from exc
        if not resp.is_success:
            log.error("HTML check for %s got HTTP %d", target, resp.status_code)
            raise HTTPException(status_code=502, detail=f"Upstream returned {resp.status_code}")

        observation, detail = analyze_html(resp.text)
        result = observation.to_dict()
        if detail:
            result["detail"] = detail
        return result

    return app
