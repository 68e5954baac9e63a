from __future__ import annotations

import logging

import httpx

from notifiers.base import Notifier
from providers.base import USER_AGENT

log = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class SlackNotifier(Notifier):
    """Posts to Slack through an incoming webhook, or bot token + channel.

    The incoming webhook wins when both are configured. With neither, sends
    are dropped and reported as undelivered.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        webhook_url: str = "",
        bot_token: str = "",
        channel: str = "",
    ) -> None:
        self._client = client
        self._webhook_url = webhook_url
        self._bot_token = bot_token
        self._channel = channel

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url) or bool(self._bot_token and self._channel)

    async def send(self, text: str) -> bool:
        try:
            if self._webhook_url:
                return await self._send_webhook(text)
            if self._bot_token and self._channel:
                return await self._send_bot(text)
        except httpx.HTTPError as exc:
            log.error("Slack delivery failed: %s", exc)
            return False
        log.warning("Slack is not configured; dropping notification")
        return False

    async def _send_webhook(self, text: str) -> bool:
        resp = await self._client.post(
            self._webhook_url,
            json={"text": text},
            headers={"User-Agent": USER_AGENT},
        )
        if not resp.is_success:
            log.error("Slack webhook returned HTTP %d", resp.status_code)
            return False
        # Incoming webhooks answer "ok"; some apps return an empty 2xx.
        body = resp.text.strip().lower()
        if body and body != "ok":
            log.error("Slack webhook response: %s", resp.text[:200])
            return False
        return True

    async def _send_bot(self, text: str) -> bool:
        resp = await self._client.post(
            SLACK_POST_MESSAGE_URL,
            json={"channel": self._channel, "text": text},
            headers={
                "Authorization": f"Bearer {self._bot_token}",
                "User-Agent": USER_AGENT,
            },
        )
        if not resp.is_success:
            log.error("Slack API returned HTTP %d", resp.status_code)
            return False
        try:
            data = resp.json()
        except ValueError:
            log.error("Slack API returned a non-JSON body")
            return False
        if not isinstance(data, dict) or not data.get("ok"):
            err = data.get("error") if isinstance(data, dict) else None
            log.error("Slack API error: %s", err or "unknown_error")
            return False
        return True
