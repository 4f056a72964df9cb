"""
Outbound notifications for finished executions.

A :class:`WebhookNotifier` is built once from :class:`~scriptexec.config.NotifierConfig`
and invoked after the response has been produced.  It posts a copy of the
result to a generic webhook and/or a Slack incoming webhook.  Delivery is
best effort: every failure is logged and swallowed so it can never change
the result a caller already received.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from .config import NotifierConfig
from .executor.base import utc_timestamp


logger = logging.getLogger("scriptexec.notify")

SLACK_OUTPUT_PREVIEW_CHARS = 500


def build_webhook_payload(result: Dict[str, Any], ip: Optional[str], user_agent: Optional[str]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"timestamp": utc_timestamp(), "event": "code_execution"}
    payload.update(result)
    payload["ip"] = ip
    payload["userAgent"] = user_agent
    return payload


def build_slack_payload(result: Dict[str, Any]) -> Dict[str, Any]:
    success = bool(result.get("success"))
    output = result.get("output")
    return {
        "text": "Code Execution Alert",
        "attachments": [
            {
                "color": "good" if success else "danger",
                "fields": [
                    {"title": "Status", "value": "Success" if success else "Error", "short": True},
                    {"title": "Language", "value": result.get("language") or "javascript", "short": True},
                    {"title": "Execution Time", "value": f"{result.get('executionTimeMs')}ms", "short": True},
                    {
                        "title": "Output",
                        "value": output[:SLACK_OUTPUT_PREVIEW_CHARS] if output else "No output",
                        "short": False,
                    },
                ],
                "ts": int(time.time()),
            }
        ],
    }


class WebhookNotifier:
    """Deliver result copies to the configured webhooks."""

    def __init__(self, config: NotifierConfig, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.config = config
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def notify(self, result: Dict[str, Any], ip: Optional[str] = None, user_agent: Optional[str] = None) -> None:
        if not self.enabled:
            return
        with httpx.Client(timeout=self.config.timeout_seconds, transport=self._transport) as client:
            if self.config.webhook_url:
                self._post(client, self.config.webhook_url, build_webhook_payload(result, ip, user_agent), "Webhook")
            if self.config.slack_webhook_url:
                self._post(client, self.config.slack_webhook_url, build_slack_payload(result), "Slack webhook")

    @staticmethod
    def _post(client: httpx.Client, url: str, payload: Dict[str, Any], label: str) -> None:
        try:
            response = client.post(url, json=payload)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("%s notification failed: %s", label, exc)
