"""Webhook notifier — POSTs a JSON summary of the alert.

Also used for Slack incoming webhooks.  Every request carries a bounded
timeout: the dispatch loop calls notifiers synchronously, so an endpoint
that never answers must not stall event processing.
"""

import logging

import httpx

from alerting.notifiers import Notifier

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class WebhookNotifier(Notifier):
    type = "webhook"

    def __init__(self, url: str, headers: dict[str, str] | None = None,
                 timeout: float | None = None):
        self.url = url
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT_SECONDS

    def notify(self, alert) -> bool:
        try:
            resp = httpx.post(
                self.url,
                json=build_payload(alert),
                headers=self.headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            log.error("Webhook %s error: %s", self.url, e)
            return False

        if not resp.is_success:
            log.error("Webhook %s failed: %s %s",
                      self.url, resp.status_code, resp.reason_phrase)
            return False
        return True


def build_payload(alert) -> dict:
    event = alert.event
    return {
        "alert_id": alert.id,
        "rule_id": alert.rule_id,
        "rule_name": alert.rule_name,
        "severity": alert.severity,
        "message": alert.message,
        "triggered_at": alert.triggered_at,
        "event": {
            "id": event.get("id"),
            "type": event.get("event_type"),
            "action": event.get("event_action"),
            "actor": event.get("actor"),
            "source": event.get("source"),
        },
    }
