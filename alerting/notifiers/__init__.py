# Notification targets.
#
# A rule's `actions:` list names where its alerts go.  Each entry becomes a
# Notifier instance once, when the engine starts, and is then called
# synchronously for every alert that rule produces.  Delivery failures are
# reported through the return value (or an exception); the engine logs
# them and moves on to the next target.

from alerting.models import Alert
from alerting.rules import NotifierConfig


class Notifier:
    """Base notification target. Subclass and implement notify()."""

    type: str

    def notify(self, alert: Alert) -> bool:
        """Deliver one alert. Return True on success, False on failure."""
        raise NotImplementedError


from alerting.notifiers.console import ConsoleNotifier
from alerting.notifiers.webhook import WebhookNotifier


def create_notifier(config: NotifierConfig) -> Notifier:
    """Build the notifier described by one entry of a rule's actions list."""
    if config.type == "console":
        return ConsoleNotifier()

    if config.type == "webhook":
        url = config.config.get("url")
        if not isinstance(url, str) or not url:
            raise ValueError("webhook notifier requires 'url' in config")
        headers = config.config.get("headers")
        if not isinstance(headers, dict):
            headers = None
        return WebhookNotifier(url, headers=headers, timeout=config.config.get("timeout"))

    if config.type == "slack":
        url = config.config.get("webhook_url")
        if not isinstance(url, str) or not url:
            raise ValueError("slack notifier requires 'webhook_url' in config")
        return WebhookNotifier(url, timeout=config.config.get("timeout"))

    raise ValueError(f"Unknown notifier type: {config.type}")
