"""Console notifier — prints a coloured alert block to stdout.

Handy for local runs and demos; in production pair it with a webhook.
"""

from alerting.matcher import lookup
from alerting.notifiers import Notifier

_SEVERITY_COLORS = {
    "low": "\x1b[36m",
    "medium": "\x1b[33m",
    "high": "\x1b[31m",
    "critical": "\x1b[35m",
}
_RESET = "\x1b[0m"


class ConsoleNotifier(Notifier):
    type = "console"

    def notify(self, alert):
        color = _SEVERITY_COLORS.get(alert.severity, "")
        print(f"{color}ALERT [{alert.severity.upper()}]{_RESET} "
              f"{alert.rule_name} - {alert.message}")
        print(f"  Event ID: {alert.event.get('id', '?')}")
        print(f"  Triggered: {alert.triggered_at}")

        actor = alert.event.get("actor")
        if isinstance(actor, dict):
            parts = [actor.get(k) for k in ("user", "email", "ip")]
            print(f"  Actor: {', '.join(str(p) for p in parts if p)}")
            geo = lookup(actor, "geo")
            if isinstance(geo, dict):
                print(f"  Location: {geo.get('city') or '?'}, {geo.get('country') or '?'}")

        print()
        return True
