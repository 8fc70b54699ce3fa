"""Prometheus metrics for the relay."""

from prometheus_client import Counter

ALERTS_RECEIVED = Counter(
    "relay_alerts_received_total",
    "Alert groups received on the webhook",
    ["status"],
)

MESSAGES_SENT = Counter(
    "relay_messages_sent_total",
    "Telegram messages sent, by kind and result",
    ["kind", "result"],
)

LISTENER_EVENTS = Counter(
    "relay_listener_events_total",
    "Inbound Telegram updates consumed by the listener",
)


def record_send(kind: str, ok: bool) -> None:
    """Count one Telegram send attempt."""
    MESSAGES_SENT.labels(kind=kind, result="ok" if ok else "error").inc()
