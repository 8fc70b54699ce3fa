"""Alerting layer - Alertmanager payloads turned into Telegram messages."""

from telegram_alert_relay.alerter.delivery import (
    FAILURE_NOTICE,
    DeliveryAdapter,
    DeliveryOutcome,
    DeliveryResult,
)
from telegram_alert_relay.alerter.formatter import (
    MessageComposer,
    ReducedLabels,
    TemplateLoadError,
    TemplateRenderError,
    load_template,
    reduce_labels,
    summarize_alert,
)
from telegram_alert_relay.alerter.models import (
    Alert,
    AlertGroup,
    ComposedMessage,
    InvalidPayloadError,
    to_display_text,
)

__all__ = [
    # Delivery
    "FAILURE_NOTICE",
    "DeliveryAdapter",
    "DeliveryOutcome",
    "DeliveryResult",
    # Formatter
    "MessageComposer",
    "ReducedLabels",
    "TemplateLoadError",
    "TemplateRenderError",
    "load_template",
    "reduce_labels",
    "summarize_alert",
    # Models
    "Alert",
    "AlertGroup",
    "ComposedMessage",
    "InvalidPayloadError",
    "to_display_text",
]
