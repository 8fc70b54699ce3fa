"""Data models for the alerter module."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

# JSON scalars accepted as label and annotation values
LabelValue = str | int | float | bool | None


class InvalidPayloadError(ValueError):
    """Raised when a webhook body cannot be decoded into an AlertGroup."""


def to_display_text(value: Any) -> str:
    """Render a label or annotation value as text.

    Strings pass through unchanged, booleans use their JSON spelling and
    numbers their usual Python form. Anything that is not a scalar is
    rendered as compact JSON.
    """
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    # bool is an int subclass, test it first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _as_mapping(data: Any) -> dict[str, LabelValue]:
    """Coerce a wire label map into a dict with string keys."""
    if not isinstance(data, dict):
        return {}
    return {str(key): value for key, value in data.items()}


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return to_display_text(value)


@dataclass(frozen=True)
class Alert:
    """One firing or resolved condition inside an alert group.

    Attributes:
        labels: Identifying labels of the alert.
        annotations: Descriptive annotations of the alert.
        generator_url: Link back to the source system, may be empty.
        starts_at: Start timestamp as sent by the producer.
        ends_at: End timestamp. Carried on the wire as ``sendsAt``.
        status: Per-alert status, when the producer sends it.
        fingerprint: Alert fingerprint, when the producer sends it.
    """

    labels: dict[str, LabelValue] = field(default_factory=dict)
    annotations: dict[str, LabelValue] = field(default_factory=dict)
    generator_url: str = ""
    starts_at: str = ""
    ends_at: str = ""
    status: str = ""
    fingerprint: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Alert:
        """Create an Alert from its webhook representation."""
        return cls(
            labels=_as_mapping(data.get("labels")),
            annotations=_as_mapping(data.get("annotations")),
            generator_url=_as_text(data.get("generatorURL")),
            starts_at=_as_text(data.get("startsAt")),
            # Producers send the end timestamp as "sendsAt"
            ends_at=_as_text(data.get("sendsAt")),
            status=_as_text(data.get("status")).lower(),
            fingerprint=_as_text(data.get("fingerprint")),
        )

    def template_context(self) -> dict[str, Any]:
        """Expose the alert fields by name for template rendering."""
        return {
            "labels": self.labels,
            "annotations": self.annotations,
            "generator_url": self.generator_url,
            "starts_at": self.starts_at,
            "ends_at": self.ends_at,
            "status": self.status,
            "fingerprint": self.fingerprint,
        }


@dataclass(frozen=True)
class AlertGroup:
    """A webhook-delivered batch of related alerts.

    Attributes:
        status: ``firing`` or ``resolved``, lower-cased on input.
        receiver: Name of the receiver that produced the notification.
        external_url: Base URL of the sending Alertmanager.
        group_key: Key identifying the group, kept as text.
        version: Payload format version, kept as text.
        group_labels: Labels the alerts were grouped by.
        common_labels: Labels shared by every alert in the group.
        common_annotations: Annotations shared by every alert in the group.
        alerts: The individual alerts, in payload order.
    """

    status: str = ""
    receiver: str = ""
    external_url: str = ""
    group_key: str = ""
    version: str = ""
    group_labels: dict[str, LabelValue] = field(default_factory=dict)
    common_labels: dict[str, LabelValue] = field(default_factory=dict)
    common_annotations: dict[str, LabelValue] = field(default_factory=dict)
    alerts: tuple[Alert, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertGroup:
        """Create an AlertGroup from a decoded webhook body.

        Unknown fields are ignored and missing ones take empty defaults.
        """
        alerts_data = data.get("alerts")
        if not isinstance(alerts_data, list):
            alerts_data = []

        return cls(
            status=_as_text(data.get("status")).lower(),
            receiver=_as_text(data.get("receiver")),
            external_url=_as_text(data.get("externalURL")),
            group_key=_as_text(data.get("groupKey")),
            version=_as_text(data.get("version")),
            group_labels=_as_mapping(data.get("groupLabels")),
            common_labels=_as_mapping(data.get("commonLabels")),
            common_annotations=_as_mapping(data.get("commonAnnotations")),
            alerts=tuple(Alert.from_dict(a) for a in alerts_data if isinstance(a, dict)),
        )

    @classmethod
    def from_json(cls, raw: bytes | str) -> AlertGroup:
        """Decode a raw webhook body.

        Raises:
            InvalidPayloadError: If the body is not a JSON object.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidPayloadError(f"Invalid JSON payload: {e}") from e

        if not isinstance(data, dict):
            raise InvalidPayloadError("Payload must be a JSON object")

        return cls.from_dict(data)

    def template_context(self) -> dict[str, Any]:
        """Expose every group field by name for template rendering."""
        return {
            "status": self.status,
            "receiver": self.receiver,
            "external_url": self.external_url,
            "group_key": self.group_key,
            "version": self.version,
            "group_labels": self.group_labels,
            "common_labels": self.common_labels,
            "common_annotations": self.common_annotations,
            "alerts": [alert.template_context() for alert in self.alerts],
        }


@dataclass(frozen=True)
class ComposedMessage:
    """A message ready for delivery to a Telegram chat.

    Attributes:
        text: Message body.
        parse_mode: Telegram parse mode, ``"HTML"`` or None for plain text.
        disable_web_page_preview: Suppress link preview expansion.
    """

    text: str
    parse_mode: str | None = None
    disable_web_page_preview: bool = False
