"""Alert message formatter for Telegram delivery.

This module turns an AlertGroup into a single HTML message, either with
the built-in layout or by rendering an operator-supplied Jinja2 template.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

import jinja2

from telegram_alert_relay.alerter.models import (
    Alert,
    AlertGroup,
    ComposedMessage,
    LabelValue,
    to_display_text,
)

logger = logging.getLogger(__name__)

PARSE_MODE_HTML = "HTML"

# Alertmanager UI view filtered by receiver
ALERTMANAGER_RECEIVER_URL = "{external_url}/#/alerts?receiver={receiver}"


class TemplateLoadError(Exception):
    """Raised when a message template cannot be read or compiled."""


class TemplateRenderError(Exception):
    """Raised when rendering a message template fails."""


@dataclass
class ReducedLabels:
    """Sorted, formatted label and annotation lines of an alert group."""

    group: list[str] = field(default_factory=list)
    common: list[str] = field(default_factory=list)
    annotations: list[str] = field(default_factory=list)


def escape_text(value: LabelValue) -> str:
    """Render a value as text safe for Telegram HTML."""
    return html.escape(to_display_text(value), quote=False)


def _code(value: LabelValue) -> str:
    return f"<code>{escape_text(value)}</code>"


def _link(url: str, text: str) -> str:
    return f"<a href='{html.escape(url, quote=True)}'>{text}</a>"


def reduce_labels(
    group_labels: Mapping[str, LabelValue],
    common_labels: Mapping[str, LabelValue],
    common_annotations: Mapping[str, LabelValue],
) -> ReducedLabels:
    """Format the group-level label and annotation maps.

    Common labels whose key is already a group label are dropped, whatever
    their value: they are shown under "grouped by" already.

    Args:
        group_labels: Labels the alerts were grouped by.
        common_labels: Labels shared by all alerts.
        common_annotations: Annotations shared by all alerts.

    Returns:
        ReducedLabels with every list sorted by key.
    """
    group = [
        f"{escape_text(key)}={_code(group_labels[key])}" for key in sorted(group_labels)
    ]
    common = [
        f"{escape_text(key)}={_code(common_labels[key])}"
        for key in sorted(common_labels)
        if key not in group_labels
    ]
    annotations = [
        f"\n{escape_text(key)}: {_code(common_annotations[key])}"
        for key in sorted(common_annotations)
    ]
    return ReducedLabels(group=group, common=common, annotations=annotations)


def summarize_alert(alert: Alert) -> str:
    """Build the short description of a single alert.

    The fragment is the instance host (port stripped) followed by the job
    in brackets, linked to the generator URL when there is one.
    """
    fragment = ""

    instance = alert.labels.get("instance")
    if isinstance(instance, str):
        fragment += html.escape(instance.split(":", 1)[0], quote=False)

    if "job" in alert.labels:
        fragment += f"[{escape_text(alert.labels['job'])}]"

    if alert.generator_url:
        fragment = _link(alert.generator_url, fragment)

    return fragment


def load_template(path: str | Path) -> jinja2.Template:
    """Read and compile a message template.

    Undefined names fail at render time instead of rendering as empty text.

    Args:
        path: Path to the template file.

    Returns:
        The compiled template, safe to share between requests.

    Raises:
        TemplateLoadError: If the file cannot be read or does not compile.
    """
    template_path = Path(path)
    try:
        source = template_path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateLoadError(f"Problem reading template file {template_path}: {e}") from e

    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    try:
        template = env.from_string(source)
    except jinja2.TemplateSyntaxError as e:
        raise TemplateLoadError(
            f"Problem parsing template file {template_path} (line {e.lineno}): {e.message}"
        ) from e

    logger.info("Loaded message template from %s", template_path)
    return template


class MessageComposer:
    """Composes the Telegram message for an alert group.

    Without a template the built-in layout is used. With a template the
    rendered text is sent verbatim; a failing template fails the request.
    """

    def __init__(self, template: jinja2.Template | None = None) -> None:
        """Initialize the composer.

        Args:
            template: Optional compiled template shared by all requests.
        """
        self._template = template

    @property
    def uses_template(self) -> bool:
        """Return True if messages are rendered from a template."""
        return self._template is not None

    def compose(self, group: AlertGroup) -> ComposedMessage:
        """Compose the message for an alert group.

        Args:
            group: The alert group to describe.

        Returns:
            ComposedMessage in HTML mode with link previews disabled.

        Raises:
            TemplateRenderError: If the template fails to render.
        """
        if self._template is None:
            text = self._build_default_text(group)
        else:
            text = self._render_template(group)

        return ComposedMessage(
            text=text,
            parse_mode=PARSE_MODE_HTML,
            disable_web_page_preview=True,
        )

    def _render_template(self, group: AlertGroup) -> str:
        """Render the configured template against the group."""
        assert self._template is not None
        try:
            return self._template.render(group.template_context())
        except Exception as e:
            raise TemplateRenderError(
                f"Template rendering failed: {type(e).__name__}: {e}"
            ) from e

    def _build_default_text(self, group: AlertGroup) -> str:
        """Build the built-in message layout."""
        reduced = reduce_labels(group.group_labels, group.common_labels, group.common_annotations)
        details = [summarize_alert(alert) for alert in group.alerts]

        receiver_url = ALERTMANAGER_RECEIVER_URL.format(
            external_url=group.external_url,
            receiver=quote(group.receiver, safe=""),
        )
        header = _link(receiver_url, f"[{group.status.upper()}:{len(group.alerts)}]")

        lines = [
            header,
            f"grouped by: {', '.join(reduced.group)}",
            f"labels: {', '.join(reduced.common)}{''.join(reduced.annotations)}",
            ", ".join(details),
        ]
        return "\n".join(lines)
