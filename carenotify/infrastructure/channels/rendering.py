"""Turn notification content into channel payloads."""

from __future__ import annotations

from html import escape

from carenotify.domain.entities import Channel, Notification

from .base import RenderedContent

SMS_MAX_LENGTH = 160


def render_sms(notification: Notification) -> str:
    content = notification.content
    message = f"{content.title}: {content.message}"
    if content.action_url:
        message += f" {content.action_url}"
    if len(message) > SMS_MAX_LENGTH:
        return message[: SMS_MAX_LENGTH - 3] + "..."
    return message


def render_email_html(notification: Notification) -> str:
    content = notification.content
    parts = [
        f"<h2>{escape(content.title)}</h2>",
        f"<p>{escape(content.message)}</p>",
    ]
    if content.action_url:
        label = escape(content.action_text or "View Details")
        parts.append(f'<p><a href="{escape(content.action_url, quote=True)}">{label}</a></p>')
    if notification.created_at:
        parts.append(f"<p><small>Sent at {notification.created_at.isoformat()}</small></p>")
    return "".join(parts)


def render_websocket_payload(notification: Notification) -> dict[str, object]:
    content = notification.content
    return {
        "type": "notification",
        "data": {
            "id": notification.id,
            "type": notification.type,
            "category": getattr(notification.category, "value", notification.category),
            "priority": notification.priority.label,
            "title": content.title,
            "message": content.message,
            "action_url": content.action_url,
            "action_text": content.action_text,
            "metadata": dict(content.metadata or {}),
            "created_at": notification.created_at.isoformat()
            if notification.created_at
            else None,
        },
    }


def render_content(notification: Notification, channel: Channel) -> RenderedContent:
    """Build the :class:`RenderedContent` ``channel`` expects for ``notification``."""

    content = notification.content
    if channel == Channel.SMS:
        return RenderedContent(subject=content.title, text=render_sms(notification))
    if channel == Channel.EMAIL:
        return RenderedContent(
            subject=content.title,
            text=content.message,
            html=render_email_html(notification),
        )
    return RenderedContent(
        subject=content.title,
        text=content.message,
        data=render_websocket_payload(notification),
    )


__all__ = [
    "SMS_MAX_LENGTH",
    "render_content",
    "render_email_html",
    "render_sms",
    "render_websocket_payload",
]
