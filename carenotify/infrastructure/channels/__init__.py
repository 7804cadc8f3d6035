"""Channel senders used by the delivery manager."""

from .base import ChannelSender, RenderedContent, SendResult
from .email import SendGridEmailSender
from .fake import InMemoryChannelSender, SentMessage
from .registry import ChannelRegistry, build_channel_registry
from .rendering import render_content
from .sms import TwilioSmsSender
from .websocket import WebsocketChannelSender

__all__ = [
    "ChannelRegistry",
    "ChannelSender",
    "InMemoryChannelSender",
    "RenderedContent",
    "SendGridEmailSender",
    "SendResult",
    "SentMessage",
    "TwilioSmsSender",
    "WebsocketChannelSender",
    "build_channel_registry",
    "render_content",
]
