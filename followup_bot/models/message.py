"""Inbound chat message model."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class InboundMessage:
    """A human message from the monitored channel."""

    text: str
    user_id: str
    channel_id: str
    ts: str
    thread_ts: Optional[str] = None
