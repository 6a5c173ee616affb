"""WhatsApp connection state mirror and its collaborators"""

from __future__ import annotations

from .events import ConnectionUpdate, DisconnectReason, SessionEstablished, classify_close
from .status import BotStatus, ConnectionStatus, StatusMirror

__all__ = [
    "BotStatus",
    "ConnectionStatus",
    "ConnectionUpdate",
    "DisconnectReason",
    "SessionEstablished",
    "StatusMirror",
    "classify_close",
]
