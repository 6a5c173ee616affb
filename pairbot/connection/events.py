"""
Connection events delivered by the WhatsApp session adapter

Session adapters translate their client library's callbacks into
``ConnectionUpdate`` values; the status mirror only ever sees these.
Close reasons use the WhatsApp Web disconnect status codes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Literal

from ..infra.retry_policy import CloseKind

ConnectionState = Literal["connecting", "open", "close"]


class DisconnectReason(IntEnum):
    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    TIMED_OUT = 408
    CONNECTION_REPLACED = 440
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    FORBIDDEN = 403
    UNAVAILABLE_SERVICE = 503


_TRANSIENT_CODES = frozenset({
    int(DisconnectReason.RESTART_REQUIRED),
    int(DisconnectReason.TIMED_OUT),
    int(DisconnectReason.CONNECTION_LOST),
})


def classify_close(status_code: int | None) -> CloseKind:
    """Map a close status code to how the mirror should recover"""
    if status_code is None:
        return CloseKind.UNKNOWN
    if status_code == DisconnectReason.LOGGED_OUT:
        return CloseKind.LOGGED_OUT
    if status_code in _TRANSIENT_CODES:
        return CloseKind.TRANSIENT
    return CloseKind.UNKNOWN


@dataclass(frozen=True)
class ConnectionUpdate:
    """One ``connection.update`` from the session"""

    connection: ConnectionState | None = None
    qr: str | None = None
    status_code: int | None = None
    remote_id: str | None = None
    is_new_login: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class SessionEstablished:
    """The bot's WhatsApp session reached the open state"""

    at: datetime
    remote_id: str | None = None
