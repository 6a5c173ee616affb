"""Reconnect backoff for the WhatsApp session.

Reconnects are unbounded: every close schedules another attempt, and the
delay depends only on why the connection closed.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CloseKind(str, Enum):
    LOGGED_OUT = "logged_out"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"
    INIT_FAILED = "init_failed"


@dataclass
class ReconnectPolicy:
    """Reconnect delays in seconds."""

    logged_out_delay: float = 10.0
    transient_delay: float = 5.0
    unknown_delay: float = 10.0
    init_failure_delay: float = 15.0
    jitter: float = 0.0

    def delay_for(self, kind: CloseKind) -> float:
        """Delay before reconnecting after a close of the given kind."""
        if kind is CloseKind.LOGGED_OUT:
            delay = self.logged_out_delay
        elif kind is CloseKind.TRANSIENT:
            delay = self.transient_delay
        elif kind is CloseKind.INIT_FAILED:
            delay = self.init_failure_delay
        else:
            delay = self.unknown_delay

        if self.jitter > 0:
            jitter_amount = delay * self.jitter
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)
