"""
Connection status mirror

Follows the WhatsApp session through ``connection.update`` events and keeps
a small, immutable status snapshot that HTTP handlers can read at any time:

    disconnected -> connecting -> qr_ready -> online
         ^______________|___________|__________|   (close, then reconnect)

Connection problems never propagate out of this class; they change the
status and schedule another ``connect``. Reconnects are unbounded and only
stop on ``shutdown``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol

from ..gateway.error_codes import FatalLogoutError, TransientConnectionError
from ..infra.retry_policy import CloseKind, ReconnectPolicy
from ..infra.scheduler import Scheduler, TimerHandle
from .auth_store import AuthStore
from .events import ConnectionUpdate, SessionEstablished, classify_close
from .qr import render_qr_data_url_async

logger = logging.getLogger(__name__)

MAX_QR_ATTEMPTS = 5
SESSION_INFO_TTL = timedelta(days=7)


class BotStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    QR_READY = "qr_ready"
    ONLINE = "online"


@dataclass(frozen=True)
class ConnectionStatus:
    """Point-in-time view of the WhatsApp connection"""

    status: BotStatus = BotStatus.DISCONNECTED
    qr: str | None = None
    qr_image: str | None = None
    qr_attempts: int = 0
    max_qr_attempts: int = MAX_QR_ATTEMPTS
    last_update: datetime | None = None
    connected_at: datetime | None = None
    remote_id: str | None = None
    last_error: dict[str, Any] | None = None
    reconnect_in: float | None = None

    @property
    def qr_ready(self) -> bool:
        return self.status is BotStatus.QR_READY and self.qr_image is not None

    @property
    def online(self) -> bool:
        return self.status is BotStatus.ONLINE

    @property
    def manual_intervention_required(self) -> bool:
        """Automatic QR attempts are used up; someone has to scan the code"""
        return self.qr_attempts >= self.max_qr_attempts

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "qrReady": self.qr_ready,
            "online": self.online,
            "qrAttempts": self.qr_attempts,
            "maxQrAttempts": self.max_qr_attempts,
            "manualInterventionRequired": self.manual_intervention_required,
            "lastConnectionUpdate": self.last_update.isoformat() if self.last_update else None,
            "connectedAt": self.connected_at.isoformat() if self.connected_at else None,
            "remoteId": self.remote_id,
            "lastError": self.last_error,
            "reconnectIn": self.reconnect_in,
        }


UpdateHandler = Callable[[ConnectionUpdate], Awaitable[None]]


class SessionHandle(Protocol):
    async def close(self) -> None: ...


class SessionFactory(Protocol):
    async def __call__(self, auth_dir: Path, on_update: UpdateHandler) -> SessionHandle: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StatusMirror:
    """
    Drive one WhatsApp session and mirror its state

    Usage:
        mirror = StatusMirror(neonize_session_factory, AuthStore("auth_info"), LoopScheduler())
        mirror.add_listener(registry.on_session_established)
        await mirror.connect()

        mirror.status  # ConnectionStatus snapshot
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        auth_store: AuthStore,
        scheduler: Scheduler,
        policy: ReconnectPolicy | None = None,
        max_qr_attempts: int = MAX_QR_ATTEMPTS,
        company_name: str = "",
        version: str = "",
        clock: Callable[[], datetime] = _utcnow,
        render_qr: Callable[[str], Awaitable[str]] = render_qr_data_url_async,
        prune_stale_auth: bool = True,
    ):
        self._session_factory = session_factory
        self._auth_store = auth_store
        self._scheduler = scheduler
        self._policy = policy or ReconnectPolicy()
        self._company_name = company_name
        self._version = version
        self._clock = clock
        self._render_qr = render_qr
        self._prune_stale_auth = prune_stale_auth

        self._status = ConnectionStatus(max_qr_attempts=max_qr_attempts)
        self._connecting = False
        self._closed = False
        self._session: SessionHandle | None = None
        self._reconnect_handle: TimerHandle | None = None
        self._listeners: list[Callable[[SessionEstablished], None]] = []
        self._qr_seq = 0
        self._connect_started: float | None = None
        self.connect_calls = 0

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def connecting(self) -> bool:
        return self._connecting

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: Callable[[SessionEstablished], None]) -> None:
        """Register a SessionEstablished listener"""
        self._listeners.append(listener)

    def _set(self, **changes: Any) -> None:
        # Swap the whole snapshot so readers never see a partial update
        self._status = replace(self._status, **changes)

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Start a WhatsApp session

        A no-op while a connection attempt is already in flight or after
        shutdown. Failure to create the session schedules a retry.
        """
        if self._closed:
            logger.debug("Mirror shut down, not connecting")
            return
        if self._connecting:
            logger.warning("WhatsApp connection already in progress...")
            return

        self.connect_calls += 1
        self._connecting = True
        self._reconnect_handle = None
        self._connect_started = time.monotonic()
        self._set(status=BotStatus.CONNECTING, last_update=self._clock(), reconnect_in=None)
        logger.info("Connecting to WhatsApp...")

        try:
            await asyncio.to_thread(self._auth_store.ensure_directory)
            if self._prune_stale_auth:
                await asyncio.to_thread(self._auth_store.prune_stale)
            self._session = await self._session_factory(self._auth_store.auth_dir, self.handle_update)
            logger.info("WhatsApp client initialized successfully")
        except Exception as e:
            logger.error(f"WhatsApp initialization failed: {e}", exc_info=True)
            self._connecting = False
            self._session = None
            error = TransientConnectionError(f"Initialization failed: {e}")
            self._set(status=BotStatus.DISCONNECTED, last_update=self._clock(), last_error=error.to_dict())
            self._schedule_reconnect(CloseKind.INIT_FAILED)

    def _schedule_reconnect(self, kind: CloseKind) -> None:
        if self._closed:
            return

        delay = self._policy.delay_for(kind)
        self._reconnect_handle = self._scheduler.call_later(delay, self.connect)
        self._set(reconnect_in=delay)
        logger.info(f"Reconnecting in {delay:g} seconds ({kind.value})")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def handle_update(self, update: ConnectionUpdate) -> None:
        """Apply one connection update from the session"""
        self._set(last_update=self._clock())

        if update.qr:
            await self._on_qr(update.qr)

        if update.connection == "open":
            await self._on_open(update)
        elif update.connection == "close":
            await self._on_close(update)

        if update.is_new_login:
            logger.info("New login detected")

    async def _on_qr(self, qr: str) -> None:
        if not self._connecting:
            logger.debug("Ignoring QR outside of a connection attempt")
            return

        self._qr_seq += 1
        seq = self._qr_seq
        attempts = self._status.qr_attempts + 1
        self._set(qr=qr, qr_attempts=attempts)
        logger.info(f"QR Code Generated (Attempt {attempts}/{self._status.max_qr_attempts})")

        image: str | None = None
        try:
            image = await self._render_qr(qr)
        except Exception as e:
            logger.error(f"QR Code generation error: {e}")

        if seq != self._qr_seq or not self._connecting:
            # A newer QR arrived or the connection moved on while rendering
            return

        self._set(status=BotStatus.QR_READY, qr_image=image)

        try:
            now = self._clock()
            await asyncio.to_thread(
                self._auth_store.write_session_info,
                {
                    "createdAt": now.isoformat(),
                    "expiresAt": (now + SESSION_INFO_TTL).isoformat(),
                    "status": BotStatus.QR_READY.value,
                    "company": self._company_name,
                    "qrGenerated": image is not None,
                    "attempt": attempts,
                },
            )
        except Exception as e:
            logger.warning(f"Could not write session info: {e}")

        if attempts == self._status.max_qr_attempts:
            logger.warning(
                f"Maximum QR attempts reached ({attempts}); scan the QR code from the web interface"
            )

    async def _on_open(self, update: ConnectionUpdate) -> None:
        now = self._clock()
        self._connecting = False
        self._qr_seq += 1
        self._set(
            status=BotStatus.ONLINE,
            qr=None,
            qr_image=None,
            qr_attempts=0,
            connected_at=now,
            remote_id=update.remote_id,
            last_error=None,
            reconnect_in=None,
        )

        elapsed_ms = int((time.monotonic() - self._connect_started) * 1000) if self._connect_started else 0
        logger.info(f"WhatsApp bot is ONLINE as {update.remote_id or 'Unknown'} (connected in {elapsed_ms}ms)")

        event = SessionEstablished(at=now, remote_id=update.remote_id)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"SessionEstablished listener failed: {e}", exc_info=True)

        try:
            await asyncio.to_thread(
                self._auth_store.write_connection_info,
                {
                    "connectedAt": now.isoformat(),
                    "phoneNumber": update.remote_id or "unknown",
                    "company": self._company_name,
                    "version": self._version,
                },
            )
        except Exception as e:
            logger.warning(f"Could not write connection info: {e}")

    async def _on_close(self, update: ConnectionUpdate) -> None:
        kind = classify_close(update.status_code)
        logger.warning(f"Connection closed. Status code: {update.status_code or 'unknown'}")

        if kind is CloseKind.LOGGED_OUT:
            error: TransientConnectionError = FatalLogoutError(status_code=update.status_code)
        else:
            error = TransientConnectionError(update.reason, status_code=update.status_code)

        self._connecting = False
        self._qr_seq += 1
        self._set(status=BotStatus.DISCONNECTED, qr=None, qr_image=None, last_error=error.to_dict())

        # The old client must be gone before credentials are purged or a new one starts
        await self._close_session()

        if kind is CloseKind.LOGGED_OUT:
            logger.warning("Logged out from WhatsApp. Cleaning session...")
            try:
                await asyncio.to_thread(self._auth_store.purge_credentials)
            except Exception as e:
                logger.error(f"Error cleaning session: {e}")

        self._schedule_reconnect(kind)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Stop reconnecting and close the live session"""
        self._closed = True
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

        await self._close_session()

        self._connecting = False
        self._set(status=BotStatus.DISCONNECTED, reconnect_in=None)

    def reopen(self) -> None:
        """Allow connecting again after ``shutdown``"""
        self._closed = False

    async def _close_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        logger.info("Closing WhatsApp connection...")
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Error closing WhatsApp session: {e}")
