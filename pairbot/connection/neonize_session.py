"""
WhatsApp Web session backed by neonize

Wraps ``neonize.aioze.client.NewAClient`` and reports its lifecycle as
``ConnectionUpdate`` values. Credentials live in a SQLite file inside the
auth directory, so purging the directory logs the device out for good.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path

from neonize.aioze import client as neonize_client
from neonize.aioze import events as neonize_events
from neonize.aioze.client import NewAClient
from neonize.events import (
    ConnectedEv,
    ConnectFailureEv,
    DisconnectedEv,
    LoggedOutEv,
    PairStatusEv,
)

from .events import ConnectionUpdate, DisconnectReason
from .status import UpdateHandler

logger = logging.getLogger(__name__)

AUTH_DB_NAME = "neonize.db"


def _jid_user(jid: object) -> str | None:
    user = getattr(jid, "User", None)
    return str(user) if user else None


class NeonizeSession:
    """One neonize client and the task keeping it alive"""

    def __init__(self, auth_dir: Path, on_update: UpdateHandler, db_name: str = AUTH_DB_NAME):
        self.auth_db = auth_dir / db_name
        self._on_update = on_update
        self._client: NewAClient | None = None
        self._idle_task: asyncio.Task | None = None
        self._remote_id: str | None = None
        self._closed = False

    async def _emit(self, update: ConnectionUpdate) -> None:
        if self._closed:
            return
        if update.connection == "close":
            # neonize may report one disconnect through several events
            self._closed = True
        await self._on_update(update)

    async def on_qr(self, qr_data: bytes | str) -> None:
        payload = qr_data.decode() if isinstance(qr_data, bytes) else str(qr_data)
        await self._emit(ConnectionUpdate(qr=payload))

    async def on_pair_status(self, ev: PairStatusEv) -> None:
        self._remote_id = _jid_user(getattr(ev, "ID", None)) or self._remote_id
        await self._emit(ConnectionUpdate(is_new_login=True, remote_id=self._remote_id))

    async def on_connected(self, ev: ConnectedEv) -> None:
        await self._emit(ConnectionUpdate(connection="open", remote_id=self._remote_id))

    async def on_logged_out(self, ev: LoggedOutEv) -> None:
        await self._emit(
            ConnectionUpdate(
                connection="close",
                status_code=int(DisconnectReason.LOGGED_OUT),
                reason="logged out",
            )
        )

    async def on_disconnected(self, ev: DisconnectedEv) -> None:
        await self._emit(
            ConnectionUpdate(
                connection="close",
                status_code=int(DisconnectReason.CONNECTION_LOST),
                reason="connection lost",
            )
        )

    async def on_connect_failure(self, ev: ConnectFailureEv) -> None:
        reason = getattr(ev, "Reason", None)
        await self._emit(
            ConnectionUpdate(
                connection="close",
                status_code=int(DisconnectReason.CONNECTION_CLOSED),
                reason=f"connect failure: {reason}" if reason is not None else "connect failure",
            )
        )

    async def start(self) -> None:
        # neonize holds module-level loop references; point both at ours
        loop = asyncio.get_running_loop()
        neonize_events.event_global_loop = loop
        neonize_client.event_global_loop = loop

        client = NewAClient(str(self.auth_db))

        @client.event.qr
        async def _qr(_client: NewAClient, qr_data: bytes) -> None:
            await self.on_qr(qr_data)

        @client.event(PairStatusEv)
        async def _paired(_client: NewAClient, ev: PairStatusEv) -> None:
            await self.on_pair_status(ev)

        @client.event(ConnectedEv)
        async def _connected(_client: NewAClient, ev: ConnectedEv) -> None:
            await self.on_connected(ev)

        @client.event(LoggedOutEv)
        async def _logged_out(_client: NewAClient, ev: LoggedOutEv) -> None:
            await self.on_logged_out(ev)

        @client.event(DisconnectedEv)
        async def _disconnected(_client: NewAClient, ev: DisconnectedEv) -> None:
            await self.on_disconnected(ev)

        @client.event(ConnectFailureEv)
        async def _connect_failure(_client: NewAClient, ev: ConnectFailureEv) -> None:
            await self.on_connect_failure(ev)

        self._client = client
        await client.connect()
        self._idle_task = asyncio.ensure_future(client.idle())

    async def close(self) -> None:
        self._closed = True
        if self._client is not None:
            try:
                await self._client.disconnect()
            except Exception as e:
                logger.debug(f"neonize disconnect failed: {e}")
            self._client = None

        idle_task, self._idle_task = self._idle_task, None
        # Close may be called from an event handler running inside the idle task
        if idle_task is not None and idle_task is not asyncio.current_task():
            idle_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await idle_task


async def neonize_session_factory(auth_dir: Path, on_update: UpdateHandler) -> NeonizeSession:
    """SessionFactory creating a started NeonizeSession"""
    session = NeonizeSession(auth_dir, on_update)
    await session.start()
    return session
