"""
Pairing service

Owns every piece of process state - the pairing registry, the WhatsApp
status mirror, the sweep task and the timers - and is handed to the HTTP
layer as one object.
"""
from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from functools import partial
from typing import Any, Awaitable, Callable

from .config.config import PairbotConfig
from .connection.auth_store import AuthStore
from .connection.status import SessionFactory, StatusMirror
from .infra.retry_policy import ReconnectPolicy
from .infra.scheduler import LoopScheduler, Scheduler
from .pairing.codes import generate_pairing_code
from .pairing.phone import CanonicalPhone, normalize_phone
from .pairing.registry import PairingRecord, PairingRegistry
from .pairing.sweeper import RegistrySweeper

logger = logging.getLogger(__name__)


async def _default_session_factory(auth_dir, on_update):
    from .connection.neonize_session import neonize_session_factory

    return await neonize_session_factory(auth_dir, on_update)


class PairingService:
    """
    Process-wide pairing service

    Usage:
        service = PairingService(load_config())
        await service.start()
        record, phone = service.generate_code("0723278526")
        await service.stop()
    """

    def __init__(
        self,
        config: PairbotConfig | None = None,
        session_factory: SessionFactory | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
        render_qr: Callable[[str], Awaitable[str]] | None = None,
    ):
        self.config = config or PairbotConfig()
        self.scheduler = scheduler or LoopScheduler()
        self.started_at = time.monotonic()
        self._started = False

        pairing = self.config.pairing
        company = self.config.company
        connection = self.config.connection

        self.registry = PairingRegistry(
            expiry_minutes=pairing.code_expiry_minutes,
            max_sessions=pairing.max_sessions,
            session_prefix=company.session_prefix,
            generated_by=company.name,
            scheduler=self.scheduler,
            clock=clock,
            code_factory=partial(generate_pairing_code, pairing.code_length),
        )

        self.auth_store = AuthStore(connection.auth_dir)
        policy = ReconnectPolicy(
            logged_out_delay=connection.logged_out_delay,
            transient_delay=connection.transient_delay,
            unknown_delay=connection.unknown_delay,
            init_failure_delay=connection.init_failure_delay,
        )
        mirror_kwargs: dict[str, Any] = {}
        if render_qr is not None:
            mirror_kwargs["render_qr"] = render_qr

        self.mirror = StatusMirror(
            session_factory or _default_session_factory,
            self.auth_store,
            self.scheduler,
            policy=policy,
            max_qr_attempts=connection.max_qr_attempts,
            company_name=company.name,
            version=company.version,
            clock=clock,
            **mirror_kwargs,
        )
        self.mirror.add_listener(self.registry.on_session_established)

        self.sweeper = RegistrySweeper(self.registry, pairing.cleanup_interval_seconds)

    @property
    def uptime(self) -> float:
        """Seconds since the service was created"""
        return time.monotonic() - self.started_at

    async def start(self) -> None:
        """Start sweeping and, if configured, connecting; also restarts after stop()"""
        if self._started:
            return
        self._started = True
        self.scheduler.reopen()
        self.mirror.reopen()

        company = self.config.company
        logger.info(f"{company.name} WhatsApp Pairing Service v{company.version}")
        logger.info(f"Support: {company.contact}")

        await self.sweeper.start()

        if self.config.connection.auto_connect:
            delay = self.config.connection.startup_delay_seconds
            self.scheduler.call_later(delay, self.mirror.connect)
            logger.info(f"Initializing WhatsApp connection in {delay:g}s")
        else:
            logger.info("Auto-connect disabled")

    async def stop(self) -> None:
        """Stop sweeping and reconnecting, close the session, cancel timers"""
        logger.info(f"{self.config.company.name} - Shutting down gracefully...")
        await self.sweeper.stop()
        await self.mirror.shutdown()
        self.scheduler.cancel_all()
        self._started = False

    def normalize_phone(self, raw: str) -> CanonicalPhone:
        return normalize_phone(
            raw,
            country_prefix=self.config.pairing.default_country_prefix,
            default_region=self.config.pairing.default_region,
        )

    def generate_code(self, raw_phone: str) -> tuple[PairingRecord, CanonicalPhone]:
        """
        Validate a phone number and issue a pairing code for it

        Raises:
            PhoneValidationError: If the phone number is not acceptable;
                no record is created in that case
        """
        phone = self.normalize_phone(raw_phone)
        record = self.registry.issue(phone, bot_status=self.mirror.status.status.value)
        return record, phone

    def verify_code(self, code: str) -> PairingRecord | None:
        return self.registry.lookup(code)
