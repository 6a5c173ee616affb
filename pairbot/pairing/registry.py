"""
In-memory pairing registry

Maps pairing codes to pairing records for the lifetime of the process.

- Records are stored once under the normalized code; the display form
  (``XXXX-XXXX``) is derived and accepted by ``lookup``.
- A pending record stops being visible the moment its expiry passes, even
  before its timer or the periodic sweep removes it.
- The table is capped at ``max_sessions``; the oldest records by creation
  time are evicted first.

Every mutation below runs without awaiting, so on a single event loop no
other callback can observe a half-applied change.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Callable

from ..infra.scheduler import Scheduler, TimerHandle
from .codes import format_display_code, generate_pairing_code, normalize_code
from .phone import CanonicalPhone, phone_last4

logger = logging.getLogger(__name__)

CODE_EXPIRY_MINUTES = 10
MAX_SESSIONS = 100
SESSION_PREFIX = "IAN_TECH"
MAX_ISSUE_ATTEMPTS = 16


class RecordStatus(str, Enum):
    PENDING = "pending"
    LINKED = "linked"
    EXPIRED = "expired"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class PairingRecord:
    """A pairing code and what it was issued for"""

    code: str
    status: RecordStatus
    created_at: datetime
    expires_at: datetime
    phone_number: str | None = None
    country: str | None = None
    session_id: str = ""
    linked_at: datetime | None = None
    bot_status: str | None = None
    generated_by: str | None = None

    @property
    def display_code(self) -> str:
        return format_display_code(self.code)

    def is_expired(self, now: datetime) -> bool:
        """Pending and past its expiry"""
        return self.status is RecordStatus.PENDING and self.expires_at <= now

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "displayCode": self.display_code,
            "phoneNumber": self.phone_number,
            "country": self.country,
            "sessionId": self.session_id,
            "status": self.status.value,
            "createdAt": _iso(self.created_at),
            "expiresAt": _iso(self.expires_at),
            "linkedAt": _iso(self.linked_at),
            "botStatus": self.bot_status,
            "generatedBy": self.generated_by,
        }


class PairingRegistry:
    """
    Pairing code table with expiry and capacity eviction

    Usage:
        registry = PairingRegistry(scheduler=LoopScheduler())
        record = registry.issue(phone)
        registry.lookup(record.display_code)  # same record
    """

    def __init__(
        self,
        expiry_minutes: float = CODE_EXPIRY_MINUTES,
        max_sessions: int = MAX_SESSIONS,
        session_prefix: str = SESSION_PREFIX,
        generated_by: str | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
        code_factory: Callable[[], str] = generate_pairing_code,
    ):
        """
        Args:
            expiry_minutes: Lifetime of a pending code
            max_sessions: Maximum number of records kept
            session_prefix: Prefix of generated session ids
            generated_by: Issuer name stored on each record
            scheduler: Runs per-record expiry timers; without one, records
                are only dropped lazily and by ``sweep_expired``
            clock: Returns the current UTC time
            code_factory: Produces candidate codes
        """
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")

        self.expiry = timedelta(minutes=expiry_minutes)
        self.max_sessions = max_sessions
        self.session_prefix = session_prefix
        self.generated_by = generated_by
        self._scheduler = scheduler
        self._clock = clock
        self._code_factory = code_factory

        self._records: dict[str, PairingRecord] = {}
        self._timers: dict[str, TimerHandle] = {}
        self.generated_count = 0
        self.last_code: str | None = None

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, code: str) -> bool:
        return self.lookup(code) is not None

    @property
    def last_display_code(self) -> str | None:
        return format_display_code(self.last_code) if self.last_code else None

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def _new_session_id(self, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        return f"{self.session_prefix}_{millis}_{secrets.token_hex(4).upper()}"

    def _unique_code(self) -> str:
        for _ in range(MAX_ISSUE_ATTEMPTS):
            code = self._code_factory()
            if code not in self._records:
                return code
            logger.debug("Pairing code collision, drawing again")
        raise RuntimeError(f"No unused pairing code after {MAX_ISSUE_ATTEMPTS} draws")

    def issue(
        self,
        phone: CanonicalPhone | None = None,
        bot_status: str | None = None,
    ) -> PairingRecord:
        """
        Issue a new pending pairing code

        Args:
            phone: Number the code is requested for, if any
            bot_status: Connection status at issue time, kept for diagnostics

        Returns:
            Snapshot of the new record
        """
        now = self._clock()
        code = self._unique_code()
        record = PairingRecord(
            code=code,
            status=RecordStatus.PENDING,
            created_at=now,
            expires_at=now + self.expiry,
            phone_number=phone.e164 if phone else None,
            country=phone.country if phone else None,
            session_id=self._new_session_id(now),
            bot_status=bot_status,
            generated_by=self.generated_by,
        )

        self._records[code] = record
        self.generated_count += 1
        self.last_code = code

        if self._scheduler is not None:
            self._timers[code] = self._scheduler.call_later(
                self.expiry.total_seconds(),
                lambda: self._expire(code, record),
            )

        self._evict_over_capacity()

        if phone:
            logger.info(f"Generated pairing code {record.display_code} for phone ...{phone_last4(phone.e164)}")
        else:
            logger.info(f"Generated pairing code {record.display_code}")

        return replace(record)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def lookup(self, code_or_display: str) -> PairingRecord | None:
        """
        Find a record by raw or display code

        Input is uppercased and stripped of separators first. A pending
        record past its expiry is removed and reported as absent.
        """
        if not code_or_display:
            return None

        key = normalize_code(code_or_display)
        record = self._records.get(key)
        if record is None:
            return None

        if record.is_expired(self._clock()):
            self._drop(key, expired=True)
            logger.info(f"Expired code removed on lookup: {record.display_code}")
            return None

        return replace(record)

    def list_records(self) -> list[PairingRecord]:
        """Snapshots of all visible records, oldest first"""
        now = self._clock()
        records = [r for r in self._records.values() if not r.is_expired(now)]
        records.sort(key=lambda r: r.created_at)
        return [replace(r) for r in records]

    def counts(self) -> dict[str, int]:
        """Number of records per status"""
        result = {status.value: 0 for status in RecordStatus}
        for record in self._records.values():
            result[record.status.value] += 1
        return result

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_all_pending_linked(self, linked_at: datetime | None = None) -> int:
        """
        Move every pending record to linked

        The whole bot connects, not a particular code, so every code still
        pending is considered used. Linked records are no longer subject to
        expiry.

        Returns:
            Number of records linked
        """
        at = linked_at or self._clock()
        linked = 0
        for code, record in self._records.items():
            if record.status is RecordStatus.PENDING and not record.is_expired(at):
                record.status = RecordStatus.LINKED
                record.linked_at = at
                handle = self._timers.pop(code, None)
                if handle is not None:
                    handle.cancel()
                linked += 1

        if linked:
            logger.info(f"Linked {linked} pending pairing code(s)")
        return linked

    def on_session_established(self, event: Any) -> None:
        """SessionEstablished listener"""
        self.mark_all_pending_linked(getattr(event, "at", None))

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def _drop(self, code: str, expired: bool = False) -> PairingRecord | None:
        """Remove a record and its timer; removing an absent code is a no-op"""
        record = self._records.pop(code, None)
        handle = self._timers.pop(code, None)
        if handle is not None:
            handle.cancel()
        if record is not None and expired:
            record.status = RecordStatus.EXPIRED
        return record

    def _expire(self, code: str, record: PairingRecord) -> None:
        """Expiry timer callback"""
        self._timers.pop(code, None)
        current = self._records.get(code)
        if current is not record or current.status is not RecordStatus.PENDING:
            return
        self._drop(code, expired=True)
        logger.info(f"Expired code removed: {record.display_code}")

    def _evict_over_capacity(self) -> int:
        overflow = len(self._records) - self.max_sessions
        if overflow <= 0:
            return 0

        oldest = sorted(self._records.values(), key=lambda r: r.created_at)[:overflow]
        for record in oldest:
            self._drop(record.code)

        logger.info(f"Limited to {self.max_sessions} sessions, removed {overflow} oldest")
        return overflow

    def sweep_expired(self, now: datetime | None = None) -> int:
        """
        Remove expired pending records, then enforce the size cap

        Runs on a fixed interval next to the per-record timers; whichever
        fires second finds nothing left to remove.

        Returns:
            Number of records removed
        """
        at = now or self._clock()
        expired = [code for code, r in self._records.items() if r.is_expired(at)]
        for code in expired:
            self._drop(code, expired=True)

        if expired:
            logger.info(f"Cleaned {len(expired)} expired pairing codes")

        return len(expired) + self._evict_over_capacity()

    def clear(self) -> None:
        """Drop every record and cancel all expiry timers"""
        for code in list(self._records):
            self._drop(code)
