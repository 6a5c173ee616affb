"""Tests for the in-memory pairing registry"""
import re
from datetime import timedelta

import pytest

from pairbot.connection.events import SessionEstablished
from pairbot.pairing.phone import normalize_phone
from pairbot.pairing.registry import PairingRegistry, RecordStatus

DISPLAY_RE = re.compile(r"^[A-Z0-9]{4}-[A-Z0-9]{4}$")


@pytest.fixture
def registry(scheduler):
    return PairingRegistry(scheduler=scheduler, clock=scheduler.clock)


@pytest.fixture
def lazy_registry(scheduler):
    """Registry without expiry timers; only lookups and sweeps remove records"""
    return PairingRegistry(clock=scheduler.clock)


@pytest.fixture
def phone():
    return normalize_phone("+254723278526")


def test_issue_pending_record(registry, phone):
    """Test a fresh code is pending for exactly ten minutes"""
    record = registry.issue(phone)

    assert record.status is RecordStatus.PENDING
    assert DISPLAY_RE.match(record.display_code)
    assert record.expires_at - record.created_at == timedelta(minutes=10)
    assert record.phone_number == "+254723278526"
    assert record.country == "KE"
    assert registry.generated_count == 1
    assert registry.last_display_code == record.display_code


def test_session_id_format(registry):
    record = registry.issue()
    assert re.match(r"^IAN_TECH_\d+_[0-9A-F]{8}$", record.session_id)


def test_lookup_by_raw_and_display_code(registry, phone):
    """Test both code forms and lowercase input find the record"""
    issued = [registry.issue(phone) for _ in range(50)]
    assert len({r.code for r in issued}) == 50

    for record in issued:
        assert registry.lookup(record.code).code == record.code
        assert registry.lookup(record.display_code).code == record.code
        assert registry.lookup(record.display_code.lower()).code == record.code


def test_lookup_unknown_code(registry):
    assert registry.lookup("ZZZZ-9999") is None
    assert registry.lookup("") is None
    assert "ZZZZ9999" not in registry


def test_returned_records_are_copies(registry):
    """Test callers cannot mutate stored records"""
    record = registry.issue()
    record.status = RecordStatus.LINKED

    assert registry.lookup(record.code).status is RecordStatus.PENDING


def test_expired_code_invisible_before_cleanup(lazy_registry, scheduler):
    """Test a code past its expiry is not found even if nothing removed it yet"""
    record = lazy_registry.issue()
    scheduler.advance(9 * 60)
    assert lazy_registry.lookup(record.code) is not None

    scheduler.advance(60)
    assert lazy_registry.lookup(record.code) is None
    assert len(lazy_registry) == 0


def test_expired_code_hidden_from_listing(lazy_registry, scheduler):
    lazy_registry.issue()
    scheduler.advance(11 * 60)
    assert lazy_registry.list_records() == []


def test_expiry_timer_removes_record(registry, scheduler):
    record = registry.issue()
    assert len(scheduler.pending) == 1

    scheduler.advance(10 * 60)

    assert len(registry) == 0
    assert registry.lookup(record.code) is None


def test_sweep_then_timer_is_harmless(registry, scheduler):
    """Test whichever removal runs second finds nothing to do"""
    record = registry.issue()
    removed = registry.sweep_expired(now=scheduler.clock() + timedelta(minutes=11))
    assert removed == 1

    scheduler.advance(10 * 60)
    assert len(registry) == 0
    assert registry.lookup(record.code) is None


def test_capacity_evicts_oldest(scheduler):
    """Test the registry keeps only the newest max_sessions records"""
    registry = PairingRegistry(max_sessions=3, scheduler=scheduler, clock=scheduler.clock)
    issued = []
    for _ in range(5):
        issued.append(registry.issue())
        assert len(registry) <= 3
        scheduler.advance(1)

    assert len(registry) == 3
    assert registry.lookup(issued[0].code) is None
    assert registry.lookup(issued[1].code) is None
    assert [r.code for r in registry.list_records()] == [r.code for r in issued[2:]]


def test_invalid_capacity():
    with pytest.raises(ValueError):
        PairingRegistry(max_sessions=0)


def test_mark_all_pending_linked(registry, scheduler):
    """Test every pending code links; already linked codes keep their time"""
    first = registry.issue()
    registry.mark_all_pending_linked()
    first_linked_at = registry.lookup(first.code).linked_at

    scheduler.advance(30)
    second = registry.issue()
    third = registry.issue()
    scheduler.advance(30)

    assert registry.mark_all_pending_linked() == 2
    assert registry.lookup(first.code).linked_at == first_linked_at
    for record in (second, third):
        stored = registry.lookup(record.code)
        assert stored.status is RecordStatus.LINKED
        assert stored.linked_at == scheduler.clock()


def test_mark_all_skips_expired_records(lazy_registry, scheduler):
    stale = lazy_registry.issue()
    scheduler.advance(11 * 60)
    fresh = lazy_registry.issue()

    assert lazy_registry.mark_all_pending_linked() == 1
    assert lazy_registry.lookup(stale.code) is None
    assert lazy_registry.lookup(fresh.code).status is RecordStatus.LINKED


def test_linked_records_do_not_expire(registry, scheduler):
    record = registry.issue()
    registry.mark_all_pending_linked()
    assert scheduler.pending == []

    scheduler.advance(20 * 60)
    assert registry.sweep_expired() == 0
    assert registry.lookup(record.code).status is RecordStatus.LINKED


def test_session_established_listener(registry, scheduler):
    record = registry.issue()
    registry.on_session_established(SessionEstablished(at=scheduler.clock(), remote_id="254700000000"))

    assert registry.lookup(record.code).status is RecordStatus.LINKED
    assert registry.counts() == {"pending": 0, "linked": 1, "expired": 0}


def test_collision_draws_again(scheduler):
    draws = iter(["AB23CD45", "AB23CD45", "XY67ZW89"])
    registry = PairingRegistry(clock=scheduler.clock, code_factory=lambda: next(draws))

    assert registry.issue().code == "AB23CD45"
    assert registry.issue().code == "XY67ZW89"


def test_collisions_exhausted(scheduler):
    registry = PairingRegistry(clock=scheduler.clock, code_factory=lambda: "AB23CD45")
    registry.issue()

    with pytest.raises(RuntimeError):
        registry.issue()
    assert len(registry) == 1


def test_code_reusable_after_expiry(scheduler):
    """Test uniqueness only applies to live records"""
    draws = iter(["AB23CD45", "AB23CD45"])
    registry = PairingRegistry(clock=scheduler.clock, code_factory=lambda: next(draws))
    registry.issue()
    scheduler.advance(10 * 60)
    registry.sweep_expired()

    assert registry.issue().code == "AB23CD45"


def test_clear_cancels_timers(registry, scheduler):
    registry.issue()
    registry.issue()
    registry.clear()

    assert len(registry) == 0
    assert scheduler.pending == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
