"""Tests for the pairing service wiring"""
import pytest

from pairbot.connection.events import ConnectionUpdate
from pairbot.connection.status import BotStatus
from pairbot.gateway.error_codes import PhoneValidationError
from pairbot.pairing.registry import RecordStatus
from pairbot.service import PairingService


@pytest.fixture
def service(test_config, session_factory, scheduler, render_qr):
    return PairingService(
        test_config,
        session_factory=session_factory,
        scheduler=scheduler,
        clock=scheduler.clock,
        render_qr=render_qr,
    )


def test_generate_code(service):
    record, phone = service.generate_code("0723278526")

    assert phone.e164 == "+254723278526"
    assert record.phone_number == "+254723278526"
    assert record.bot_status == "disconnected"
    assert record.generated_by == "IAN TECH"
    assert service.verify_code(record.display_code).code == record.code


def test_invalid_phone_creates_nothing(service):
    with pytest.raises(PhoneValidationError):
        service.generate_code("abc")
    assert len(service.registry) == 0
    assert service.registry.generated_count == 0


def test_config_flows_into_registry(test_config, session_factory, scheduler):
    test_config.pairing.code_expiry_minutes = 2
    test_config.pairing.max_sessions = 7
    test_config.company.session_prefix = "ACME"
    service = PairingService(test_config, session_factory=session_factory, scheduler=scheduler, clock=scheduler.clock)

    record, _ = service.generate_code("+254723278526")
    assert (record.expires_at - record.created_at).total_seconds() == 120
    assert record.session_id.startswith("ACME_")
    assert service.registry.max_sessions == 7


@pytest.mark.asyncio
async def test_start_schedules_connection(service, scheduler, session_factory):
    """Test auto-connect waits for the startup delay"""
    service.config.connection.auto_connect = True
    await service.start()

    assert [t.delay for t in scheduler.pending] == [2]
    assert service.sweeper.running

    await scheduler.advance_async(2)
    assert session_factory.calls == 1
    assert service.mirror.status.status is BotStatus.CONNECTING

    await service.stop()


@pytest.mark.asyncio
async def test_start_without_auto_connect(service, scheduler, session_factory):
    await service.start()
    assert scheduler.pending == []
    await service.stop()
    assert session_factory.calls == 0


@pytest.mark.asyncio
async def test_session_open_links_issued_codes(service, session_factory):
    record, _ = service.generate_code("+254723278526")
    await service.mirror.connect()
    await session_factory.emit(ConnectionUpdate(connection="open", remote_id="254700000000"))

    assert service.verify_code(record.code).status is RecordStatus.LINKED


@pytest.mark.asyncio
async def test_stop_cancels_everything(service, scheduler, session_factory):
    await service.start()
    service.generate_code("+254723278526")
    await service.mirror.connect()
    await session_factory.emit(ConnectionUpdate(connection="close", status_code=515))

    await service.stop()

    assert scheduler.closed
    assert scheduler.pending == []
    assert not service.sweeper.running
    assert service.mirror.closed


@pytest.mark.asyncio
async def test_restart_after_stop(service, scheduler, session_factory):
    """Test a stopped service can be started again and keeps issuing codes"""
    service.config.connection.auto_connect = True
    await service.start()
    await service.stop()
    await service.start()

    record, _ = service.generate_code("+254723278526")
    assert service.verify_code(record.code) is not None
    assert service.sweeper.running

    await scheduler.advance_async(2)
    assert session_factory.calls == 1
    assert service.mirror.status.status is BotStatus.CONNECTING

    await service.stop()
