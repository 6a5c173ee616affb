"""Tests for the neonize session adapter's event mapping"""
from types import SimpleNamespace

import pytest

pytest.importorskip("neonize")

from pairbot.connection.neonize_session import NeonizeSession  # noqa: E402


@pytest.fixture
def updates():
    return []


@pytest.fixture
def session(tmp_path, updates):
    async def on_update(update):
        updates.append(update)

    return NeonizeSession(tmp_path, on_update)


@pytest.mark.asyncio
async def test_qr_bytes_decoded(session, updates):
    await session.on_qr(b"2@abc,def")
    assert updates[0].qr == "2@abc,def"
    assert updates[0].connection is None


@pytest.mark.asyncio
async def test_pair_then_connect_reports_remote_id(session, updates):
    await session.on_pair_status(SimpleNamespace(ID=SimpleNamespace(User="254700000000")))
    await session.on_connected(SimpleNamespace())

    assert updates[0].is_new_login
    assert updates[1].connection == "open"
    assert updates[1].remote_id == "254700000000"


@pytest.mark.asyncio
async def test_logged_out_maps_to_401(session, updates):
    await session.on_logged_out(SimpleNamespace())
    assert updates[0].connection == "close"
    assert updates[0].status_code == 401


@pytest.mark.asyncio
async def test_only_first_close_is_reported(session, updates):
    await session.on_disconnected(SimpleNamespace())
    await session.on_logged_out(SimpleNamespace())
    await session.on_qr("late")

    assert len(updates) == 1
    assert updates[0].status_code == 408


@pytest.mark.asyncio
async def test_connect_failure_maps_to_428(session, updates):
    await session.on_connect_failure(SimpleNamespace(Reason="banned"))
    assert updates[0].status_code == 428
    assert "banned" in updates[0].reason


def test_auth_db_lives_in_auth_dir(session, tmp_path):
    assert session.auth_db == tmp_path / "neonize.db"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
