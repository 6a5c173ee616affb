"""
Pytest configuration for pairbot tests

Shared fakes: a manual scheduler/clock, a WhatsApp session factory and a
QR renderer.
"""
import inspect
from datetime import UTC, datetime, timedelta

import pytest

from pairbot.config.config import PairbotConfig

START_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeTimer:
    def __init__(self, due, delay, callback):
        self.due = due
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Scheduler and clock advanced by hand"""

    def __init__(self, start=START_TIME):
        self.start = start
        self.now = 0.0
        self.timers = []
        self.closed = False

    def clock(self):
        return self.start + timedelta(seconds=self.now)

    def call_later(self, delay, callback):
        if self.closed:
            raise RuntimeError("Scheduler is closed")
        timer = FakeTimer(self.now + delay, delay, callback)
        self.timers.append(timer)
        return timer

    def cancel_all(self):
        self.closed = True
        for timer in self.timers:
            timer.cancel()

    def reopen(self):
        self.closed = False

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds):
        """Move time forward and run due plain callbacks; due coroutine callbacks are returned"""
        self.now += seconds
        deferred = []
        for timer in sorted(self.pending, key=lambda t: t.due):
            if timer.due <= self.now:
                timer.fired = True
                if inspect.iscoroutinefunction(timer.callback):
                    deferred.append(timer.callback)
                else:
                    timer.callback()
        return deferred

    async def advance_async(self, seconds):
        for callback in self.advance(seconds):
            await callback()


class FakeSession:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FakeSessionFactory:
    """Stands in for the WhatsApp client; tests push updates through emit()"""

    def __init__(self):
        self.calls = 0
        self.fail = None
        self.sessions = []
        self.on_update = None
        self.auth_dirs = []

    async def __call__(self, auth_dir, on_update):
        self.calls += 1
        self.auth_dirs.append(auth_dir)
        if self.fail is not None:
            raise self.fail
        self.on_update = on_update
        session = FakeSession()
        self.sessions.append(session)
        return session

    async def emit(self, update):
        await self.on_update(update)


async def fake_render_qr(payload):
    return f"data:image/png;base64,{payload}"


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def session_factory():
    return FakeSessionFactory()


@pytest.fixture
def render_qr():
    return fake_render_qr


@pytest.fixture
def test_config(tmp_path):
    """Config that never touches the network or the real auth directory"""
    config = PairbotConfig()
    config.connection.auth_dir = str(tmp_path / "auth_info")
    config.connection.auto_connect = False
    return config
