"""Shared fixtures: a virtual clock and the mock pizza API transport."""

import asyncio

import httpx
import pytest

from mock_service.app import app as mock_app


class FakeClock:
    """Virtual time: a wait that is not cut short by its event advances ``now``."""

    def __init__(self, start: float = 0.0):
        self.current = start

    def now(self) -> float:
        return self.current

    async def wait(self, event: asyncio.Event, timeout: float) -> bool:
        if event.is_set():
            return True
        if timeout > 0:
            self.current += timeout
        await asyncio.sleep(0)
        return event.is_set()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_transport():
    return httpx.ASGITransport(app=mock_app)
