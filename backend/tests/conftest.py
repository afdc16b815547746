"""Shared fixtures for the unit tests."""

import pytest


@pytest.fixture
def recorded_sleeps(monkeypatch) -> list[float]:
    """Replace the acquisition backoff sleep with a recorder."""
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("poiroute.services.osm.service.asyncio.sleep", fake_sleep)
    return delays
