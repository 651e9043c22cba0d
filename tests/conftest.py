"""
Pytest configuration and shared fixtures for the ledger tests.

- Unit tests go in tests/unit/
- Integration tests (HTTP layer) go in tests/integration/
"""
from datetime import datetime, timedelta, timezone

import pytest

from aidchain.data_access.memory import InMemoryLedgerStore
from aidchain.services.ledger_service import LedgerService


class FakeClock:
    """Clock that advances one second per reading."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))


@pytest.fixture
def ledger(clock) -> LedgerService:
    """A fresh engine over an empty in-memory store."""
    return LedgerService(store=InMemoryLedgerStore(), clock=clock)


@pytest.fixture
def seeded_ledger(ledger) -> LedgerService:
    """Ledger holding (A, money, ny), (B, goods, ny), (A, money, la)."""
    ledger.create("donor-a", 100, "money", "ny", "red_cross")
    ledger.create("donor-b", 40, "goods", "ny", "unicef")
    ledger.create("donor-a", 25, "money", "la", "red_cross")
    return ledger
