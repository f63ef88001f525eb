"""Shared fixtures: a real SQLite store in tmp_path, a controllable clock and a recording sink."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from eslatma.channels.base import MessageSink
from eslatma.core.context import AppContext
from eslatma.core.extractor import TaskExtractor
from eslatma.errors import DeliveryFailed
from eslatma.storage.confirmation import ConfirmationRegister
from eslatma.storage.db_config import init_db
from eslatma.storage.reminder import ReminderStore

TZ = ZoneInfo("Asia/Tashkent")


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingSink(MessageSink):
    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []
        self.fail_with: Exception | None = None

    async def send(self, owner: int, text: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((owner, text))


@pytest_asyncio.fixture
async def store(tmp_path):
    conn = await init_db(str(tmp_path / "reminders.db"))
    store = ReminderStore(conn)
    yield store
    await store.close()


@pytest.fixture
def clock():
    # 2026-10-17 13:00 Tashkent
    return FakeClock(datetime(2026, 10, 17, 13, 0, tzinfo=TZ))


@pytest.fixture
def confirmations():
    return ConfirmationRegister(ttl_seconds=900)


@pytest.fixture
def ctx(store, clock, confirmations):
    return AppContext(
        tz=TZ,
        store=store,
        confirmations=confirmations,
        extractor=TaskExtractor(),
        clock=clock,
    )


@pytest.fixture
def sink():
    return RecordingSink()


def network_down(owner: int = 0) -> DeliveryFailed:
    return DeliveryFailed(owner, "network down")
