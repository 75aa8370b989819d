"""Shared pytest fixtures for price-enricher tests."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from price_enricher.adapters import PageAdapter, PageFields
from price_enricher.migrations import run_migrations
from price_enricher.models import ItemDescriptor
from price_enricher.ndl import LookupFailure
from price_enricher.store import MemoryStore

# Valid Japanese ISBNs used throughout the tests
ISBN10_A = "4088725093"
ISBN10_B = "4061234560"
ISBN10_C = "4098512343"
ISBN10_X = "406000006X"
ISBN13_A = "9784088725093"
ISBN13_B = "9784061234567"

START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Controllable time source."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakePriceLookup:
    """Price lookup answering from a dict. Exceptions in the dict are raised."""

    def __init__(self, prices: dict | None = None, delay: float = 0.0):
        self.prices = prices or {}
        self.delay = delay
        self.calls: list[str] = []

    async def lookup_price(self, isbn: str) -> int | None:
        self.calls.append(isbn)
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.prices.get(isbn)
        if isinstance(result, Exception):
            raise result
        return result


class FakeRegistry:
    """Publisher registry answering from a dict; unknown names raise LookupFailure."""

    def __init__(self, presence: dict[str, bool] | None = None):
        self.presence = presence or {}
        self.calls: list[str] = []

    async def has_catalog_presence(self, publisher: str) -> bool:
        self.calls.append(publisher)
        if publisher not in self.presence:
            raise LookupFailure(f"no answer for {publisher}")
        return self.presence[publisher]


class FakeAdapter(PageAdapter):
    """
    In-memory page adapter.

    items are yielded in order; with endless=True discovery then stays open
    without producing anything, like a page that keeps observing changes.
    """

    def __init__(
        self,
        items: list[ItemDescriptor] | None = None,
        fields: dict[str, PageFields] | None = None,
        endless: bool = False,
        read_delay: float = 0.0,
        relevant=None,
    ):
        self.items = items or []
        self.fields = fields or {}
        self.endless = endless
        self.read_delay = read_delay
        self.relevant = relevant
        self.read_calls: list[str | None] = []
        self.processing: list[str] = []
        self.done: list[str] = []
        self.rendered: dict[str, object] = {}
        self.closed = False
        self.active_reads = 0
        self.peak_reads = 0

    async def discover_items(self):
        try:
            for item in self.items:
                yield item
                await asyncio.sleep(0)
            if self.endless:
                await asyncio.Event().wait()
        finally:
            self.closed = True

    def is_relevant(self, item: ItemDescriptor) -> bool:
        if self.relevant is None:
            return True
        return self.relevant(item)

    async def read_fields(self, item: ItemDescriptor) -> PageFields:
        self.read_calls.append(item.item_id)
        self.active_reads += 1
        self.peak_reads = max(self.peak_reads, self.active_reads)
        try:
            if self.read_delay:
                await asyncio.sleep(self.read_delay)
            key = item.item_id or item.ref
            return self.fields.get(key, PageFields(item_id=item.item_id))
        finally:
            self.active_reads -= 1

    def mark_processing(self, item: ItemDescriptor) -> None:
        self.processing.append(item.key)

    def mark_done(self, item: ItemDescriptor) -> None:
        self.done.append(item.key)

    def render_result(self, item: ItemDescriptor, record) -> None:
        self.rendered[record.item_id] = record


@pytest.fixture
def db_path(tmp_path):
    """Create a temporary database with full schema via migrations."""
    db_file = tmp_path / "test_price_enricher.db"
    run_migrations(db_file)
    return db_file


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()
