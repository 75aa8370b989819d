"""
Bounded worker dispatcher for price-enricher.

Discovered items go through a FIFO queue drained by a fixed pool of
workers, so at most max_concurrency items are enriched at once. A monitor
checks the queue every idle_poll_interval seconds and shuts the dispatcher
down after idle_threshold consecutive checks without new work. In-flight
items always finish; nothing is aborted.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Protocol

from .adapters import PageAdapter
from .config import DispatcherConfig
from .models import EnrichedRecord, ItemDescriptor, ProcessingState

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    async def resolve(self, item: ItemDescriptor) -> EnrichedRecord: ...


@dataclass
class DispatchStats:
    """Counters for one dispatcher run."""

    admitted: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0
    duplicates: int = 0
    peak_in_flight: int = 0
    idle_checks: int = 0
    unresolved: list[str] = field(default_factory=list)


class Dispatcher:
    """Feed discovered items to a bounded pool of enrichment workers."""

    def __init__(
        self,
        adapter: PageAdapter,
        resolver: Resolver,
        config: DispatcherConfig | None = None,
    ):
        self.adapter = adapter
        self.resolver = resolver
        self.config = config or DispatcherConfig()
        self.queue: asyncio.Queue[tuple[str, ItemDescriptor]] = asyncio.Queue()
        self.in_flight = 0
        self.stats = DispatchStats()
        self._states: dict[str, ProcessingState] = {}
        # Tracked items keep their page handle alive, so handle-based keys stay unique
        self._tracked: dict[str, ItemDescriptor] = {}

    def state_of(self, item: ItemDescriptor) -> ProcessingState:
        """Most advanced state known for an item, from the item or earlier discoveries."""
        known = self._states.get(item.key, ProcessingState.PENDING)
        order = list(ProcessingState)
        return max(item.state, known, key=order.index)

    def _set_state(self, key: str, item: ItemDescriptor, state: ProcessingState) -> None:
        self._states[key] = state
        self._states[item.key] = state
        self._tracked[key] = item
        self._tracked[item.key] = item
        item.advance(state)

    def offer(self, item: ItemDescriptor) -> bool:
        """
        Admit a discovered item into the queue.

        Irrelevant items and items already queued or running are skipped.
        Items already done are queued for the hand-off step only.
        """
        if not self.adapter.is_relevant(item):
            self.stats.dropped += 1
            return False

        key = item.key
        state = self.state_of(item)
        if state is ProcessingState.PROCESSING:
            logger.debug(f"Already queued: {key}")
            self.stats.duplicates += 1
            return False

        if state is ProcessingState.PENDING:
            self._set_state(key, item, ProcessingState.PROCESSING)
            self.adapter.mark_processing(item)
        else:
            self.stats.duplicates += 1
            item.advance(ProcessingState.DONE)

        self.queue.put_nowait((key, item))
        self.stats.admitted += 1
        return True

    def _hand_off(self, item: ItemDescriptor) -> None:
        try:
            self.adapter.mark_done(item)
        except Exception:
            logger.exception(f"Could not mark {item.key} as done")

    async def _process(self, key: str, item: ItemDescriptor) -> None:
        if item.state is ProcessingState.DONE:
            logger.info(f"ITEM ALREADY DONE:[{item.item_id}]{item.title or ''}")
            self._hand_off(item)
            return

        logger.info(f"ITEM:[{item.item_id}]{item.title or ''}")
        try:
            record = await self.resolver.resolve(item)
            self.adapter.render_result(item, record)
            self.stats.completed += 1
        except Exception:
            logger.exception(f"Unresolved item {item.item_id or key}")
            self.stats.failed += 1
            self.stats.unresolved.append(item.item_id or key)
        finally:
            self._set_state(key, item, ProcessingState.DONE)
            self._hand_off(item)

    async def _worker(self, number: int) -> None:
        while True:
            key, item = await self.queue.get()
            self.in_flight += 1
            self.stats.peak_in_flight = max(self.stats.peak_in_flight, self.in_flight)
            try:
                await self._process(key, item)
            finally:
                self.in_flight -= 1
                self.queue.task_done()

    async def _produce(self) -> None:
        source = self.adapter.discover_items()
        try:
            async for item in source:
                self.offer(item)
            logger.info("Discovery source exhausted")
        except asyncio.CancelledError:
            logger.info("Discovery stopped")
            raise
        except Exception:
            logger.exception("Discovery source failed")
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _wait_until_idle(self, producer: asyncio.Task) -> None:
        idle = 0
        last_admitted = self.stats.admitted
        while True:
            await asyncio.sleep(self.config.idle_poll_interval)

            if producer.done() and self.queue.empty() and self.in_flight == 0:
                logger.info("All discovered items handled")
                break

            if self.queue.empty() and self.stats.admitted == last_admitted:
                idle += 1
            else:
                idle = 0
            last_admitted = self.stats.admitted
            self.stats.idle_checks = idle

            if idle >= self.config.idle_threshold:
                logger.info(f"No new items after {idle} checks, stopping discovery")
                break

    async def run(self) -> DispatchStats:
        """Run until discovery goes quiet, then wait for in-flight items."""
        logger.info(f"Dispatcher starting with {self.config.max_concurrency} workers")
        workers = [
            asyncio.create_task(self._worker(n)) for n in range(self.config.max_concurrency)
        ]
        producer = asyncio.create_task(self._produce())

        try:
            await self._wait_until_idle(producer)
        finally:
            producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await producer

            # Let queued and in-flight items finish before stopping the pool
            await self.queue.join()
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        logger.info(
            f"Dispatcher finished: {self.stats.completed} completed, "
            f"{self.stats.failed} failed, {self.stats.dropped} dropped"
        )
        return self.stats
