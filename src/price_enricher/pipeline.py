"""
Processing pipeline for price-enricher.

Builds the cache, lookups, resolver and dispatcher for one page and runs
them. Every collaborator is passed in explicitly so tests can swap them.
"""

import json
import logging
import random
from collections.abc import Callable
from datetime import datetime

from .adapters import PageAdapter
from .cache import RecordCache, utc_now
from .config import EnricherConfig
from .dispatcher import DispatchStats, Dispatcher
from .models import EnrichedRecord, ItemDescriptor
from .ndl import NdlClient, PriceLookup, PublisherRegistry
from .prices import PriceAggregator
from .publishers import PublisherClassifier
from .resolver import EnrichmentResolver
from .store import SETTINGS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class Pipeline:
    """
    The enrichment pipeline for one listing page.

    run() enriches every item the adapter discovers; enrich_one() handles a
    single item page, which always shows live figures.
    """

    def __init__(
        self,
        config: EnricherConfig,
        store: KeyValueStore,
        adapter: PageAdapter,
        price_lookup: PriceLookup | None = None,
        registry: PublisherRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Enricher configuration
            store: Key-value store for records and classifications
            adapter: Page adapter for the current page
            price_lookup: Optional price lookup (defaults to NdlClient, for testing)
            registry: Optional publisher registry (defaults to NdlClient, for testing)
            clock: Time source
            rng: Random source for the probabilistic cache clean
        """
        config.validate()
        self.config = config
        self.store = store
        self.adapter = adapter

        if price_lookup is None or registry is None:
            client = NdlClient(config.ndl.api_base, config.ndl.timeout_seconds)
            price_lookup = price_lookup or client
            registry = registry or client

        self.cache = RecordCache(store, config.cache, clock, rng)
        self.aggregator = PriceAggregator(price_lookup)
        self.classifier = PublisherClassifier(store, registry, config.commercial_publishers)
        self.resolver = EnrichmentResolver(
            adapter,
            self.cache,
            self.aggregator,
            self.classifier,
            clock=clock,
            trust_purchased=config.trust_purchased,
        )

    def save_settings(self) -> None:
        """Snapshot the active configuration under the SETTINGS key."""
        self.store.set(SETTINGS_KEY, json.dumps(self.config.to_dict()))

    async def run(self) -> DispatchStats:
        """Enrich every item discovered on the page."""
        self.save_settings()
        if self.cache.maybe_sweep():
            logger.info("Automatic cache clean ran")

        dispatcher = Dispatcher(self.adapter, self.resolver, self.config.dispatcher)
        return await dispatcher.run()

    async def enrich_one(self, item: ItemDescriptor) -> EnrichedRecord:
        """Enrich a single item with live page fields and show the result."""
        self.cache.maybe_sweep()
        record = await self.resolver.resolve(item, force_refresh=True)
        self.adapter.render_result(item, record)
        return record
