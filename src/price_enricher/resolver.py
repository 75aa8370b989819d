"""
Enrichment resolver for price-enricher.

Produces one EnrichedRecord per item, reusing cached data where possible:

1. Fresh cache entry: returned as-is, no page reads or lookups.
2. Stale cache entry: live page fields are re-read, but the previously
   resolved book identifier and reference price are kept.
3. No cache entry: identifiers from the page are validated and priced,
   and the publisher is classified when no reference price was found.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from .adapters import PageAdapter, PageFields
from .cache import RecordCache, utc_now
from .identifiers import valid_candidates
from .models import EnrichedRecord, ItemDescriptor
from .prices import PriceAggregator
from .publishers import PublisherClassifier, extract_publisher_name

logger = logging.getLogger(__name__)


class MissingIdentifierError(Exception):
    """The item has no stable id, so it cannot be cached or resolved."""


class EnrichmentResolver:
    """Resolve enriched records for discovered items."""

    def __init__(
        self,
        adapter: PageAdapter,
        cache: RecordCache,
        aggregator: PriceAggregator,
        classifier: PublisherClassifier,
        clock: Callable[[], datetime] = utc_now,
        trust_purchased: bool = False,
    ):
        self.adapter = adapter
        self.cache = cache
        self.aggregator = aggregator
        self.classifier = classifier
        self.clock = clock
        self.trust_purchased = trust_purchased

    def _cached_if_usable(self, item_id: str) -> EnrichedRecord | None:
        if self.cache.is_fresh(item_id):
            logger.info(f"CACHE LOAD:[{item_id}]")
            return self.cache.get(item_id)

        if self.trust_purchased:
            cached = self.cache.get(item_id)
            if cached is not None and cached.is_purchased:
                logger.info(f"CACHE LOAD (purchased):[{item_id}]")
                return cached

        return None

    async def _book_info(
        self, fields: PageFields, cached: EnrichedRecord | None
    ) -> tuple[str | None, int | None]:
        """Book identifier and reference price, from cache or fresh lookups."""
        if cached is not None:
            logger.debug(f"Reusing book info for {cached.item_id}: {cached.book_id}")
            return cached.book_id, cached.reference_price

        candidates = valid_candidates(fields.identifier_candidates)
        logger.debug(f"ISBN candidates: {candidates}")
        if not candidates:
            return None, None

        best = await self.aggregator.lowest_price(candidates)
        if best is None:
            # Known print edition without a usable price
            return candidates[0], None
        return best.identifier, best.price

    async def resolve(self, item: ItemDescriptor, force_refresh: bool = False) -> EnrichedRecord:
        """
        Resolve the enriched record for an item.

        Args:
            item: Discovered item
            force_refresh: Skip the fresh-cache shortcut (item pages always
                show live figures)

        Raises:
            MissingIdentifierError: if no item id can be determined
        """
        item_id = item.item_id
        if item_id and not force_refresh:
            cached_record = self._cached_if_usable(item_id)
            if cached_record is not None:
                return cached_record

        fields = await self.adapter.read_fields(item)
        item_id = item_id or fields.item_id
        if not item_id:
            raise MissingIdentifierError(f"No item id for {item.title or item.ref!r}")
        if item.item_id is None:
            item.item_id = item_id
            if not force_refresh:
                cached_record = self._cached_if_usable(item_id)
                if cached_record is not None:
                    return cached_record

        logger.info(f"CACHE EXPIRE:[{item_id}]{item.title or ''}")
        cached = self.cache.get(item_id)

        book_id, reference_price = await self._book_info(fields, cached)

        digital_price = fields.digital_price
        if digital_price is None:
            digital_price = cached.digital_price if cached is not None else 0
        digital_price = max(digital_price, 0)

        is_self_published = False
        if reference_price is None and not fields.is_purchased:
            publisher = extract_publisher_name(fields.publisher)
            is_self_published = await self.classifier.is_self_published(publisher)

        record = EnrichedRecord(
            item_id=item_id,
            book_id=book_id,
            reference_price=reference_price,
            digital_price=digital_price,
            loyalty_points=max(fields.loyalty_points, 0),
            is_purchased=fields.is_purchased,
            is_self_published=is_self_published,
            updated_at=self.clock(),
        )
        self.cache.put(item_id, record)
        logger.info(f"DATA:[{item_id}] {record.to_dict()}")
        return record
