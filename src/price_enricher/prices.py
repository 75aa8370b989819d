"""
Reference price aggregation for price-enricher.

A digital edition can have several print counterparts (paperback, bunko,
collector's edition...). The reference price is the lowest one we can
resolve; individual lookup failures only drop that candidate.
"""

import asyncio
import logging

from .models import PriceCandidate
from .ndl import PriceLookup

logger = logging.getLogger(__name__)


class PriceAggregator:
    """Resolve the lowest reference price across candidate identifiers."""

    def __init__(self, lookup: PriceLookup):
        self.lookup = lookup

    async def _candidate(self, identifier: str) -> PriceCandidate:
        try:
            price = await self.lookup.lookup_price(identifier)
        except Exception as e:
            logger.warning(f"Price lookup failed for {identifier}: {e}")
            price = None
        candidate = PriceCandidate(identifier=identifier, price=price)
        logger.debug(f"Candidate {candidate}")
        return candidate

    async def lowest_price(self, identifiers: list[str]) -> PriceCandidate | None:
        """
        Look up every identifier concurrently and return the cheapest.

        Returns None for an empty list (without lookups) or when no lookup
        produced a price. Ties keep the earlier identifier.
        """
        if not identifiers:
            return None

        candidates = await asyncio.gather(*(self._candidate(i) for i in identifiers))

        best: PriceCandidate | None = None
        for candidate in candidates:
            if candidate.price is None:
                continue
            if best is None or candidate.price < best.price:
                best = candidate

        logger.debug(f"Lowest price: {best}")
        return best
