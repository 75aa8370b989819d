"""Tests for reference price aggregation."""

import asyncio

import pytest
from conftest import ISBN10_A, ISBN10_B, ISBN10_C, ISBN13_A, FakePriceLookup

from price_enricher.ndl import LookupFailure
from price_enricher.prices import PriceAggregator


class TestPriceAggregator:
    """Test lowest_price."""

    @pytest.mark.asyncio
    async def test_empty_list_makes_no_lookups(self):
        lookup = FakePriceLookup()
        assert await PriceAggregator(lookup).lowest_price([]) is None
        assert lookup.calls == []

    @pytest.mark.asyncio
    async def test_single_candidate(self):
        lookup = FakePriceLookup({ISBN10_A: 750})
        best = await PriceAggregator(lookup).lowest_price([ISBN10_A])
        assert best.identifier == ISBN10_A
        assert best.price == 750

    @pytest.mark.asyncio
    async def test_picks_lowest(self):
        """Should choose the cheapest print edition."""
        lookup = FakePriceLookup({ISBN10_A: 1200, ISBN10_B: 680, ISBN10_C: 900})
        best = await PriceAggregator(lookup).lowest_price([ISBN10_A, ISBN10_B, ISBN10_C])
        assert (best.identifier, best.price) == (ISBN10_B, 680)
        assert sorted(lookup.calls) == sorted([ISBN10_A, ISBN10_B, ISBN10_C])

    @pytest.mark.asyncio
    async def test_tie_keeps_first(self):
        lookup = FakePriceLookup({ISBN10_A: 500, ISBN13_A: 500})
        best = await PriceAggregator(lookup).lowest_price([ISBN13_A, ISBN10_A])
        assert best.identifier == ISBN13_A

    @pytest.mark.asyncio
    async def test_failures_only_drop_their_candidate(self):
        """A failing lookup should not hide other prices."""
        lookup = FakePriceLookup(
            {ISBN10_A: LookupFailure("timeout"), ISBN10_B: None, ISBN10_C: 900}
        )
        best = await PriceAggregator(lookup).lowest_price([ISBN10_A, ISBN10_B, ISBN10_C])
        assert (best.identifier, best.price) == (ISBN10_C, 900)

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_contained(self):
        lookup = FakePriceLookup({ISBN10_A: RuntimeError("boom"), ISBN10_B: 700})
        best = await PriceAggregator(lookup).lowest_price([ISBN10_A, ISBN10_B])
        assert best.price == 700

    @pytest.mark.asyncio
    async def test_all_fail(self):
        lookup = FakePriceLookup({ISBN10_A: LookupFailure("down"), ISBN10_B: None})
        assert await PriceAggregator(lookup).lowest_price([ISBN10_A, ISBN10_B]) is None

    @pytest.mark.asyncio
    async def test_zero_price_is_a_price(self):
        lookup = FakePriceLookup({ISBN10_A: 0, ISBN10_B: 500})
        best = await PriceAggregator(lookup).lowest_price([ISBN10_B, ISBN10_A])
        assert (best.identifier, best.price) == (ISBN10_A, 0)

    @pytest.mark.asyncio
    async def test_lookups_run_concurrently(self):
        """Lookups for all candidates should overlap in time."""
        lookup = FakePriceLookup({ISBN10_A: 1, ISBN10_B: 2, ISBN10_C: 3}, delay=0.2)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await PriceAggregator(lookup).lowest_price([ISBN10_A, ISBN10_B, ISBN10_C])
        assert loop.time() - started < 0.5
