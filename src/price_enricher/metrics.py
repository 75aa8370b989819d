"""
Display metrics derived from an enriched record.

Reference prices from the catalog exclude consumption tax while store prices
include it, so the reference price is taxed before comparing.
"""

import math
from dataclasses import dataclass
from typing import Any

from .models import EnrichedRecord

TAX_RATE = 0.1


def tax_included(price: int, tax_rate: float = TAX_RATE) -> int:
    """Price with consumption tax, rounded down to the yen."""
    return math.floor(price * (1 + tax_rate))


def rate(numerator: int, denominator: int) -> int:
    """Percentage rounded up; 0 when the denominator is 0."""
    if denominator == 0:
        return 0
    return math.ceil(numerator / denominator * 100)


@dataclass
class PriceMetrics:
    """Figures shown next to a listing."""

    item_id: str
    digital_price: int
    loyalty_points: int
    points_rate: int
    reference_price_with_tax: int | None = None
    discount: int | None = None
    discount_rate: int | None = None
    is_purchased: bool = False
    is_self_published: bool = False
    book_id_known: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "item_id": self.item_id,
            "digital_price": self.digital_price,
            "loyalty_points": self.loyalty_points,
            "points_rate": self.points_rate,
            "is_purchased": self.is_purchased,
            "is_self_published": self.is_self_published,
            "book_id_known": self.book_id_known,
        }
        if self.reference_price_with_tax is not None:
            result["reference_price_with_tax"] = self.reference_price_with_tax
            result["discount"] = self.discount
            result["discount_rate"] = self.discount_rate
        return result


def compute_metrics(record: EnrichedRecord, tax_rate: float = TAX_RATE) -> PriceMetrics:
    """Compute discount and point-return figures for a record."""
    metrics = PriceMetrics(
        item_id=record.item_id,
        digital_price=record.digital_price,
        loyalty_points=record.loyalty_points,
        points_rate=rate(record.loyalty_points, record.digital_price),
        is_purchased=record.is_purchased,
        is_self_published=record.is_self_published,
        book_id_known=record.book_id is not None,
    )

    # A zero reference price means the catalog lists it as free or unknown
    if record.reference_price:
        with_tax = tax_included(record.reference_price, tax_rate)
        metrics.reference_price_with_tax = with_tax
        metrics.discount = with_tax - record.digital_price
        metrics.discount_rate = rate(metrics.discount, with_tax)

    return metrics
