"""
Data models for price-enricher.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ProcessingState(str, Enum):
    """Processing state of a discovered item. Moves forward only."""

    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"


@dataclass
class ItemDescriptor:
    """A discovered catalog entry handed over by a page adapter."""

    ref: Any  # Adapter-owned handle (element, dict, ...)
    item_id: str | None = None
    title: str | None = None
    state: ProcessingState = ProcessingState.PENDING

    @property
    def key(self) -> str:
        """Deduplication key: the item id when known, else the handle identity."""
        if self.item_id:
            return self.item_id
        return f"ref:{id(self.ref)}"

    def advance(self, state: ProcessingState) -> None:
        """Move to a later state; moving backwards is ignored."""
        order = list(ProcessingState)
        if order.index(state) > order.index(self.state):
            self.state = state


@dataclass
class PriceCandidate:
    """Result of one reference price lookup. price is None when unresolved."""

    identifier: str
    price: int | None = None


def _to_millis(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def _from_millis(value: int | float) -> datetime:
    try:
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Timestamp out of range: {value!r}") from e


@dataclass
class EnrichedRecord:
    """
    Computed pricing data for one digital edition.

    Stored with the same camelCase layout the browser cache used, so old
    entries stay readable:
    asin, isbn, paperPrice, kindlePrice, pointReturn, isBought, isKdp,
    updatedAt (epoch milliseconds).
    """

    item_id: str
    digital_price: int = 0
    loyalty_points: int = 0
    book_id: str | None = None
    reference_price: int | None = None
    is_purchased: bool = False
    is_self_published: bool = False
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self):
        if self.digital_price < 0:
            raise ValueError(f"digital_price must be non-negative, got {self.digital_price}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary in storage layout."""
        return {
            "asin": self.item_id,
            "isbn": self.book_id,
            "paperPrice": self.reference_price,
            "kindlePrice": self.digital_price,
            "pointReturn": self.loyalty_points,
            "isBought": self.is_purchased,
            "isKdp": self.is_self_published,
            "updatedAt": _to_millis(self.updated_at),
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnrichedRecord":
        """
        Create from a stored dictionary.

        Raises KeyError, TypeError or ValueError when the shape is wrong.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")

        reference_price = data.get("paperPrice")
        return cls(
            item_id=str(data["asin"]),
            book_id=data.get("isbn"),
            reference_price=int(reference_price) if reference_price is not None else None,
            digital_price=int(data.get("kindlePrice") or 0),
            loyalty_points=int(data.get("pointReturn") or 0),
            is_purchased=bool(data.get("isBought", False)),
            is_self_published=bool(data.get("isKdp", False)),
            updated_at=_from_millis(data["updatedAt"]),
        )

    @classmethod
    def from_json(cls, raw: str) -> "EnrichedRecord":
        """Deserialize from JSON string."""
        return cls.from_dict(json.loads(raw))
