"""
Page adapters for price-enricher.

A page adapter owns everything page-specific: finding listing entries,
reading raw fields from them, and showing the computed figures. The
pipeline only sees ItemDescriptors and PageFields.
"""

import json
import logging
import re
import sys
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from .identifiers import extract_isbn_candidates
from .metrics import TAX_RATE, compute_metrics
from .models import EnrichedRecord, ItemDescriptor

logger = logging.getLogger(__name__)

FULLWIDTH_DIGITS = str.maketrans("０１２３４５６７８９，", "0123456789,")
NUMBER_PATTERN = re.compile(r"[0-9][0-9,]*")


def parse_int_field(value: Any, default: int | None = None) -> int | None:
    """
    Parse a price or point count from page text such as "￥1,200" or "36pt".

    Missing or digit-less values return the default instead of failing.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = str(value).translate(FULLWIDTH_DIGITS)
    match = NUMBER_PATTERN.search(text)
    if not match:
        return default
    return int(match.group(0).replace(",", ""))


@dataclass
class PageFields:
    """Live fields read from an item's page."""

    item_id: str | None = None
    identifier_candidates: list[str] = field(default_factory=list)
    digital_price: int | None = None
    loyalty_points: int = 0
    is_purchased: bool = False
    publisher: str | None = None  # Raw publisher text, e.g. "講談社 (2020/1/1)"


class PageAdapter(ABC):
    """Interface between the enrichment pipeline and a listing page."""

    @abstractmethod
    def discover_items(self) -> AsyncIterator[ItemDescriptor]:
        """Yield listing entries as they appear. May never end."""

    @abstractmethod
    async def read_fields(self, item: ItemDescriptor) -> PageFields:
        """Read the live fields of an item."""

    def is_relevant(self, item: ItemDescriptor) -> bool:
        """Whether an entry should be enriched at all."""
        return True

    def mark_processing(self, item: ItemDescriptor) -> None:
        """Show that an item is queued for enrichment."""

    def mark_done(self, item: ItemDescriptor) -> None:
        """Clear the processing indicator of an item."""

    @abstractmethod
    def render_result(self, item: ItemDescriptor, record: EnrichedRecord) -> None:
        """Show the enriched figures for an item."""


class JsonLinesPageAdapter(PageAdapter):
    """
    Adapter over a JSON-lines file of pre-extracted listing entries.

    Each line is an object such as:

        {"asin": "B08XXXXXXX", "title": "...", "kindle": true,
         "links": ["/dp/4088725093"], "isbns": [], "price": "￥500",
         "points": "50pt", "purchased": false, "publisher": "集英社 (2020/1/1)",
         "bulk_buy": false}

    Results are written as JSON lines to the output stream.
    """

    def __init__(self, path: Path, output: TextIO | None = None, tax_rate: float = TAX_RATE):
        self.path = path
        self.output = output or sys.stdout
        self.tax_rate = tax_rate
        self.results: dict[str, dict[str, Any]] = {}

    async def discover_items(self) -> AsyncIterator[ItemDescriptor]:
        with open(self.path, encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning(f"{self.path}:{line_no}: skipping invalid JSON: {e}")
                    continue
                if not isinstance(entry, dict):
                    logger.warning(f"{self.path}:{line_no}: skipping non-object entry")
                    continue
                yield ItemDescriptor(
                    ref=entry,
                    item_id=entry.get("asin"),
                    title=entry.get("title"),
                )

    def is_relevant(self, item: ItemDescriptor) -> bool:
        entry = item.ref
        if not item.item_id or not entry.get("kindle", True) or entry.get("bulk_buy", False):
            logger.info(f"DROP:[{item.item_id}]{item.title}")
            return False
        return True

    async def read_fields(self, item: ItemDescriptor) -> PageFields:
        entry = item.ref
        candidates = list(entry.get("isbns") or [])
        for candidate in extract_isbn_candidates(entry.get("links") or []):
            if candidate not in candidates:
                candidates.append(candidate)

        return PageFields(
            item_id=entry.get("asin"),
            identifier_candidates=candidates,
            digital_price=parse_int_field(entry.get("price")),
            loyalty_points=parse_int_field(entry.get("points"), default=0) or 0,
            is_purchased=bool(entry.get("purchased", False)),
            publisher=entry.get("publisher"),
        )

    def mark_processing(self, item: ItemDescriptor) -> None:
        logger.info(f"PUSH:[{item.item_id}]{item.title}")

    def mark_done(self, item: ItemDescriptor) -> None:
        logger.info(f"END:[{item.item_id}]{item.title}")

    def render_result(self, item: ItemDescriptor, record: EnrichedRecord) -> None:
        result = compute_metrics(record, self.tax_rate).to_dict()
        result["title"] = item.title
        self.results[record.item_id] = result
        self.output.write(json.dumps(result, ensure_ascii=False) + "\n")
        self.output.flush()
