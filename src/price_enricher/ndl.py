"""
National Diet Library search client for price-enricher.

Looks up print-edition list prices by ISBN and checks whether a publisher
has any records in the national catalog. Both go through the NDL Search
SRU endpoint with the DC-NDL record schema.

API Documentation: https://iss.ndl.go.jp/information/api/
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

NDL_SRU_BASE = "https://iss.ndl.go.jp/api/sru"

FULLWIDTH_DIGITS = str.maketrans("０１２３４５６７８９，", "0123456789,")
DIGITS_PATTERN = re.compile(r"[0-9]+")


class LookupFailure(Exception):
    """An external lookup errored, timed out, or returned an unusable response."""


class PriceLookup(Protocol):
    async def lookup_price(self, isbn: str) -> int | None: ...


class PublisherRegistry(Protocol):
    async def has_catalog_presence(self, publisher: str) -> bool: ...


def _local_name(tag: str) -> str:
    """Strip the {namespace} prefix from an element tag."""
    return tag.rsplit("}", 1)[-1]


def _find_text(xml_text: str, name: str) -> str | None:
    """Text of the first element with the given local name, ignoring namespaces."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise LookupFailure(f"Unparseable SRU response: {e}") from e

    for element in root.iter():
        if _local_name(element.tag) == name:
            return element.text or ""
    return None


def parse_price(xml_text: str) -> int | None:
    """
    Parse the list price from a DC-NDL search response.

    Full-width digits are normalized and thousands separators dropped;
    the first run of digits is the price. Returns None when the record
    has no usable price.
    """
    text = _find_text(xml_text, "price")
    if text is None:
        return None
    normalized = text.translate(FULLWIDTH_DIGITS).replace(",", "")
    match = DIGITS_PATTERN.search(normalized)
    if not match:
        return None
    return int(match.group(0))


def parse_has_records(xml_text: str) -> bool:
    """Whether an SRU response reports at least one record."""
    text = _find_text(xml_text, "numberOfRecords")
    if text is None:
        raise LookupFailure("SRU response has no numberOfRecords")
    return text.strip() != "0"


class NdlClient:
    """
    Client for the NDL Search SRU API.

    Implements both PriceLookup and PublisherRegistry.
    """

    def __init__(self, api_base: str = NDL_SRU_BASE, timeout_seconds: float = 10.0):
        """
        Initialize the NDL client.

        Args:
            api_base: SRU endpoint URL
            timeout_seconds: Request timeout in seconds
        """
        self.api_base = api_base
        self.timeout = timeout_seconds

    async def _search(self, query: str, **extra: str | int) -> str:
        params: dict[str, str | int] = {
            "operation": "searchRetrieve",
            "recordSchema": "dcndl",
            "recordPacking": "xml",
            "query": query,
            **extra,
        }
        logger.debug(f"GET {self.api_base} query={query}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(self.api_base, params=params, follow_redirects=True)
                response.raise_for_status()
                return response.text
            except httpx.HTTPError as e:
                logger.warning(f"NDL request failed for {query}: {e}")
                raise LookupFailure(str(e)) from e

    async def lookup_price(self, isbn: str) -> int | None:
        """
        Look up the list price of a print edition.

        Args:
            isbn: ISBN-10 or ISBN-13

        Returns:
            Price in yen (tax excluded), or None if the record has no price

        Raises:
            LookupFailure: on transport errors or unparseable responses
        """
        xml_text = await self._search(f"isbn={isbn}")
        price = parse_price(xml_text)
        logger.debug(f"ISBN {isbn}: price={price}")
        return price

    async def has_catalog_presence(self, publisher: str) -> bool:
        """
        Check whether a publisher has any print records in the catalog.

        Raises:
            LookupFailure: on transport errors or unparseable responses
        """
        xml_text = await self._search(
            f"publisher={publisher}",
            maximumRecords=1,
            mediatype=1,
        )
        found = parse_has_records(xml_text)
        logger.debug(f"Publisher {publisher}: has records={found}")
        return found
