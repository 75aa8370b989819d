"""
TTL cache of enriched records for price-enricher.

Two windows apply to every entry:

- rescan interval: entries younger than this are fresh and are served
  without touching the page or the external APIs.
- cache lifetime: entries older than this are removed by sweep().

Sweeps are not scheduled. Each pipeline run calls maybe_sweep(), which
sweeps with probability 1 / automatic_clean_factor.
"""

import json
import logging
import random
from collections.abc import Callable
from datetime import UTC, datetime

from .config import CacheConfig
from .models import EnrichedRecord
from .store import RESERVED_KEYS, KeyValueStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class RecordCache:
    """Cache of EnrichedRecords keyed by item id."""

    def __init__(
        self,
        store: KeyValueStore,
        config: CacheConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.config = config or CacheConfig()
        self.clock = clock
        self.rng = rng or random.Random()

    def get(self, key: str) -> EnrichedRecord | None:
        """Load a record. Undecodable entries are treated as missing."""
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return EnrichedRecord.from_json(raw)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Corrupt cache entry for {key}, ignoring: {e}")
            return None

    def put(self, key: str, record: EnrichedRecord) -> None:
        logger.debug(f"SAVE: {key}")
        self.store.set(key, record.to_json())

    def delete(self, key: str) -> None:
        logger.debug(f"DELETE: {key}")
        self.store.delete(key)

    def keys(self) -> list[str]:
        """Item keys only; reserved settings keys are excluded."""
        return [k for k in self.store.list_keys() if k not in RESERVED_KEYS]

    def is_fresh(self, key: str) -> bool:
        """True if the entry exists and is within the rescan interval."""
        record = self.get(key)
        if record is None:
            return False
        return self.clock() - record.updated_at <= self.config.rescan_interval

    def sweep(self) -> int:
        """
        Delete entries older than the cache lifetime.

        An entry exactly cache_lifetime old is kept. Corrupt entries are
        deleted too. Returns the number of deleted entries.
        """
        logger.info("Cleaning record cache")
        now = self.clock()
        deleted = 0
        for key in self.keys():
            record = self.get(key)
            if record is None or now - record.updated_at > self.config.cache_lifetime:
                self.delete(key)
                deleted += 1
        logger.info(f"Cache clean removed {deleted} entr{'y' if deleted == 1 else 'ies'}")
        return deleted

    def maybe_sweep(self) -> bool:
        """Sweep with probability 1 / automatic_clean_factor. Returns True if swept."""
        factor = self.config.automatic_clean_factor
        if factor <= 0:
            return False
        if self.rng.randrange(factor) != 0:
            return False
        self.sweep()
        return True
