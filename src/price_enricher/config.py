"""
Configuration for price-enricher.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from .publishers import COMMERCIAL_PUBLISHERS


@dataclass
class CacheConfig:
    """Record cache lifetimes and maintenance."""

    cache_lifetime_seconds: int = 1_209_600  # 14 days
    rescan_interval_seconds: int = 10_800  # 3 hours
    automatic_clean_factor: int = 100  # Sweep on ~1 in N runs, 0 disables

    @property
    def cache_lifetime(self) -> timedelta:
        return timedelta(seconds=self.cache_lifetime_seconds)

    @property
    def rescan_interval(self) -> timedelta:
        return timedelta(seconds=self.rescan_interval_seconds)


@dataclass
class DispatcherConfig:
    """Worker pool and idle shutdown settings."""

    max_concurrency: int = 5
    idle_poll_interval: float = 1.0
    idle_threshold: int = 120  # Consecutive empty checks before shutdown


@dataclass
class NdlConfig:
    """National Diet Library SRU API configuration."""

    api_base: str = "https://iss.ndl.go.jp/api/sru"
    timeout_seconds: float = 10.0


@dataclass
class EnricherConfig:
    """Complete price-enricher configuration."""

    db_path: Path = field(default_factory=lambda: Path("price_enricher.db"))
    tax_rate: float = 0.1
    trust_purchased: bool = False  # Serve stale records of purchased items as-is

    cache: CacheConfig = field(default_factory=CacheConfig)
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    ndl: NdlConfig = field(default_factory=NdlConfig)
    commercial_publishers: list[str] = field(
        default_factory=lambda: list(COMMERCIAL_PUBLISHERS)
    )

    def validate(self) -> None:
        """Raise ValueError if settings are inconsistent."""
        if self.cache.rescan_interval_seconds >= self.cache.cache_lifetime_seconds:
            raise ValueError(
                "rescan_interval_seconds must be shorter than cache_lifetime_seconds "
                f"({self.cache.rescan_interval_seconds} >= {self.cache.cache_lifetime_seconds})"
            )
        if self.dispatcher.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.dispatcher.idle_threshold < 1:
            raise ValueError("idle_threshold must be at least 1")
        if self.cache.automatic_clean_factor < 0:
            raise ValueError("automatic_clean_factor must not be negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnricherConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "db_path" in data:
            config.db_path = Path(data["db_path"])
        if "tax_rate" in data:
            config.tax_rate = float(data["tax_rate"])
        if "trust_purchased" in data:
            config.trust_purchased = bool(data["trust_purchased"])
        if "commercial_publishers" in data:
            config.commercial_publishers = list(data["commercial_publishers"])

        if "cache" in data:
            cache = data["cache"]
            config.cache = CacheConfig(
                cache_lifetime_seconds=cache.get("cache_lifetime_seconds", 1_209_600),
                rescan_interval_seconds=cache.get("rescan_interval_seconds", 10_800),
                automatic_clean_factor=cache.get("automatic_clean_factor", 100),
            )

        if "dispatcher" in data:
            dispatcher = data["dispatcher"]
            config.dispatcher = DispatcherConfig(
                max_concurrency=dispatcher.get("max_concurrency", 5),
                idle_poll_interval=dispatcher.get("idle_poll_interval", 1.0),
                idle_threshold=dispatcher.get("idle_threshold", 120),
            )

        if "ndl" in data:
            ndl = data["ndl"]
            config.ndl = NdlConfig(
                api_base=ndl.get("api_base", config.ndl.api_base),
                timeout_seconds=ndl.get("timeout_seconds", 10.0),
            )

        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "EnricherConfig":
        """Load config from a YAML file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Settings may live under a price_enricher: section or at the root
        return cls.from_dict(data.get("price_enricher", data))

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for JSON serialization."""
        return {
            "db_path": str(self.db_path),
            "tax_rate": self.tax_rate,
            "trust_purchased": self.trust_purchased,
            "cache": {
                "cache_lifetime_seconds": self.cache.cache_lifetime_seconds,
                "rescan_interval_seconds": self.cache.rescan_interval_seconds,
                "automatic_clean_factor": self.cache.automatic_clean_factor,
            },
            "dispatcher": {
                "max_concurrency": self.dispatcher.max_concurrency,
                "idle_poll_interval": self.dispatcher.idle_poll_interval,
                "idle_threshold": self.dispatcher.idle_threshold,
            },
            "ndl": {
                "api_base": self.ndl.api_base,
                "timeout_seconds": self.ndl.timeout_seconds,
            },
        }
