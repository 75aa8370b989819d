"""
Self-published work detection for price-enricher.

A title counts as self-published when its publisher has no print records in
the national catalog. Well-known commercial publishers are recognized from a
built-in allowlist without any lookup; everyone else is checked once against
the registry and the answer is remembered permanently.
"""

import json
import logging
import re
from collections.abc import Iterable

from .ndl import LookupFailure, PublisherRegistry
from .store import PUBLISHERS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

# Entries are regular expressions searched within the publisher name
COMMERCIAL_PUBLISHERS = [
    "DeNA",
    "KADOKAWA",
    "SBクリエイティブ",
    "TOブックス",
    "アース・スター エンターテイメント",
    "あさ出版",
    "アスコム",
    "インプレス",
    "エブリスタ",
    "オーム社",
    "かんき出版",
    "コミックハウス",
    "サンマーク出版",
    "ジーオーティー",
    "スクウェア・エニックス",
    "ダイヤモンド社",
    "ドワンゴ",
    "フレックスコミックス",
    "ぶんか社",
    "マール社",
    "マイクロマガジン社",
    "マイナビ出版",
    "マガジンハウス",
    "マッグガーデン",
    "ワニブックス",
    "一迅社",
    "学研プラス",
    "技術評論社",
    "近代科学社",
    "幻冬舎",
    "講談社",
    "主婦と生活社",
    "主婦の友社",
    "秋田書店",
    "集英社",
    "小学館",
    "少年画報社",
    "新書館",
    "新潮社",
    "双葉社",
    "早川書房",
    "竹書房",
    "筑摩書房",
    "中央公論新社",
    "朝日新聞出版",
    "東京書籍",
    "東洋経済新報社",
    "徳間書店",
    "日経BP",
    "日本文芸社",
    "白泉社",
    "扶桑社",
    "文藝春秋",
    "宝島社",
    "芳文社",
    "翔泳社",
    "東京創元社",
    "三栄",
]

# Publisher fields look like "講談社 (2020/1/1)" or "KADOKAWA/角川書店"
PUBLISHER_NAME_PATTERN = re.compile(r"([^(（/]+)")


def extract_publisher_name(text: str | None) -> str | None:
    """Take the publisher name from a raw publisher field."""
    if not text:
        return None
    match = PUBLISHER_NAME_PATTERN.search(text)
    if not match:
        return None
    name = match.group(1).strip()
    return name or None


def matches_commercial(publisher: str, patterns: Iterable[str]) -> bool:
    """Whether any allowlist pattern is found within the publisher name."""
    for pattern in patterns:
        try:
            if re.search(pattern, publisher):
                return True
        except re.error:
            if pattern in publisher:
                return True
    return False


class PublisherClassifier:
    """
    Classify publishers as self-publishing or commercial.

    Registry answers are stored under the PUBLISHERS key as a JSON map of
    publisher name to "has catalog presence". The map never expires; it can
    only be dropped as a whole with forget_all().
    """

    def __init__(
        self,
        store: KeyValueStore,
        registry: PublisherRegistry,
        commercial_publishers: Iterable[str] | None = None,
    ):
        self.store = store
        self.registry = registry
        self.commercial_publishers = list(
            COMMERCIAL_PUBLISHERS if commercial_publishers is None else commercial_publishers
        )

    def load_classifications(self) -> dict[str, bool]:
        """Load the stored publisher map. A corrupt map is treated as empty."""
        raw = self.store.get(PUBLISHERS_KEY)
        if raw is None:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt publisher classification map, ignoring")
            return {}
        if not isinstance(data, dict):
            logger.warning("Publisher classification map is not an object, ignoring")
            return {}
        return data

    def _remember(self, publisher: str, has_presence: bool) -> None:
        # Re-read right before writing so concurrent classifications are kept
        classifications = self.load_classifications()
        classifications[publisher] = has_presence
        self.store.set(PUBLISHERS_KEY, json.dumps(classifications, ensure_ascii=False))

    def forget_all(self) -> None:
        """Drop every stored classification."""
        logger.info("Forgetting all publisher classifications")
        self.store.delete(PUBLISHERS_KEY)

    async def is_self_published(
        self,
        publisher_name: str | None,
        commercial_publishers: Iterable[str] | None = None,
    ) -> bool:
        """
        Decide whether a publisher is a self-publishing label.

        Args:
            publisher_name: Publisher as shown on the item page
            commercial_publishers: Allowlist override (defaults to the configured list)

        Returns:
            True for self-published, False for commercial or unknown
        """
        if not publisher_name or not publisher_name.strip():
            logger.debug("No publisher, treating as self-published")
            return True
        publisher = publisher_name.strip()

        patterns = (
            self.commercial_publishers if commercial_publishers is None else commercial_publishers
        )
        if matches_commercial(publisher, patterns):
            logger.debug(f"Publisher {publisher} is on the commercial allowlist")
            return False

        classifications = self.load_classifications()
        if isinstance(classifications.get(publisher), bool):
            logger.debug(f"Publisher cache hit: {publisher}")
            return not classifications[publisher]

        try:
            has_presence = await self.registry.has_catalog_presence(publisher)
        except LookupFailure as e:
            logger.warning(f"Publisher lookup failed for {publisher}: {e}")
            return False

        self._remember(publisher, has_presence)
        logger.info(f"Publisher {publisher}: catalog presence={has_presence}")
        return not has_presence
