"""Tests for self-published work detection."""

import json

import pytest
from conftest import FakeRegistry

from price_enricher.publishers import (
    COMMERCIAL_PUBLISHERS,
    PublisherClassifier,
    extract_publisher_name,
    matches_commercial,
)
from price_enricher.store import PUBLISHERS_KEY, MemoryStore


class TestExtractPublisherName:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("講談社 (2020/1/1)", "講談社"),
            ("KADOKAWA/角川書店", "KADOKAWA"),
            ("同人サークル（2021/5/5）", "同人サークル"),
            ("  集英社  ", "集英社"),
        ],
    )
    def test_extracts_name(self, text, expected):
        assert extract_publisher_name(text) == expected

    @pytest.mark.parametrize("text", [None, "", "   ", "（"])
    def test_no_name(self, text):
        assert extract_publisher_name(text) is None


class TestMatchesCommercial:
    def test_substring_match(self):
        assert matches_commercial("講談社コミックス", COMMERCIAL_PUBLISHERS) is True

    def test_no_match(self):
        assert matches_commercial("同人サークル", COMMERCIAL_PUBLISHERS) is False

    def test_patterns_are_regexes(self):
        assert matches_commercial("Example Press", [r"^Example\s"]) is True

    def test_invalid_pattern_falls_back_to_substring(self):
        assert matches_commercial("Foo(bar", ["Foo("]) is True
        assert matches_commercial("Baz", ["Foo("]) is False


class TestPublisherClassifier:
    """Test PublisherClassifier.is_self_published."""

    @pytest.mark.asyncio
    async def test_allowlisted_publisher_skips_registry(self):
        """Known commercial publishers are never looked up."""
        registry = FakeRegistry()
        classifier = PublisherClassifier(MemoryStore(), registry)

        assert await classifier.is_self_published("集英社") is False
        assert registry.calls == []

    @pytest.mark.asyncio
    async def test_missing_publisher_is_self_published(self):
        registry = FakeRegistry()
        classifier = PublisherClassifier(MemoryStore(), registry)

        assert await classifier.is_self_published(None) is True
        assert await classifier.is_self_published("  ") is True
        assert registry.calls == []

    @pytest.mark.asyncio
    async def test_lookup_without_presence_is_self_published(self):
        store = MemoryStore()
        registry = FakeRegistry({"同人サークル": False})
        classifier = PublisherClassifier(store, registry)

        assert await classifier.is_self_published("同人サークル") is True
        assert json.loads(store.get(PUBLISHERS_KEY)) == {"同人サークル": False}

    @pytest.mark.asyncio
    async def test_lookup_with_presence_is_commercial(self):
        store = MemoryStore()
        registry = FakeRegistry({"小さな出版社": True})
        classifier = PublisherClassifier(store, registry)

        assert await classifier.is_self_published("小さな出版社") is False
        assert classifier.load_classifications() == {"小さな出版社": True}

    @pytest.mark.asyncio
    async def test_cached_answer_skips_registry(self):
        """A remembered publisher is answered from the map."""
        store = MemoryStore({PUBLISHERS_KEY: json.dumps({"同人サークル": False})})
        registry = FakeRegistry()
        classifier = PublisherClassifier(store, registry)

        assert await classifier.is_self_published("同人サークル") is True
        assert registry.calls == []

    @pytest.mark.asyncio
    async def test_second_call_uses_cache(self):
        registry = FakeRegistry({"同人サークル": False})
        classifier = PublisherClassifier(MemoryStore(), registry)

        await classifier.is_self_published("同人サークル")
        await classifier.is_self_published("同人サークル")
        assert registry.calls == ["同人サークル"]

    @pytest.mark.asyncio
    async def test_lookup_failure_is_not_cached(self):
        """Failures count as commercial and are retried next time."""
        store = MemoryStore()
        registry = FakeRegistry()
        classifier = PublisherClassifier(store, registry)

        assert await classifier.is_self_published("不明な出版社") is False
        assert store.get(PUBLISHERS_KEY) is None

        registry.presence["不明な出版社"] = False
        assert await classifier.is_self_published("不明な出版社") is True
        assert registry.calls == ["不明な出版社", "不明な出版社"]

    @pytest.mark.asyncio
    async def test_keeps_other_entries(self):
        store = MemoryStore({PUBLISHERS_KEY: json.dumps({"既知": True})})
        classifier = PublisherClassifier(store, FakeRegistry({"新規": False}))

        await classifier.is_self_published("新規")
        assert classifier.load_classifications() == {"既知": True, "新規": False}

    @pytest.mark.asyncio
    async def test_allowlist_override(self):
        registry = FakeRegistry({"集英社": False})
        classifier = PublisherClassifier(MemoryStore(), registry, commercial_publishers=[])

        assert await classifier.is_self_published("集英社") is True
        assert await classifier.is_self_published("集英社", ["集英"]) is False

    @pytest.mark.asyncio
    async def test_corrupt_map_is_ignored(self):
        store = MemoryStore({PUBLISHERS_KEY: "not json"})
        classifier = PublisherClassifier(store, FakeRegistry({"同人サークル": False}))

        assert classifier.load_classifications() == {}
        assert await classifier.is_self_published("同人サークル") is True
        assert classifier.load_classifications() == {"同人サークル": False}

    def test_non_object_map_is_ignored(self):
        store = MemoryStore({PUBLISHERS_KEY: "[1, 2]"})
        assert PublisherClassifier(store, FakeRegistry()).load_classifications() == {}

    def test_forget_all(self):
        store = MemoryStore({PUBLISHERS_KEY: json.dumps({"同人サークル": False})})
        classifier = PublisherClassifier(store, FakeRegistry())

        classifier.forget_all()
        assert store.get(PUBLISHERS_KEY) is None
        assert classifier.load_classifications() == {}

    @pytest.mark.asyncio
    async def test_non_bool_entry_is_a_miss(self):
        """A corrupt map value is looked up again and replaced."""
        store = MemoryStore({PUBLISHERS_KEY: json.dumps({"同人サークル": "false"})})
        registry = FakeRegistry({"同人サークル": True})
        classifier = PublisherClassifier(store, registry)

        assert await classifier.is_self_published("同人サークル") is False
        assert registry.calls == ["同人サークル"]
        assert classifier.load_classifications() == {"同人サークル": True}
