"""
Tests for the ExtractionEngine run loop

Tests:
1. Cold first run on a listing, then a warm run reusing the learned list
2. Structured-data fallback when the DOM has no product links
3. Bucket assembly and field merging
4. Async run through an injected fetcher
"""

import asyncio
import json

import pytest

from shelfscan_core.engine import (
    ExtractionEngine,
    build_buckets,
    merge_fields,
    precision_of,
    process_page,
)
from shelfscan_core.extraction.field_rules import FieldRule
from shelfscan_core.fetchers import PageFetcher, RenderedPage
from shelfscan_core.learning.profile_store import ProfileStore
from shelfscan_core.miner import MinedCandidates, mine_candidates
from shelfscan_core.storage import PageItemWriter


@pytest.fixture
def store(store_path):
    return ProfileStore(store_path)


@pytest.fixture
def engine(store, tmp_path):
    return ExtractionEngine(store=store, writer=PageItemWriter(str(tmp_path / "out")), assist=False)


class TestLearningLoop:

    def test_first_run_is_cold(self, engine, listing_page, listing_url):
        result = engine.process(listing_url, listing_page)
        s = result.summary
        assert s.cold is True
        assert s.profile_score == 0
        assert s.items == 8
        assert s.kind == "retail"
        assert s.winning_bucket == "anchors"
        assert s.precision == 1.0
        assert all(it["href"].startswith("https://shop.example.com/products/trail-runner-") for it in result.items)
        assert all(it["price"] == "$19.99" for it in result.items)

    def test_second_run_reuses_profile(self, engine, store, listing_page, listing_url):
        first = engine.process(listing_url, listing_page).summary
        second = engine.process(listing_url, listing_page).summary
        assert second.cold is False
        assert second.profile_score >= 2
        assert second.winning_bucket == "list"
        assert second.items == 8
        assert second.profile_id == first.profile_id
        assert len(store.profiles_for("shop.example.com")) == 1

    def test_learned_profile_survives_restart(self, store_path, listing_page, listing_url):
        ExtractionEngine(store=ProfileStore(store_path), assist=False).process(listing_url, listing_page)
        reloaded = ExtractionEngine(store=ProfileStore(store_path).load(), assist=False)
        assert reloaded.process(listing_url, listing_page).summary.winning_bucket == "list"

    def test_writer_receives_page_and_items(self, engine, tmp_path, listing_page, listing_url):
        engine.process(listing_url, listing_page)
        engine.process(listing_url, listing_page)
        assert engine.writer.stats() == {"pages": 1, "pages_html": 1, "items": 16}
        first = json.loads((tmp_path / "out" / "items.jsonl").read_text(encoding="utf-8").splitlines()[0])
        assert "_score" not in first

    def test_structured_data_only_page(self, store, item_list_page):
        result = process_page("https://outdoor.example.com/c/stoves", item_list_page, store=store, assist=False)
        assert result.summary.source == "structured_data"
        assert result.summary.winning_bucket is None
        assert len(result.items) == 5
        assert {it["price"] for it in result.items} == {"$41.00", "$42.00", "$43.00", "$44.00", "$45.00"}

    def test_assist_run_still_extracts(self, store, listing_page, listing_url):
        result = ExtractionEngine(store=store, assist=True).process(listing_url, listing_page)
        assert len(result.items) == 8


class TestBuildBuckets:

    def test_cold_ignores_learned_list(self, listing_page):
        mined = mine_candidates(listing_page)
        learned = {"list": ["ul.old > li"], "anchors": ["a.learned"]}
        buckets = build_buckets(learned, mined, [".product-card"], cold=True)
        assert buckets["list"] == []
        assert buckets["anchors"][:2] == ["a.learned", "div.product-card a[href]"]
        assert buckets["candidates"][-1] == ".product-card"
        assert buckets["broad"] == ["a[href*='/product']", "a[href*='/products/']"]

    def test_warm_keeps_learned_list(self):
        buckets = build_buckets({"list": ["ul.old > li"]}, MinedCandidates(), [], cold=False)
        assert buckets["list"] == ["ul.old > li"]
        assert buckets["containers"] == []

    def test_assisted_entries_lead(self):
        buckets = build_buckets({"anchors": ["a.x"]}, MinedCandidates(), [], cold=False, assisted={"anchors": ["a.y"]})
        assert buckets["anchors"] == ["a.y", "a.x"]


class TestMergeFields:

    def test_later_sources_win(self):
        merged = merge_fields(
            {"title": FieldRule(["h3"]), "price": FieldRule([".price"])},
            {"title": FieldRule([".name"])},
            {"price": FieldRule([".amount"])},
        )
        assert merged["title"].selectors == [".name"]
        assert merged["price"].selectors == [".amount"]

    def test_empty_rule_only_fills_gaps(self):
        merged = merge_fields({"href": FieldRule(["a.link"], attribute="href")}, {"href": FieldRule([])}, {})
        assert merged["href"].selectors == ["a.link"]
        assert merge_fields({}, {"href": FieldRule([])}, {})["href"].selectors == []

    def test_precision(self):
        assert precision_of([]) == 0.0
        assert precision_of([{"title": "a", "href": "/a"}, {"title": "b"}]) == 0.5


class _StaticFetcher(PageFetcher):

    def __init__(self, html):
        self.html = html
        self.urls = []

    async def fetch(self, url):
        self.urls.append(url)
        return RenderedPage(url=url, html="", final_html=self.html)


class TestAsyncRun:

    def test_run_uses_fetcher_final_html(self, store, listing_page, listing_url):
        fetcher = _StaticFetcher(listing_page)
        engine = ExtractionEngine(store=store, assist=False, fetcher=fetcher)
        result = asyncio.run(engine.run(listing_url))
        assert fetcher.urls == [listing_url]
        assert len(result.items) == 8
