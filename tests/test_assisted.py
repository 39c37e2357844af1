from shelfscan_core.dom_toolkit.query import parse_html
from shelfscan_core.extraction.field_rules import FieldRule
from shelfscan_core.learning.assisted import SEED_ANCHORS, short_selector, suggest_assistance


class TestSuggestAssistance:

    def test_listing_suggestions(self, listing_page, listing_url):
        s = suggest_assistance(listing_page, listing_url)
        assert s.fields["price"].rule.selectors == [".price"]
        assert s.fields["price"].confidence == 0.75
        assert s.fields["href"].rule.attribute == "href"
        assert s.buckets["anchors"][:len(SEED_ANCHORS)] == SEED_ANCHORS

    def test_seeds_that_hit_get_high_confidence(self, listing_page):
        seeds = {"title": FieldRule([".product-card__title"]), "brand": FieldRule([".brand"])}
        s = suggest_assistance(listing_page, seeds=seeds)
        assert s.fields["title"].confidence == 0.9
        assert s.fields["title"].rule.selectors == [".product-card__title"]
        assert "brand" not in s.fields

    def test_itemprop_price_reads_content(self):
        html = '<div><span itemprop="price" content="12.50">$12.50</span></div>'
        s = suggest_assistance(html)
        assert s.fields["price"].rule.attribute == "content"
        assert s.fields["price"].confidence >= 0.8

    def test_empty_page_has_only_seed_buckets(self):
        s = suggest_assistance("")
        assert s.fields == {}
        assert s.buckets["candidates"] == []


class TestShortSelector:

    def test_stable_attribute(self):
        node = parse_html('<div data-product-id="42" class="card x">a</div>').div
        assert short_selector(node) == 'div[data-product-id="42"]'

    def test_hashed_classes_dropped(self):
        node = parse_html('<span class="css-abc price-tag big">$1</span>').span
        assert short_selector(node) == "span.price-tag.big"
