"""
Tests for the extraction cascade, field resolvers and post-processing.
"""

import pytest

from shelfscan_core.dom_toolkit.query import parse_html
from shelfscan_core.extraction import ExtractionCascade, extract, postprocess_items
from shelfscan_core.extraction.cascade import looks_like_pdp
from shelfscan_core.extraction.field_rules import FieldRule
from shelfscan_core.extraction.postprocess import canonical_href, score_item
from shelfscan_core.extraction.resolvers import ResolverContext, resolve


class TestCascadeOrder:

    def test_listing_yields_eight_full_items(self, listing_page, listing_url):
        result = ExtractionCascade().run(listing_page, {"list": ["div.product-card"]}, {}, listing_url)
        assert result.winning_bucket == "list"
        assert result.source == "dom"
        assert len(result.items) == 8
        for item in result.items:
            assert item["title"].startswith("Trail Runner")
            assert item["href"].startswith("/products/trail-runner-")
            assert item["image"].startswith("/img/runner-")
            assert item["price"] == "$19.99"

    def test_first_successful_bucket_wins(self, listing_page):
        buckets = {
            "list": [".nothing-here"],
            "anchors": ["div.product-card a[href]"],
            "containers": ["div.product-grid"],
        }
        result = ExtractionCascade().run(listing_page, buckets, {})
        assert result.winning_bucket == "anchors"
        assert result.winners == ["div.product-card a[href]"]
        assert result.tried == [".nothing-here", "div.product-card a[href]"]

    def test_invalid_selectors_do_not_abort_bucket(self, listing_page):
        result = ExtractionCascade().run(listing_page, {"list": ["div[", "div.product-card"]}, {})
        assert result.winners == ["div.product-card"]
        assert len(result.items) == 8

    def test_batch_retry_after_single_selectors(self):
        html = "<main><div class='a'><a href='/products/x-1'>X one</a></div></main>"
        cascade = ExtractionCascade()
        calls = []
        original = cascade._extract_with

        def spy(soup, sels, *args):
            calls.append(list(sels))
            return original(soup, sels, *args)

        cascade._extract_with = spy
        result = cascade.run(html, {"candidates": [".x", ".y"]}, {})
        assert calls == [[".x"], [".y"], [".x", ".y"]]
        assert result.items == []

    def test_structured_data_fallback(self, item_list_page):
        result = ExtractionCascade().run(item_list_page, {"broad": ["a[href*='/product']"]}, {})
        assert result.source == "structured_data"
        assert result.winning_bucket is None
        assert len(result.items) == 5
        assert result.items[0] == {
            "title": "Camp Stove 1",
            "href": "https://outdoor.example.com/p/camp-stove-1",
            "image": "https://outdoor.example.com/img/stove-1.jpg",
            "price": "$41.00",
        }

    def test_url_like_price_is_rejected(self, url_price_page):
        items = extract(url_price_page, {"list": ["div.product-card"]}, {"price": ".price"})
        assert len(items) == 1
        assert items[0]["title"] == "Widget"
        assert "price" not in items[0]

    def test_same_canonical_href_collapses_to_richer_card(self):
        html = """<main><div class="product-grid">
          <div class="product-card"><a href="/products/a/?utm_source=x"><img src="/img/a.jpg"></a></div>
          <div class="product-card"><a href="/products/a">Blue Widget</a><span class="price">$5</span></div>
        </div></main>"""
        raw = extract(html, {"anchors": ["div.product-card a[href]"]}, {}, "https://s.com/c")
        assert len(raw) == 1
        items = postprocess_items(raw, "https://s.com/c")
        assert [(it["href"], it["title"]) for it in items] == [("https://s.com/products/a", "Blue Widget")]

    def test_chrome_links_are_dropped(self):
        html = """<html><body>
        <header><a href="/account">Account</a></header>
        <main><ul class="products"><li class="product"><a href="/products/tent-2p">Tent 2P</a></li></ul></main>
        </body></html>"""
        items = extract(html, {"broad": ["a[href]"]}, {})
        assert [it["href"] for it in items] == ["/products/tent-2p"]

    def test_max_items(self, listing_page):
        result = ExtractionCascade(max_items=3).run(listing_page, {"list": ["div.product-card"]}, {})
        assert len(result.items) == 3

    def test_pdp_heuristic(self):
        assert looks_like_pdp("/products/tent")
        assert looks_like_pdp("https://x.example/outdoor/tent-2p")
        assert not looks_like_pdp("/collections/sale")
        assert not looks_like_pdp("")


class TestResolvers:

    def _ctx(self, html):
        soup = parse_html(html)
        return soup, ResolverContext(soup=soup)

    def test_title_falls_back_to_link_text(self):
        soup, ctx = self._ctx("<div class='c'><a href='/p/1'>Linen Shirt</a></div>")
        found = resolve("title", soup.select_one(".c"), ctx)
        assert found.value == "Linen Shirt"

    def test_learned_title_rule(self):
        soup = parse_html("<div class='c'><span class='nm'>Wool Hat</span></div>")
        ctx = ResolverContext(soup=soup, learned_fields={"title": FieldRule([".nm"])})
        found = resolve("title", soup.select_one(".c"), ctx)
        assert (found.value, found.source) == ("Wool Hat", "learned")

    def test_single_page_product_supplies_price(self):
        html = """<script type="application/ld+json">
        {"@type": "Product", "name": "Kettle", "offers": {"price": "30", "priceCurrency": "CAD"}}
        </script><div class="c"><span>Kettle</span></div>"""
        soup, ctx = self._ctx(html)
        found = resolve("price", soup.select_one(".c"), ctx)
        assert (found.value, found.source) == ("$30", "ldjson")

    def test_listing_products_do_not_supply_card_price(self, item_list_page):
        soup, ctx = self._ctx(item_list_page + "<div class='c'>No price</div>")
        assert resolve("price", soup.select_one(".c"), ctx) is None

    def test_price_text_scan(self):
        soup, ctx = self._ctx("<div class='c'><div><span>Only</span> <em>$7.25</em></div></div>")
        found = resolve("price", soup.select_one(".c"), ctx)
        assert found.value == "$7.25"

    def test_background_image(self):
        soup, ctx = self._ctx("<div class='c'><div style=\"background-image: url('/i/bg.jpg')\"></div></div>")
        assert resolve("image", soup.select_one(".c"), ctx).value == "/i/bg.jpg"

    def test_description_skips_calls_to_action(self):
        html = "<div class='c'><h3>Tent</h3><p>Add to cart</p><p class='subtitle'>Two person, three season</p></div>"
        soup, ctx = self._ctx(html)
        assert resolve("description", soup.select_one(".c"), ctx).value == "Two person, three season"


class TestPostProcess:

    def test_canonical_href(self):
        assert canonical_href("https://x.example/p/a/?utm_source=n&color=red") == "https://x.example/p/a?color=red"

    def test_duplicate_href_keeps_richer_item(self):
        items = postprocess_items([
            {"title": "Tent", "href": "/products/tent/"},
            {"title": "Tent", "href": "/products/tent?utm_medium=email", "price": "$99", "image": "/t.jpg"},
        ], "https://x.example/collections/all")
        assert len(items) == 1
        assert items[0]["href"] == "https://x.example/products/tent"
        assert items[0]["price"] == "$99"

    def test_sorted_by_score_descending(self):
        items = postprocess_items([
            {"title": "Plain", "href": "/a"},
            {"title": "Rich", "href": "/products/rich-1", "price": "$5", "image": "/r.jpg"},
        ], "https://x.example/")
        assert [it["title"] for it in items] == ["Rich", "Plain"]
        assert items[0]["_score"] > items[1]["_score"]

    def test_boilerplate_description_and_price_coalesce(self):
        [item] = postprocess_items([{"title": "T", "description": "Learn more", "salePrice": "$3", "price": "$5"}])
        assert item["description"] == ""
        assert item["price"] == "$3"

    @pytest.mark.parametrize("item,expected", [
        ({}, 0),
        ({"title": "T", "href": "/a"}, 4),
        ({"title": "T", "href": "/products/sku-123", "price": "$5", "image": "/i"}, 9),
    ])
    def test_score_item(self, item, expected):
        assert score_item(item) == expected
