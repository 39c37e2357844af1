"""
Tests for the template fingerprint and the candidate miner.
"""

import re

from shelfscan_core.fingerprint import template_fingerprint
from shelfscan_core.miner import (
    CandidateMiner,
    CandidateSet,
    mine_candidates,
    smallest_common_ancestor,
)
from shelfscan_core.dom_toolkit.query import parse_html


class TestTemplateFingerprint:

    def test_stable_for_same_document(self, listing_page):
        assert template_fingerprint(listing_page) == template_fingerprint(listing_page)

    def test_format(self, listing_page):
        fp = template_fingerprint(listing_page)
        assert re.match(r'^c\d+-d\d+-da\d+-ld[01]-', fp)
        assert "-ld0-" in fp

    def test_structured_data_flag(self, item_list_page):
        assert "-ld1-" in template_fingerprint(item_list_page)

    def test_different_templates_differ(self, listing_page, item_list_page):
        assert template_fingerprint(listing_page) != template_fingerprint(item_list_page)

    def test_empty_document(self):
        assert template_fingerprint("") == "c0-d0-da0-ld0-"

    def test_top_signature_uses_main_class(self):
        html = '<html><body><main class="Collection Page extra"><div></div></main></body></html>'
        assert template_fingerprint(html).endswith("-collection-page")


class TestCandidateSet:

    def test_duplicates_keep_max(self):
        cs = CandidateSet()
        cs.push("div.card", 10)
        cs.push("div.card", 4)
        cs.push("div.card", 12)
        assert cs.as_dict() == {"div.card": 12}

    def test_primary_ties_go_to_more_specific(self):
        cs = CandidateSet()
        cs.push("div", 50)
        cs.push("div.grid a[href]", 50)
        assert cs.pick_primary() == ("div.grid a[href]", 50)


class TestCandidateMiner:

    def test_scenario_listing_picks_product_card(self, listing_page, listing_url):
        mined = mine_candidates(listing_page, listing_url)
        assert mined.found
        assert mined.strategy == "dom"
        assert mined.primary_selector == "div.product-card"
        assert "div.product-grid a[href]" in mined.candidates
        assert 0 < mined.confidence <= 0.75
        assert mined.fields["price"].selectors == [".price"]

    def test_chrome_containers_are_never_candidates(self, listing_page):
        mined = mine_candidates(listing_page)
        assert not any("header" in s or "footer" in s or "nav" in s for s in mined.candidates)

    def test_platform_fingerprint_short_circuits(self):
        html = '<div class="productGrid"><article class="card"><a href="/p/1">x</a></article></div>'
        mined = CandidateMiner().mine(html)
        assert mined.strategy == "platform:bigcommerce"
        assert mined.primary_selector == ".productGrid .product, .productGrid .card"
        assert mined.confidence == 0.9

    def test_microdata(self):
        cards = "".join(
            f'<li class="tile" itemscope itemtype="https://schema.org/Product">'
            f'<a href="/item/{i}">Item {i}</a></li>'
            for i in range(6)
        )
        html = f'<html><body><ul class="results">{cards}</ul></body></html>'
        mined = CandidateMiner().mine(html)
        assert mined.strategy == "microdata"
        assert "ul.results a[href]" in mined.candidates
        assert mined.primary_selector == "li.tile"
        assert mined.confidence <= 0.85

    def test_fallback_to_page_links(self):
        html = "<html><body><main><a href='/a'>A</a></main></body></html>"
        mined = CandidateMiner().mine(html)
        assert mined.strategy == "fallback"
        assert mined.primary_selector == "main a[href]"
        assert set(mined.fields) == {"title", "href"}

    def test_nothing_found_is_empty_not_error(self, item_list_page):
        mined = CandidateMiner().mine(item_list_page)
        assert not mined.found
        assert mined.candidates == []
        assert mined.confidence == 0.0

    def test_smallest_common_ancestor(self):
        soup = parse_html("<div id='a'><ul id='b'><li>1</li><li>2</li></ul></div>")
        lis = soup.select("li")
        assert smallest_common_ancestor(lis)["id"] == "b"
        assert smallest_common_ancestor([]) is None
