import pytest

from shelfscan_core.dom_toolkit.query import parse_html
from shelfscan_core.extraction.field_rules import (
    FieldRule,
    ReadMode,
    normalize_field_rules,
    pick_best_src,
    plan_for,
    read_field,
    serialize_field_rules,
)


CARD = """
<div class="card" data-price="$5.00">
  <a href="/products/lamp-1"><img data-src="/i/lamp.jpg" srcset="/i/lamp-400.jpg 400w, /i/lamp-800.jpg 800w"></a>
  <h3 class="name">Desk <em>Lamp</em></h3>
  <span class="price">/products/lamp-1</span>
</div>
"""


@pytest.fixture
def card():
    return parse_html(CARD).select_one("div.card")


class TestFieldRuleNormalization:

    def test_string_list_and_object_forms(self):
        rules = normalize_field_rules({
            "title": "h3.name",
            "image": ["img", "picture source"],
            "href": {"sel": "a", "attr": "href"},
            "body": {"selector": ".desc", "html": True},
            "junk": 42,
        })
        assert rules["title"] == FieldRule(["h3.name"])
        assert rules["image"].selectors == ["img", "picture source"]
        assert rules["href"].attribute == "href"
        assert rules["body"].mode is ReadMode.HTML
        assert "junk" not in rules

    def test_serialize_roundtrips_through_from_raw(self):
        rules = {
            "title": FieldRule(["h3"]),
            "image": FieldRule(["img", "picture source"], attribute="src"),
            "body": FieldRule([".desc"], mode=ReadMode.HTML),
        }
        assert normalize_field_rules(serialize_field_rules(rules)) == rules

    def test_serialized_shape(self):
        out = serialize_field_rules({"href": FieldRule(["a"], attribute="href")})
        assert out == {"href": {"selector": "a", "attribute": "href"}}


class TestReadField:

    def test_title_reads_text_only(self, card):
        assert read_field(card, plan_for("title", FieldRule(["h3.name"]))) == "Desk Lamp"

    def test_href_defaults_to_first_link(self, card):
        assert read_field(card, plan_for("href", None)) == "/products/lamp-1"

    def test_image_prefers_named_attribute_then_srcset(self, card):
        assert read_field(card, plan_for("image", FieldRule(["img"], attribute="data-src"))) == "/i/lamp.jpg"
        assert read_field(card, plan_for("image", FieldRule(["img"], attribute="srcset"))) == "/i/lamp-400.jpg"

    def test_price_skips_url_text_but_reads_attribute(self, card):
        assert read_field(card, plan_for("price", FieldRule([".price"]))) is None
        assert read_field(card, plan_for("price", FieldRule([""], attribute="data-price"))) == "$5.00"

    def test_price_attributes_never_include_href(self):
        node = parse_html('<div><a class="p" href="/products/9" data-price="$9.00">Sale</a></div>').div
        plan = plan_for("price", FieldRule(["a.p"]))
        assert "href" not in plan.attributes
        assert read_field(node, plan) == "$9.00"

    def test_image_without_rule_prefers_src(self):
        node = parse_html('<div><img src="/a.jpg" data-src="/b.jpg"></div>').div
        assert read_field(node, plan_for("image", None)) == "/a.jpg"

    def test_html_mode(self):
        node = parse_html("<div><p class='d'>Soft <b>wool</b></p></div>").div
        assert read_field(node, plan_for("body", FieldRule([".d"], mode=ReadMode.HTML))) == "Soft <b>wool</b>"

    def test_bad_selector_is_skipped(self, card):
        assert read_field(card, plan_for("title", FieldRule(["h3[", "h3.name"]))) == "Desk Lamp"


class TestPickBestSrc:

    def test_srcset_first_candidate(self):
        assert pick_best_src("/a.jpg 1x, /b.jpg 2x") == "/a.jpg"

    def test_rejects_data_uri(self):
        assert pick_best_src("data:image/gif;base64,R0lGOD") is None
        assert pick_best_src("") is None
