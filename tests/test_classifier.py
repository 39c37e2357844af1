import pytest

from shelfscan_core.classifier import PAGE_KINDS, classify_page, load_selectors_for_kind
from shelfscan_core.extraction.field_rules import normalize_field_rules


class TestClassifyPage:

    def test_shopify_markup(self):
        html = '<script src="https://cdn.shopify.com/s/files/theme.js"></script>'
        assert classify_page(html, "https://brand.example/").kind == "shopify"

    def test_retail_path_hint(self):
        c = classify_page("<div></div>", "https://shop.example.com/collections/shoes")
        assert c.kind == "retail"
        assert c.confidence == 0.75

    def test_docs(self):
        assert classify_page("<main>Guide</main>", "https://docs.example.org/guide").kind == "docs"

    def test_confident_autodetect_skips_defaults(self):
        html = '<div class="x-shopify-section"></div>'
        c = classify_page(html, "https://shop.example.com/collections/shoes", autodetect_confidence=0.9)
        assert (c.kind, c.confidence) == ("generic", 0.2)

    def test_nothing_matches(self):
        assert classify_page("<p>hello</p>", "https://x.example/").kind == "generic"


class TestDefaultSelectors:

    @pytest.mark.parametrize("kind", ["shopify", "bigcommerce", "woocommerce", "retail", "generic"])
    def test_packaged_kinds_load(self, kind):
        defaults = load_selectors_for_kind(kind)
        assert defaults["list"]
        assert "title" in normalize_field_rules(defaults["fields"])

    def test_retail_fields(self):
        rules = normalize_field_rules(load_selectors_for_kind("retail")["fields"])
        assert rules["image"].attribute == "src"
        assert ".price" in rules["price"].selectors

    def test_unknown_or_missing_kind(self):
        assert load_selectors_for_kind("marketplace") == {}
        assert load_selectors_for_kind("docs") == {}
        assert "docs" in PAGE_KINDS

    def test_invalid_yaml_is_empty(self, tmp_path):
        (tmp_path / "retail.yaml").write_text("list: [unclosed\n", encoding="utf-8")
        assert load_selectors_for_kind("retail", str(tmp_path)) == {}

    def test_single_list_string(self, tmp_path):
        (tmp_path / "blog.yaml").write_text("list: article.post\n", encoding="utf-8")
        assert load_selectors_for_kind("blog", str(tmp_path)) == {"list": ["article.post"]}
