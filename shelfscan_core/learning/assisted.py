"""
Assisted suggestions - deterministic field and bucket proposals from one
HTML snapshot. Fast and safe to run on demand; no network, no model.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import Tag

from ..dom_toolkit.query import matches, parse_html, safe_select, text_of
from ..dom_toolkit.selectors import css_escape, is_stable_token
from ..extraction.field_rules import FieldRule, ReadMode
from .buckets import unique

logger = logging.getLogger(__name__)

FIELD_HINTS = {
    "price": re.compile(r'(price|amount|money|sale|from)', re.I),
    "title": re.compile(r'(title|name|heading|product)', re.I),
    "image": re.compile(r'(image|img|picture|thumb)', re.I),
    "description": re.compile(r'(description|desc|copy|details)', re.I),
}

SEED_ANCHORS = [
    "a[href*='/product']",
    "a[href*='/products/']",
    "[data-product-id] a[href]",
    ".product-card a[href]",
]

SEED_CONTAINERS = [
    "[data-product-id]",
    "[data-product-card]",
    ".product-card",
    ".product-grid, [data-product-grid]",
    "#product-grid .grid__item, .collection .grid__item",
]

TITLE_CHOICES = [
    "h1[itemprop='name']",
    "h1.product-title",
    ".card-title a, .card__heading a",
    "[itemprop='name']",
    ".product-title",
    "h1, h2",
]

PRICE_CHOICES = [
    "[itemprop='price']",
    "[data-price]",
    ".price .amount",
    ".price-item",
    ".productView-price .price",
    ".price",
]

IMAGE_CHOICES = [
    ".product-card img",
    ".productView-image img",
    "img[loading][srcset], img[srcset], img[src]",
]

DESCRIPTION_CHOICES = [
    "#tab-description, [itemprop='description']",
    ".product__description, .productView-description",
]

HREF_CHOICES = [
    ".product-card a[href]",
    "[data-product-id] a[href]",
    "a[href*='/product'], a[href*='/products/']",
]

MAX_DATA_NODES = 800
STABLE_ATTR_RE = re.compile(r'^data-|^itemprop$|^aria-')


@dataclass
class SuggestedField:
    rule: FieldRule
    confidence: float


@dataclass
class AssistSuggestion:
    fields: Dict[str, SuggestedField] = field(default_factory=dict)
    buckets: Dict[str, List[str]] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)


def short_selector(node: Tag) -> Optional[str]:
    """Shallow selector: id, else tag with a stable attribute, else tag with two classes."""
    node_id = node.get("id")
    if isinstance(node_id, str) and node_id and not node_id.startswith("react-") and is_stable_token(node_id):
        return "#" + css_escape(node_id)

    seg = (node.name or "div").lower()
    stable = next(((n, v) for n, v in node.attrs.items() if STABLE_ATTR_RE.match(n)), None)
    if stable:
        name, value = stable
        value = " ".join(value) if isinstance(value, list) else str(value)
        if value and len(value) <= 60 and '"' not in value and "\\" not in value:
            return f'{seg}[{name}="{value}"]'
        return f"{seg}[{name}]"

    classes = [
        c for c in (node.get("class") or [])
        if not c.isdigit() and len(c) > 2 and not re.match(r'^(css|sc-|chakra|tw-)', c, re.I)
    ][:2]
    if classes:
        seg += "." + ".".join(css_escape(c) for c in classes)
    return seg


def _first_hit(soup: Tag, choices: List[str]) -> Optional[str]:
    for sel in choices:
        if safe_select(soup, sel, limit=1).nodes:
            return sel
    return None


def _confidence(soup: Tag, selector: str, name: str) -> float:
    base = 0.6
    node = safe_select(soup, selector, limit=1).first()
    if node is None:
        return 0.0
    if any(STABLE_ATTR_RE.match(n) for n in node.attrs):
        base += 0.15
    txt = text_of(node)
    if name == "price" and re.search(r'\d', txt):
        base += 0.1
    if name == "title" and len(txt) >= 8:
        base += 0.05
    hint = FIELD_HINTS.get(name)
    if hint and hint.search(selector):
        base += 0.05
    return round(min(0.95, base), 2)


def _image_attribute(soup: Tag, selector: str) -> str:
    node = safe_select(soup, selector, limit=1).first()
    if node is not None and node.get("data-src"):
        return "data-src"
    if node is not None and node.get("srcset"):
        return "srcset"
    return "src"


def _price_attribute(soup: Tag, selector: str) -> Optional[str]:
    node = safe_select(soup, selector, limit=1).first()
    if node is not None and matches(node, "[itemprop='price']") and node.get("content"):
        return "content"
    return None


def _seed_hits(soup: Tag, rule: FieldRule) -> bool:
    for sel in rule.selectors:
        node = safe_select(soup, sel, limit=1).first()
        if node is None:
            continue
        if rule.attribute and node.get(rule.attribute):
            return True
        if text_of(node):
            return True
    return False


def collect_candidates(soup: Tag) -> Dict[str, List[str]]:
    anchors = list(SEED_ANCHORS)
    containers = list(SEED_CONTAINERS)
    candidates: List[str] = []

    for node in safe_select(soup, "[itemprop], [aria-label], [role]").nodes[:300]:
        sel = short_selector(node)
        if sel:
            candidates.append(sel)

    seen = 0
    for node in soup.find_all(True):
        if seen >= MAX_DATA_NODES:
            break
        if any(n.startswith("data-") for n in node.attrs):
            sel = short_selector(node)
            if sel:
                candidates.append(sel)
            seen += 1

    heading_price = "h1, h2, h3, h4, .price, .amount, [itemprop='price'], [data-price]"
    for node in safe_select(soup, heading_price).nodes[:200]:
        sel = short_selector(node)
        if sel:
            candidates.append(sel)

    return {
        "anchors": unique(anchors)[:40],
        "containers": unique(containers)[:40],
        "candidates": unique(candidates)[:120],
    }


def suggest_assistance(html: str, url: str = "", seeds: Optional[Dict[str, FieldRule]] = None) -> AssistSuggestion:
    """Field selectors with confidences plus bucket candidates for one page."""
    soup = parse_html(html)
    suggestion = AssistSuggestion(buckets=collect_candidates(soup))
    out = suggestion.fields

    for name, rule in (seeds or {}).items():
        if rule.selectors and _seed_hits(soup, rule):
            out[name] = SuggestedField(rule=rule, confidence=0.9)

    if "title" not in out:
        sel = _first_hit(soup, TITLE_CHOICES)
        if sel:
            out["title"] = SuggestedField(FieldRule([sel], mode=ReadMode.TEXT), _confidence(soup, sel, "title"))

    if "price" not in out:
        sel = _first_hit(soup, PRICE_CHOICES)
        if sel:
            rule = FieldRule([sel], attribute=_price_attribute(soup, sel))
            out["price"] = SuggestedField(rule, _confidence(soup, sel, "price"))

    if "image" not in out:
        sel = _first_hit(soup, IMAGE_CHOICES)
        if sel:
            rule = FieldRule([sel], attribute=_image_attribute(soup, sel))
            out["image"] = SuggestedField(rule, _confidence(soup, sel, "image"))

    if "description" not in out:
        sel = _first_hit(soup, DESCRIPTION_CHOICES)
        if sel:
            out["description"] = SuggestedField(FieldRule([sel]), _confidence(soup, sel, "description"))

    if "href" not in out:
        sel = _first_hit(soup, HREF_CHOICES)
        if sel:
            out["href"] = SuggestedField(FieldRule([sel], attribute="href"), _confidence(soup, sel, "href"))

    for name, suggested in out.items():
        if suggested.confidence < 0.5:
            suggestion.notes.append(f"Low confidence for {name}: {', '.join(suggested.rule.selectors)}")

    logger.debug("Assist suggested fields for %s: %s", url or "(page)", sorted(out))
    return suggestion
