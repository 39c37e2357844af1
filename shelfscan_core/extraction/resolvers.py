"""
Field resolvers - deep fallbacks used only when the fast path left a field empty.

Each field has an ordered chain of strategies. A strategy returns a
Resolution or None; the first Resolution wins.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from bs4 import Tag

from ..dom_selectors import (
    CTA_TEXT_RE,
    DESCRIPTION_NEAR_TITLE,
    DESCRIPTION_SELECTORS,
    IMAGE_NODE_SELECTORS,
    META_DESCRIPTION_SELECTORS,
    PRICE_LINK_SELECTORS,
    PRICE_SELECTORS,
    PRODUCT_LINK_SELECTORS,
    TITLE_SELECTORS,
)
from ..dom_toolkit.prices import PriceDetector, normalize_price
from ..dom_toolkit.query import element_children, matches, safe_select, select_first, text_of
from ..dom_toolkit.structured_data import offer_price, page_products
from .field_rules import FieldRule, pick_best_src

logger = logging.getLogger(__name__)

_BG_URL_RE = re.compile(r'url\(([\'"]?)(.*?)\1\)', re.I)

# a parent with more children than this is a grid, not the card's own row
_MAX_ROW_CHILDREN = 3


@dataclass
class Resolution:
    value: str
    score: float
    source: str


@dataclass
class ResolverContext:
    """Page-level state shared by all cards of one extraction."""
    soup: Tag
    learned_fields: Dict[str, FieldRule] = field(default_factory=dict)
    _products: Optional[List[Dict]] = None

    @property
    def page_products(self) -> List[Dict]:
        if self._products is None:
            self._products = page_products(self.soup)
        return self._products


Strategy = Callable[[Tag, ResolverContext], Optional[Resolution]]


def _row_parent(card: Tag) -> Optional[Tag]:
    parent = card.parent
    if not isinstance(parent, Tag) or parent.name in ("[document]", "body", "html"):
        return None
    if len(element_children(parent)) > _MAX_ROW_CHILDREN:
        return None
    return parent


def _first_with_text(root: Tag, selectors: List[str]) -> Optional[Tag]:
    for node in safe_select(root, ", ".join(selectors)).nodes:
        if text_of(node):
            return node
    return None


def _learned_nodes(card: Tag, ctx: ResolverContext, name: str) -> List[Tag]:
    rule = ctx.learned_fields.get(name)
    if not rule:
        return []
    nodes = []
    for sel in rule.selectors:
        node = select_first(card, sel)
        if node is not None:
            nodes.append(node)
    return nodes


# ---------------------------------------------------------------- title

def title_from_card_classes(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    node = _first_with_text(card, TITLE_SELECTORS)
    if node is None:
        node = safe_select(card, PRODUCT_LINK_SELECTORS, limit=1).first()
    if node is None:
        parent = _row_parent(card)
        if parent is not None:
            node = _first_with_text(parent, TITLE_SELECTORS)
    value = text_of(node)
    return Resolution(value, 0.9, "card") if value else None


def title_from_learned(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    for node in _learned_nodes(card, ctx, "title"):
        value = text_of(node)
        if value:
            return Resolution(value, 0.72, "learned")
    return None


def title_from_link_text(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    if matches(card, "a[href]"):
        value = text_of(card)
        return Resolution(value, 0.6, "anchor") if value else None
    for a in safe_select(card, "a[href]").nodes:
        value = text_of(a)
        if 3 <= len(value) <= 120:
            return Resolution(value, 0.6, "anchor")
    return None


# ---------------------------------------------------------------- image

def _image_value(node: Tag) -> Optional[str]:
    for attr in ("srcset", "data-srcset", "src", "data-src"):
        value = pick_best_src(node.get(attr))
        if value:
            return value
    return None


def image_from_img(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    scopes = [card]
    parent = _row_parent(card)
    if parent is not None:
        scopes.append(parent)
    for scope in scopes:
        img = select_first(scope, IMAGE_NODE_SELECTORS)
        if img is not None:
            value = _image_value(img)
            if value:
                return Resolution(value, 0.9, "img")
    return None


def image_from_learned(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    for node in _learned_nodes(card, ctx, "image"):
        value = _image_value(node) or pick_best_src(text_of(node))
        if value:
            return Resolution(value, 0.65, "learned")
    return None


def image_from_background(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    node = select_first(card, "[style*='background-image']")
    if node is None:
        return None
    m = _BG_URL_RE.search(str(node.get("style") or ""))
    if m and m.group(2) and not m.group(2).startswith("data:"):
        return Resolution(m.group(2), 0.55, "bg-style")
    return None


# ---------------------------------------------------------------- price

def price_from_structured_data(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    # one page-level Product describes the page, not each card of a listing
    products = ctx.page_products
    if len(products) != 1:
        return None
    value = offer_price(products[0])
    if value and normalize_price(value):
        return Resolution(normalize_price(value), 0.95, "ldjson")
    return None


def price_from_card_classes(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    scopes = [card]
    parent = _row_parent(card)
    if parent is not None:
        scopes.append(parent)
    for scope in scopes:
        node = _first_with_text(scope, PRICE_SELECTORS)
        if node is None:
            continue
        value = normalize_price(text_of(node))
        if value:
            return Resolution(value, 0.9, "card")
    return None


def price_from_learned(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    for node in _learned_nodes(card, ctx, "price"):
        value = normalize_price(text_of(node))
        if value:
            return Resolution(value, 0.78, "learned")
    return None


def price_from_link(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    link = select_first(card, PRICE_LINK_SELECTORS)
    if link is None:
        return None
    value = normalize_price(text_of(link))
    return Resolution(value, 0.7, "link-near-price") if value else None


def price_from_text_scan(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    value = PriceDetector.scan_card(card)
    return Resolution(value, 0.6, "regex") if value else None


# ---------------------------------------------------------------- description

def description_from_card(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    for node in safe_select(card, DESCRIPTION_SELECTORS).nodes:
        value = text_of(node)
        if value and len(value) <= 240 and not CTA_TEXT_RE.search(value):
            return Resolution(value, 0.75, "card")

    title = select_first(card, DESCRIPTION_NEAR_TITLE)
    if title is not None and isinstance(title.parent, Tag):
        for node in safe_select(title.parent, "p, .subtitle, .card__subtitle").nodes:
            value = text_of(node)
            if 10 <= len(value) <= 240 and not CTA_TEXT_RE.search(value):
                return Resolution(value, 0.75, "card")
    return None


def description_from_meta(card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    for sel in META_DESCRIPTION_SELECTORS:
        meta = select_first(ctx.soup, sel)
        if meta is not None and str(meta.get("content") or "").strip():
            return Resolution(str(meta["content"]).strip(), 0.55, "meta")
    return None


RESOLVER_CHAINS: Dict[str, List[Strategy]] = {
    "title": [title_from_card_classes, title_from_learned, title_from_link_text],
    "image": [image_from_img, image_from_learned, image_from_background],
    "price": [
        price_from_structured_data,
        price_from_card_classes,
        price_from_learned,
        price_from_link,
        price_from_text_scan,
    ],
    "description": [description_from_card, description_from_meta],
}


def resolve(name: str, card: Tag, ctx: ResolverContext) -> Optional[Resolution]:
    """Run the strategy chain for ``name``; first hit wins."""
    for strategy in RESOLVER_CHAINS.get(name, []):
        found = strategy(card, ctx)
        if found is not None:
            logger.debug("Resolved %s via %s: %r", name, found.source, found.value[:80])
            return found
    return None
