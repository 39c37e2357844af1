"""
Candidate miner - proposes list selectors from one HTML snapshot.

Priority-ordered, short-circuiting:
- platform fingerprints (fixed regex set) -> hardcoded bundle
- schema.org Product microdata -> smallest common ancestor + card
- generic DOM sweep over a few root scopes, every container scored
- fallback to page-wide link sweeps

Confidence is capped below 1 so a matched learned profile can still
override whatever the miner picks.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bs4 import Tag

from .dom_selectors import (
    FILTER_HINTS,
    HEADING_SELECTORS,
    ITEMISH_SELECTORS,
    MICRODATA_PRODUCT_SELECTOR,
    MINER_BAD_CLASS_RE,
    MINER_BAD_WRAPPERS,
    MINER_ROOTS,
    MINER_SCAN_TAGS,
    PRICE_HINTS,
    PRODUCT_HREF_HINTS,
    SIDEBAR_CLASS_RE,
)
from .dom_toolkit.query import class_tokens, matches, parse_html, safe_select
from .dom_toolkit.selectors import SelectorGenerator, selector_specificity
from .extraction.field_rules import FieldRule, ReadMode

logger = logging.getLogger(__name__)

MAX_CONFIDENCE = 0.95


@dataclass
class PlatformBundle:
    name: str
    pattern: re.Pattern
    primary: str
    candidates: List[Tuple[str, int]]


PLATFORM_BUNDLES = [
    PlatformBundle(
        name="shopify",
        pattern=re.compile(
            r'shopify-section-.*product-grid|collection-product-grid|data-section-type="collection-template"',
            re.I,
        ),
        primary="[id*='product-grid'] .grid__item, [id*='product-grid'] .collection-product, .collection .grid__item",
        candidates=[
            ("[id*='product-grid'] .grid__item", 90),
            ("[id*='product-grid'] .collection-product", 88),
            (".collection .grid__item", 80),
        ],
    ),
    PlatformBundle(
        name="bigcommerce",
        pattern=re.compile(r'class="[^"]*\bproductGrid\b|data-stencil-|stencil-utils', re.I),
        primary=".productGrid .product, .productGrid .card",
        candidates=[
            (".productGrid .product", 90),
            (".productGrid .card", 86),
            (".productGrid a[href]", 70),
        ],
    ),
    PlatformBundle(
        name="woocommerce",
        pattern=re.compile(r'class="[^"]*\bproducts\s+columns-\d|woocommerce-loop-product__link', re.I),
        primary="ul.products li.product",
        candidates=[
            ("ul.products li.product", 90),
            ("ul.products li.product a.woocommerce-LoopProduct-link", 84),
            (".woocommerce ul.products a[href]", 70),
        ],
    ),
]


@dataclass
class MinedCandidates:
    """Miner output: primary pick, ranked candidates and default field rules."""
    primary_selector: Optional[str] = None
    candidates: List[str] = field(default_factory=list)
    scored: Dict[str, int] = field(default_factory=dict)
    fields: Dict[str, FieldRule] = field(default_factory=dict)
    confidence: float = 0.0
    strategy: str = "none"

    @property
    def found(self) -> bool:
        return self.primary_selector is not None


def common_fields() -> Dict[str, FieldRule]:
    return {
        "title": FieldRule(mode=ReadMode.TEXT),
        "href": FieldRule(attribute="href"),
        "image": FieldRule(attribute="src"),
        "price": FieldRule(mode=ReadMode.TEXT),
    }


def link_fields() -> Dict[str, FieldRule]:
    return {
        "title": FieldRule(mode=ReadMode.TEXT),
        "href": FieldRule(attribute="href"),
    }


class CandidateSet:
    """selector -> score; duplicates keep the maximum score."""

    def __init__(self):
        self._scores: Dict[str, int] = {}

    def push(self, selector: str, score: int) -> None:
        selector = (selector or "").strip()
        if not selector:
            return
        self._scores[selector] = max(self._scores.get(selector, score), score)

    def __len__(self) -> int:
        return len(self._scores)

    def ranked(self) -> List[str]:
        return [s for s, _ in sorted(self._scores.items(), key=lambda kv: -kv[1])]

    def as_dict(self) -> Dict[str, int]:
        return dict(self._scores)

    def pick_primary(self) -> Tuple[str, int]:
        """Highest score; ties go to the more specific selector."""
        best = sorted(self._scores.items(), key=lambda kv: (-kv[1], -selector_specificity(kv[0])))
        return best[0]


def _path_to_root(node: Tag) -> List[Tag]:
    chain = []
    cur = node
    while isinstance(cur, Tag):
        chain.append(cur)
        cur = cur.parent
    chain.reverse()
    return chain


def smallest_common_ancestor(nodes: List[Tag]) -> Optional[Tag]:
    """Last node of the longest shared root-to-node path prefix."""
    if not nodes:
        return None
    paths = [_path_to_root(n) for n in nodes]
    shared = None
    for i, node in enumerate(paths[0]):
        if all(len(p) > i and p[i] is node for p in paths):
            shared = node
        else:
            break
    if shared is None or shared.name == "[document]":
        return None
    return shared


def is_bad_wrapper(node: Tag) -> bool:
    if MINER_BAD_CLASS_RE.search(" ".join(class_tokens(node)).lower()):
        return True
    if any(matches(node, sel) for sel in MINER_BAD_WRAPPERS):
        return True
    # site chrome tags disqualify everything nested inside them
    cur = node
    while isinstance(cur, Tag) and cur.name != "[document]":
        if cur.name in ("header", "footer", "nav"):
            return True
        cur = cur.parent
    return False


def _productish_href(href: str) -> bool:
    return any(rx.search(href) for rx in PRODUCT_HREF_HINTS)


def _count(node: Tag, selector: str) -> int:
    return len(safe_select(node, selector).nodes)


def _first_itemish(node: Tag) -> Optional[Tag]:
    return safe_select(node, ", ".join(ITEMISH_SELECTORS), limit=1).first()


def score_container(node: Tag) -> int:
    anchors = safe_select(node, "a[href]").nodes
    productish = sum(1 for a in anchors if _productish_href(str(a.get("href") or "")))
    itemish = sum(_count(node, sel) for sel in ITEMISH_SELECTORS)
    imgs = _count(node, "img")
    headings = _count(node, HEADING_SELECTORS)

    score = productish * 3
    score += min(itemish, 10) * 2
    score += min(imgs, 12)
    score += min(headings, 6)

    filterish = any(matches(node, sel) or _count(node, sel) for sel in FILTER_HINTS)
    if filterish:
        score -= 6
    if SIDEBAR_CLASS_RE.search(" ".join(class_tokens(node))):
        score -= 4
    return score


def detect_repeating_price(scope: List[Tag]) -> Optional[str]:
    """Most frequent price hint inside the scope, when it repeats at least 3 times."""
    counts: List[Tuple[str, int]] = []
    for hint in PRICE_HINTS:
        found = sum(_count(node, hint) for node in scope)
        if found:
            counts.append((hint, found))
    if not counts:
        return None
    counts.sort(key=lambda kv: -kv[1])
    best, n = counts[0]
    return best if n >= 3 else None


class CandidateMiner:
    """
    Proposes a ranked list of CSS selectors and a primary pick.

    Usage:
        mined = CandidateMiner().mine(html, url)
        mined.primary_selector  # e.g. "div.product-card"
    """

    def __init__(self, microdata_threshold: int = 6, min_container_links: int = 4):
        self.microdata_threshold = microdata_threshold
        self.min_container_links = min_container_links

    def mine(self, html: str, url: str = "") -> MinedCandidates:
        html = html or ""

        mined = self._from_platform(html)
        if mined:
            return mined

        soup = parse_html(html)
        candidates = CandidateSet()

        mined = self._from_microdata(soup, candidates)
        if mined:
            return mined

        mined = self._from_dom_sweep(soup, candidates)
        if mined:
            return mined

        return self._fallback(soup, candidates)

    def _from_platform(self, html: str) -> Optional[MinedCandidates]:
        for bundle in PLATFORM_BUNDLES:
            if not bundle.pattern.search(html):
                continue
            candidates = CandidateSet()
            for sel, score in bundle.candidates:
                candidates.push(sel, score)
            logger.debug("Platform fingerprint matched: %s", bundle.name)
            return MinedCandidates(
                primary_selector=bundle.primary,
                candidates=candidates.ranked(),
                scored=candidates.as_dict(),
                fields=common_fields(),
                confidence=0.9,
                strategy=f"platform:{bundle.name}",
            )
        return None

    def _from_microdata(self, soup: Tag, candidates: CandidateSet) -> Optional[MinedCandidates]:
        products = safe_select(soup, MICRODATA_PRODUCT_SELECTOR).nodes
        if len(products) < self.microdata_threshold:
            return None
        container = smallest_common_ancestor(products)
        if container is None:
            return None

        cont_sel = SelectorGenerator.for_element(container) or "body"
        candidates.push(f"{cont_sel} a[href]", 70)
        card = _first_itemish(container) or products[0]
        candidates.push(SelectorGenerator.for_element(card), 78)

        primary, score = candidates.pick_primary()
        return MinedCandidates(
            primary_selector=primary,
            candidates=candidates.ranked(),
            scored=candidates.as_dict(),
            fields=common_fields(),
            confidence=min(0.85, score / 100),
            strategy="microdata",
        )

    def _from_dom_sweep(self, soup: Tag, candidates: CandidateSet) -> Optional[MinedCandidates]:
        visited = set()
        for root in safe_select(soup, MINER_ROOTS).nodes:
            for el in safe_select(root, MINER_SCAN_TAGS).nodes:
                if id(el) in visited:
                    continue
                visited.add(id(el))
                if is_bad_wrapper(el):
                    continue
                if _count(el, "a[href]") < self.min_container_links:
                    continue

                score = score_container(el)
                if score <= 4:
                    continue
                container_sel = SelectorGenerator.for_element(el)
                candidates.push(f"{container_sel} a[href]", score * 2)
                card = _first_itemish(el)
                if card is not None:
                    candidates.push(SelectorGenerator.for_element(card), score * 3)

        if not len(candidates):
            return None

        primary, score = candidates.pick_primary()
        fields = common_fields()
        scope = safe_select(soup, primary).nodes
        if scope:
            price_sel = detect_repeating_price(scope)
            if price_sel:
                fields["price"] = FieldRule(selectors=[price_sel], mode=ReadMode.TEXT)

        return MinedCandidates(
            primary_selector=primary,
            candidates=candidates.ranked(),
            scored=candidates.as_dict(),
            fields=fields,
            confidence=min(0.75, score / 100),
            strategy="dom",
        )

    def _fallback(self, soup: Tag, candidates: CandidateSet) -> MinedCandidates:
        for sel, score, confidence in (("main a[href]", 30, 0.35), ("a[href]", 20, 0.2)):
            if safe_select(soup, sel, limit=1).nodes:
                candidates.push(sel, score)
                return MinedCandidates(
                    primary_selector=sel,
                    candidates=candidates.ranked(),
                    scored=candidates.as_dict(),
                    fields=link_fields(),
                    confidence=confidence,
                    strategy="fallback",
                )
        return MinedCandidates(candidates=candidates.ranked(), scored=candidates.as_dict())


def mine_candidates(html: str, url: str = "") -> MinedCandidates:
    return CandidateMiner().mine(html, url)
