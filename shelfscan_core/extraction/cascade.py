"""
Extraction cascade - ordered selector buckets in, raw item records out.

Buckets are tried in a fixed order (list, anchors, containers, broad,
candidates). Inside a bucket every selector is tried alone, then the first
ten together. The first strategy that yields an item ends the cascade; later
buckets are never tried. When no bucket yields anything, embedded JSON-LD
products become the only item source.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import Tag

from ..config import config
from ..dom_selectors import CHROME_WRAPPERS, PRODUCT_CARD_WRAPPERS, PRODUCTISH_CONTAINERS
from ..dom_toolkit.query import (
    closest,
    element_children,
    find_any,
    has_ancestor,
    matches,
    parse_html,
    safe_select,
)
from ..dom_toolkit.structured_data import page_products, product_to_item
from .field_rules import CORE_FIELDS, FieldPlan, FieldRule, normalize_field_rules, plan_for, read_field
from .postprocess import canonical_href, public_field_count, to_absolute
from .resolvers import ResolverContext, resolve

logger = logging.getLogger(__name__)

BUCKET_ORDER = ("list", "anchors", "containers", "broad", "candidates")

BATCH_SIZE = 10
MAX_CARD_LINKS = 200
MIN_LINKS_AS_CARDS = 6
MAX_TITLE_LEN = 200
MAX_DESCRIPTION_LEN = 1200
MAX_STRUCTURED_SCAN = 600

_CARD_WRAPPER_SEL = ", ".join(PRODUCT_CARD_WRAPPERS)
_CHROME_SEL = ", ".join(CHROME_WRAPPERS)
_GRID_SEL = ", ".join(PRODUCTISH_CONTAINERS)

_FILTER_HREF_RE = re.compile(r'/search/?#/filter:', re.I)
_LISTING_PATH_RE = re.compile(r'(search|filter|category|collection|tag|sale|new|mens|womens|kids|home)\b')


def looks_like_pdp(href: str) -> bool:
    """Does ``href`` look like a product detail page?"""
    if not href:
        return False
    u = href.lower()
    if re.search(r'/product', u):
        return True
    path = re.sub(r'^https?://[^/]+', '', u).split('?')[0]
    segs = [s for s in path.split('/') if s]
    if len(segs) >= 2 and not _LISTING_PATH_RE.search(path):
        return any('-' in s or re.search(r'\d{3,}', s) for s in segs)
    return False


def strip_fragment(href: str) -> str:
    return (href or "").split("#")[0]


@dataclass
class CascadeResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    winning_bucket: Optional[str] = None
    winners: List[str] = field(default_factory=list)
    tried: List[str] = field(default_factory=list)
    source: str = "none"


class ExtractionCascade:
    """
    Turn ordered selector buckets plus field rules into raw item records.

    Usage:
        result = ExtractionCascade().run(html, {"list": ["div.product-card"]}, {})
        result.items, result.winning_bucket
    """

    def __init__(self, max_items: Optional[int] = None, batch_size: int = BATCH_SIZE):
        self.max_items = max_items or config.max_items
        self.batch_size = batch_size

    def run(
        self,
        html: str,
        buckets: Dict[str, List[str]],
        field_rules: Optional[Dict[str, Any]] = None,
        base_url: Optional[str] = None,
    ) -> CascadeResult:
        soup = parse_html(html)
        rules = normalize_field_rules(field_rules)
        ctx = ResolverContext(soup=soup, learned_fields=rules)
        plans = self._plans(rules)
        buckets = buckets or {}
        result = CascadeResult()

        for name in BUCKET_ORDER:
            sels = [s for s in (buckets.get(name) or []) if s]
            if not sels:
                continue
            logger.debug("Trying bucket %s (%d selectors)", name, len(sels))

            for sel in sels:
                result.tried.append(sel)
                items = self._extract_with(soup, [sel], plans, buckets, ctx, base_url)
                if items:
                    logger.info("Bucket %s matched with %s -> %d items", name, sel, len(items))
                    result.items, result.winners = items, [sel]
                    result.winning_bucket, result.source = name, "dom"
                    return result

            batch = sels[:self.batch_size]
            items = self._extract_with(soup, batch, plans, buckets, ctx, base_url)
            if items:
                logger.info("Bucket %s matched as a batch of %d selectors -> %d items", name, len(batch), len(items))
                result.items, result.winners = items, list(batch)
                result.winning_bucket, result.source = name, "dom"
                return result

        items = self._from_structured_data(soup, list(plans.keys()))
        if items:
            logger.info("No bucket matched; %d items from structured data", len(items))
            result.items, result.source = items, "structured_data"
        else:
            logger.debug("No bucket matched and no structured data products")
        return result

    # ------------------------------------------------------------------ plans

    @staticmethod
    def _plans(rules: Dict[str, FieldRule]) -> Dict[str, FieldPlan]:
        plans = {name: plan_for(name, rule) for name, rule in rules.items()}
        for core in CORE_FIELDS:
            if core not in plans:
                plans[core] = plan_for(core, None)
        return plans

    # ------------------------------------------------------------------ cards

    def card_nodes(self, list_node: Tag, buckets: Dict[str, List[str]]) -> List[Tag]:
        """Resolve the item cards held by one matched list node."""
        if matches(list_node, "a[href]"):
            return [list_node]

        links = safe_select(list_node, "a[href]", limit=MAX_CARD_LINKS).nodes
        if len(links) >= MIN_LINKS_AS_CARDS:
            return links

        cards = find_any(list_node, buckets.get("containers") or [])
        if cards:
            return cards

        parents: List[Tag] = []
        seen = set()
        for cand in find_any(list_node, buckets.get("candidates") or []):
            parent = cand.parent
            if isinstance(parent, Tag) and parent is not list_node and id(parent) not in seen:
                seen.add(id(parent))
                parents.append(parent)
        if parents:
            return parents

        return [c for c in element_children(list_node) if element_children(c)]

    @staticmethod
    def nearest_product_card(node: Tag) -> Tag:
        return closest(node, _CARD_WRAPPER_SEL) or node

    # ------------------------------------------------------------------ items

    def _read_card(self, card: Tag, plans: Dict[str, FieldPlan], ctx: ResolverContext) -> Dict[str, Any]:
        item: Dict[str, Any] = {}
        for name, plan in plans.items():
            value = read_field(card, plan)
            if value:
                item[name] = value

        if not item.get("href"):
            link = card if matches(card, "a[href]") else safe_select(card, "a[href]", limit=1).first()
            if link is not None and str(link.get("href") or "").strip():
                item["href"] = str(link["href"]).strip()

        for name in ("title", "image", "price", "description"):
            if not item.get(name):
                found = resolve(name, card, ctx)
                if found is not None:
                    item[name] = found.value

        if item.get("title") and len(item["title"]) > MAX_TITLE_LEN:
            item["title"] = item["title"][:MAX_TITLE_LEN]
        if item.get("description") and len(item["description"]) > MAX_DESCRIPTION_LEN:
            item["description"] = item["description"][:MAX_DESCRIPTION_LEN]
        return item

    @staticmethod
    def prefilter_score(item: Dict[str, Any], node: Tag) -> int:
        """Stricter in-cascade quality score; items below 1 are dropped."""
        href = strip_fragment(item.get("href") or "")
        title = (item.get("title") or "").strip()
        score = 0
        if href and looks_like_pdp(href):
            score += 3
        if has_ancestor(node, _GRID_SEL):
            score += 2
        if item.get("image") and title:
            score += 1
        if item.get("price"):
            score += 1
        if has_ancestor(node, _CHROME_SEL):
            score -= 2
        if not title or len(title) > 120:
            score -= 1
        if not href:
            score -= 1
        return score

    def _extract_with(
        self,
        soup: Tag,
        list_selectors: List[str],
        plans: Dict[str, FieldPlan],
        buckets: Dict[str, List[str]],
        ctx: ResolverContext,
        base_url: Optional[str],
    ) -> List[Dict[str, Any]]:
        list_nodes: List[Tag] = []
        seen_lists = set()
        for sel in list_selectors:
            for node in safe_select(soup, sel).nodes:
                if id(node) not in seen_lists:
                    seen_lists.add(id(node))
                    list_nodes.append(node)
        if not list_nodes:
            return []

        by_key: Dict[str, Dict[str, Any]] = {}
        order: List[str] = []
        seen_cards = set()
        for list_node in list_nodes:
            for el in self.card_nodes(list_node, buckets):
                card = self.nearest_product_card(el)
                if id(card) in seen_cards:
                    continue
                seen_cards.add(id(card))

                item = self._read_card(card, plans, ctx)
                href = strip_fragment(item.get("href") or "")
                if _FILTER_HREF_RE.search(href):
                    continue
                title = (item.get("title") or "").strip()
                if title and item.get("price") and title == str(item["price"]).strip():
                    item.pop("price")

                score = self.prefilter_score(item, card)
                if score < 1:
                    continue
                item["_score"] = score

                key = canonical_href(to_absolute(base_url or "", href)) if href else f"__idx_{len(order)}"
                existing = by_key.get(key)
                if existing is None:
                    by_key[key] = item
                    order.append(key)
                elif score > existing["_score"] or (
                    score == existing["_score"] and public_field_count(item) > public_field_count(existing)
                ):
                    by_key[key] = item

        return [by_key[k] for k in order][:self.max_items]

    # ------------------------------------------------------------------ structured data

    def _from_structured_data(self, soup: Tag, field_names: List[str]) -> List[Dict[str, Any]]:
        by_key: Dict[str, Dict[str, Any]] = {}
        order: List[str] = []
        for product in page_products(soup)[:MAX_STRUCTURED_SCAN]:
            item = product_to_item(product, field_names)
            if not item:
                continue
            href = strip_fragment(str(item.get("href") or ""))
            key = href or f"__idx_{len(order)}"
            existing = by_key.get(key)
            if existing is None:
                by_key[key] = item
                order.append(key)
            elif public_field_count(item) > public_field_count(existing):
                by_key[key] = item
        return [by_key[k] for k in order][:self.max_items]


def extract(
    html: str,
    buckets: Dict[str, List[str]],
    field_rules: Optional[Dict[str, Any]] = None,
    base_url: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Raw items for ``html``; see ExtractionCascade.run for the full result."""
    return ExtractionCascade().run(html, buckets, field_rules, base_url).items
