"""
Structured Data - Embedded JSON-LD product records

Reads <script type="application/ld+json"> blocks. Malformed blocks are skipped
one at a time; a page with a single broken block still yields the others.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from bs4 import Tag

from ..dom_selectors import LD_JSON_SELECTOR
from ..exceptions import StructuredDataError
from .prices import normalize_price
from .query import safe_select

logger = logging.getLogger(__name__)


def parse_block(text: str) -> List[Any]:
    """Decode one JSON-LD block into a list of top-level nodes."""
    text = (text or "").strip()
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise StructuredDataError(f"Malformed JSON-LD block: {e}") from e
    return parsed if isinstance(parsed, list) else [parsed]


def load_blocks(root: Tag) -> List[Any]:
    blobs: List[Any] = []
    for script in safe_select(root, LD_JSON_SELECTOR).nodes:
        try:
            blobs.extend(parse_block(script.string or script.get_text()))
        except StructuredDataError as e:
            logger.debug("%s", e)
    return blobs


def is_type(node: Any, type_name: str) -> bool:
    if not isinstance(node, dict):
        return False
    t = node.get("@type")
    if isinstance(t, list):
        return type_name in t
    return t == type_name


def collect_products(node: Any, out: List[Dict]) -> None:
    """Products reachable through Product, ItemList and @graph nodes."""
    if not isinstance(node, dict):
        return
    if is_type(node, "Product"):
        out.append(node)
    if is_type(node, "ItemList") and isinstance(node.get("itemListElement"), list):
        for el in node["itemListElement"]:
            item = el.get("item") if isinstance(el, dict) and isinstance(el.get("item"), dict) else el
            collect_products(item, out)
    if isinstance(node.get("@graph"), list):
        for g in node["@graph"]:
            collect_products(g, out)


def page_products(root: Tag) -> List[Dict]:
    products: List[Dict] = []
    for blob in load_blocks(root):
        collect_products(blob, products)
    return products


def offer_price(product: Dict) -> Optional[str]:
    offers = product.get("offers")
    value = None
    if isinstance(offers, dict):
        value = offers.get("price", offers.get("lowPrice"))
    elif isinstance(offers, list) and offers and isinstance(offers[0], dict):
        value = offers[0].get("price")
    if value is None:
        value = product.get("price")
    if value is None:
        return None
    text = str(value)
    currency = offers.get("priceCurrency") if isinstance(offers, dict) else None
    if currency and normalize_price(text) is None:
        normalized = normalize_price(f"{currency} {text}")
        if normalized:
            return normalized
    return normalize_price(text) or text


def product_to_item(product: Dict, field_names: List[str]) -> Dict[str, Any]:
    """Map a JSON-LD Product onto the requested item fields."""
    item: Dict[str, Any] = {}
    for name in field_names:
        if name in ("title", "name"):
            v = product.get("name") or product.get("title")
            if v:
                item["title"] = str(v).strip()
        elif name == "price":
            price = offer_price(product)
            if price:
                item["price"] = price
        elif name == "image":
            img = product.get("image")
            if isinstance(img, list):
                img = img[0] if img else None
            if isinstance(img, dict):
                img = img.get("url")
            if img:
                item["image"] = str(img)
        elif name == "href":
            url = product.get("url") or product.get("@id")
            if url:
                item["href"] = str(url)
        elif name == "description":
            v = product.get("description")
            if v:
                item["description"] = str(v).strip()
        else:
            v = product.get(name)
            if v is not None:
                item[name] = v
    return item
