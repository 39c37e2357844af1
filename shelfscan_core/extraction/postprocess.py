"""
Item post-processing: canonicalize, dedupe, score and sort extracted records.
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from ..dom_toolkit.prices import has_currency_token

BOILERPLATE_DESCRIPTIONS = {
    "learn more",
    "shop now",
    "view details",
    "quick view",
    "read more",
}

SCORE_KEY = "_score"

_SKU_SEGMENT_RE = re.compile(r'^[a-z0-9-]{3,}$', re.I)


def to_absolute(base_url: str, href: Optional[str]) -> Optional[str]:
    if not href:
        return href
    try:
        return urljoin(base_url or "", href)
    except ValueError:
        return href


def canonical_href(href: Optional[str]) -> Optional[str]:
    """Drop trailing slashes and utm_* query parameters."""
    if not href:
        return href
    parsed = urlparse(href)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if not k.lower().startswith("utm_")]
    path = parsed.path.rstrip("/")
    return urlunparse(parsed._replace(path=path, query=urlencode(query)))


def strip_boilerplate(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    d = str(description).strip()
    if d.lower() in BOILERPLATE_DESCRIPTIONS:
        return ""
    return d


def coalesce_price(item: Dict[str, Any]) -> None:
    """First digit-bearing value of salePrice, price, compareAt."""
    for key in ("salePrice", "price", "compareAt"):
        value = item.get(key)
        if value and re.search(r'\d', str(value)):
            item["price"] = value
            return


def has_sku_segment(href: Optional[str]) -> bool:
    if not href:
        return False
    segments = [s for s in urlparse(href).path.split("/") if s]
    return any(_SKU_SEGMENT_RE.match(s) and re.search(r'\d', s) for s in segments)


def score_item(item: Dict[str, Any]) -> int:
    s = 0
    title = item.get("title") or ""
    if title:
        s += 2
        if len(title) >= 20:
            s += 1
    if item.get("href"):
        s += 2
    price = str(item.get("price") or "")
    if price:
        s += 2
        if has_currency_token(price):
            s += 1
    if item.get("image"):
        s += 1
    if has_sku_segment(item.get("href")):
        s += 1
    if len(item.get("description") or "") > 10:
        s += 1
    return s


def public_field_count(item: Dict[str, Any]) -> int:
    return sum(1 for k, v in item.items() if not k.startswith("_") and v not in (None, ""))


def public_fields(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in item.items() if not k.startswith("_")}


class ItemPostProcessor:
    """
    Canonicalize, dedupe, score and sort extracted records.

    Items keep a transient ``_score`` key for ranking; writers drop every
    key starting with an underscore.
    """

    def __init__(self, base_url: str = ""):
        self.base_url = base_url

    def canonicalize(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        item = dict(raw)
        if item.get("href"):
            item["href"] = canonical_href(to_absolute(self.base_url, item["href"]))
        if "description" in item:
            item["description"] = strip_boilerplate(item["description"])
        images = item.get("images")
        if isinstance(images, list) and images and not item.get("image"):
            item["image"] = images[0]
        coalesce_price(item)
        return item

    def process(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        by_key: Dict[str, Dict[str, Any]] = {}
        for raw in items:
            item = self.canonicalize(raw)
            item[SCORE_KEY] = score_item(item)
            key = f"{item.get('href') or ''}¦{item.get('title') or ''}"
            existing = by_key.get(key)
            if existing is None:
                by_key[key] = item
            elif item[SCORE_KEY] > existing[SCORE_KEY] or (
                item[SCORE_KEY] == existing[SCORE_KEY]
                and public_field_count(item) > public_field_count(existing)
            ):
                by_key[key] = item

        out = list(by_key.values())
        out.sort(key=lambda it: (-it[SCORE_KEY], str(it.get("title") or ""), str(it.get("href") or "")))
        return out


def postprocess_items(items: List[Dict[str, Any]], base_url: str = "") -> List[Dict[str, Any]]:
    return ItemPostProcessor(base_url).process(items)
