"""
Bucket hint miner - a cheaper, site-agnostic pass used only to enrich
learned buckets during an upsert. It never picks a primary selector.
"""

import logging
import re
from collections import OrderedDict
from typing import Dict, List, Tuple

from bs4 import Tag

from ..dom_selectors import GENERIC_CANDIDATES
from ..dom_toolkit.query import class_tokens, element_children, parse_html, safe_select, text_of
from ..dom_toolkit.selectors import css_escape
from ..dom_toolkit.structured_data import is_type, load_blocks
from .buckets import Buckets, empty_buckets, unique

logger = logging.getLogger(__name__)

CONTAINER_VOCAB_RE = re.compile(r'\b(card|product|item|grid|tile|result|entry|listing)\b', re.I)

PRICE_TEXT_RE = re.compile(
    r'(\$|€|£|¥)\s?\d|^\s*\d+(?:[.,]\d{2})?\s*(usd|cad|eur|gbp|aud|nzd|mxn|brl)?\b',
    re.I,
)

MIN_REPEATS = 6
MIN_CHILD_REPEATS = 3
MAX_CONTAINERS = 20
MAX_CHILDREN = 250


def _class_selector(classes: List[str]) -> str:
    return "".join("." + css_escape(c) for c in sorted(classes))


def _repeated_containers(root: Tag) -> List[str]:
    freq: Dict[Tuple[str, Tuple[str, ...]], int] = OrderedDict()
    for el in root.find_all(True):
        key = ((el.name or "div").lower(), tuple(sorted(class_tokens(el))))
        freq[key] = freq.get(key, 0) + 1

    common = []
    for (tag, classes), count in freq.items():
        if count >= MIN_REPEATS and CONTAINER_VOCAB_RE.search(" ".join((tag,) + classes)):
            common.append(_class_selector(list(classes)) if classes else tag)
        if len(common) >= MAX_CONTAINERS:
            break
    return common


def _looks_like_card(node: Tag) -> bool:
    if not safe_select(node, "a[href]", limit=1).nodes:
        return False
    has_img = bool(safe_select(node, "img[src], img[data-src], img[srcset]", limit=1).nodes)
    return has_img or bool(PRICE_TEXT_RE.search(text_of(node)))


def mine_bucket_hints(html: str) -> Buckets:
    """Buckets proposed from structured data hints and repeated DOM structure."""
    out = empty_buckets()
    if not html:
        return out
    soup = parse_html(html)

    if any(is_type(blob, "Product") for blob in load_blocks(soup)):
        out["candidates"].extend([
            "[itemscope][itemtype*='Product']",
            "[data-product]",
            "[data-sku]",
        ])

    common = _repeated_containers(soup)
    out["containers"].extend(common)

    for cont_sel in common:
        cont = safe_select(soup, cont_sel, limit=1).first()
        if cont is None:
            continue
        signatures: Dict[str, int] = OrderedDict()
        for kid in element_children(cont)[:MAX_CHILDREN]:
            classes = class_tokens(kid)
            sig = _class_selector(classes) if classes else (kid.name or "div").lower()
            signatures[sig] = signatures.get(sig, 0) + 1

        for sig, n in signatures.items():
            if n < MIN_CHILD_REPEATS:
                continue
            sel = f"{cont_sel} > {sig}"
            nodes = safe_select(soup, sel).nodes
            if sum(1 for node in nodes if _looks_like_card(node)) >= MIN_CHILD_REPEATS:
                out["list"].append(sel)
                out["anchors"].append(f"{sel} a[href]")

    out["broad"].extend(["main a[href]", "body a[href]"])
    out["candidates"].extend(GENERIC_CANDIDATES)

    return {name: unique(sels) for name, sels in out.items()}
