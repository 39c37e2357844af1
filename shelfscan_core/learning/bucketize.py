"""
Sorting tried/winning selectors of a run back into learnable buckets.
"""

import re
from typing import Iterable

from ..dom_toolkit.selectors import simplicity, strip_hashed_classes
from .buckets import BUCKET_CAPS, Buckets, unique

ANCHORISH_RE = re.compile(r'a\[href|/product')
CONTAINERISH_RE = re.compile(r'\b(grid|product|card|collection|item)\b', re.I)
VERY_BROAD_RE = re.compile(r'^(a\[href\]|ul a\[href\]|div\.site-main a\[href\])$', re.I)

LEARNED_LIST_CAP = 12


def is_anchorish(selector: str) -> bool:
    return bool(ANCHORISH_RE.search(selector))


def is_containerish(selector: str) -> bool:
    return bool(CONTAINERISH_RE.search(selector)) and 'a[href' not in selector


def to_anchor_variant(selector: str) -> str:
    """Container-looking selectors get an inner product-link variant."""
    if is_containerish(selector):
        return f"{selector} a[href]"
    return selector


def bucketize_for_learning(tried: Iterable[str], winners: Iterable[str]) -> Buckets:
    """Winners land in ``list`` plus their role bucket; the rest only in a role bucket."""
    uniq_tried = unique(strip_hashed_classes(s) for s in tried)
    uniq_win = set(strip_hashed_classes(s) for s in winners)

    out: Buckets = {name: [] for name in BUCKET_CAPS}

    for s in uniq_tried:
        anchorish = is_anchorish(s)
        containerish = is_containerish(s)
        very_broad = bool(VERY_BROAD_RE.match(s))

        if s in uniq_win:
            out["list"].append(s)
            if anchorish:
                out["anchors"].append(s)
            elif containerish:
                out["containers"].append(s)
            elif very_broad:
                out["broad"].append(s)
            else:
                out["candidates"].append(s)
            continue

        if very_broad:
            out["broad"].append(s)
        elif anchorish:
            out["anchors"].append(s)
        elif containerish:
            out["containers"].append(s)
        else:
            out["candidates"].append(s)

    for name, sels in out.items():
        sels.sort(key=simplicity)
        cap = LEARNED_LIST_CAP if name == "list" else BUCKET_CAPS[name]
        out[name] = unique(sels)[:cap]
    return out
