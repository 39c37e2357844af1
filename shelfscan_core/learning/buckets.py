"""
Selector buckets - named, capped, deduplicated selector lists.

Buckets (tried in this order by the cascade):
- list: selectors that produced items before (protected, see ProfileStore)
- anchors: selectors ending in product links
- containers: repeated card/grid wrappers
- broad: page-wide link sweeps
- candidates: everything else worth a try
"""

from typing import Any, Dict, Iterable, List, Optional

from ..dom_toolkit.selectors import strip_hashed_classes

BUCKET_NAMES = ("list", "anchors", "containers", "broad", "candidates")

BUCKET_CAPS = {
    "list": 20,
    "anchors": 40,
    "containers": 40,
    "broad": 40,
    "candidates": 80,
}

Buckets = Dict[str, List[str]]


def to_selector_list(value: Any) -> List[str]:
    """A comma string splits into selectors; a list is taken as-is."""
    if not value:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, (list, tuple)):
        return [str(s).strip() for s in value if s and str(s).strip()]
    return []


def unique(selectors: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for s in selectors:
        if s and s not in seen:
            seen.add(s)
            out.append(s)
    return out


def normalize_selector_list(value: Any, cap: Optional[int] = None) -> List[str]:
    cleaned = unique(strip_hashed_classes(s) for s in to_selector_list(value))
    return cleaned[:cap] if cap is not None else cleaned


def normalize_buckets(buckets: Optional[Dict[str, Any]]) -> Buckets:
    """Strip hashed fragments, dedupe in order and cap every bucket. Idempotent."""
    buckets = buckets or {}
    return {name: normalize_selector_list(buckets.get(name), BUCKET_CAPS[name]) for name in BUCKET_NAMES}


def merge_unique(existing: Iterable[str], incoming: Iterable[str], cap: int) -> List[str]:
    """Existing-first union, capped."""
    return unique(list(existing or []) + list(incoming or []))[:cap]


def empty_buckets() -> Buckets:
    return {name: [] for name in BUCKET_NAMES}


def union_buckets(first: Dict[str, Any], second: Dict[str, Any]) -> Buckets:
    """Per-bucket concatenation, first before second; no capping."""
    return {
        name: unique(to_selector_list(first.get(name)) + to_selector_list(second.get(name)))
        for name in BUCKET_NAMES
    }
