"""
Field rules - how one item field is read from a card.

Rules arrive loosely typed (a selector string, a list of selectors, or an
object from a persisted profile or a per-kind defaults file). They are
normalized once into FieldRule; everything downstream works on FieldRule.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from bs4 import Tag

from ..dom_selectors import (
    ATTRIBUTE_PRIORITY,
    FIELD_DEFAULT_SELECTORS,
    IMAGE_ATTRIBUTE_PRIORITY,
    PRICE_ATTRIBUTE_PRIORITY,
)
from ..dom_toolkit.prices import normalize_price
from ..dom_toolkit.query import select_first, text_of

CORE_FIELDS = ["title", "price", "image", "href", "description"]


class ReadMode(str, Enum):
    TEXT = "text"
    HTML = "html"


@dataclass
class FieldRule:
    """Ordered selectors (``""`` is the card itself), optional attribute, read mode."""
    selectors: List[str] = field(default_factory=list)
    attribute: Optional[str] = None
    mode: ReadMode = ReadMode.TEXT

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["FieldRule"]:
        if raw is None:
            return None
        if isinstance(raw, FieldRule):
            return raw
        if isinstance(raw, str):
            return cls(selectors=[raw.strip()] if raw.strip() else [])
        if isinstance(raw, (list, tuple)):
            return cls(selectors=[str(s).strip() for s in raw if str(s).strip()])
        if isinstance(raw, dict):
            sel = raw.get("selectors", raw.get("selector", raw.get("sel")))
            if isinstance(sel, str):
                selectors = [sel.strip()] if sel.strip() else []
            elif isinstance(sel, (list, tuple)):
                selectors = [str(s).strip() for s in sel if str(s).strip()]
            else:
                selectors = []
            attr = raw.get("attribute", raw.get("attr"))
            if isinstance(attr, (list, tuple)):
                attr = attr[0] if attr else None
            html = raw.get("html") is True or str(raw.get("mode", "")).lower() == "html"
            return cls(
                selectors=selectors,
                attribute=str(attr) if attr else None,
                mode=ReadMode.HTML if html else ReadMode.TEXT,
            )
        return None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "selector": self.selectors[0] if len(self.selectors) == 1 else list(self.selectors),
        }
        if self.attribute:
            out["attribute"] = self.attribute
        if self.mode is ReadMode.HTML:
            out["mode"] = ReadMode.HTML.value
        return out


def normalize_field_rules(raw: Optional[Dict[str, Any]]) -> Dict[str, FieldRule]:
    rules: Dict[str, FieldRule] = {}
    for name, value in (raw or {}).items():
        rule = FieldRule.from_raw(value)
        if rule is not None:
            rules[name] = rule
    return rules


def serialize_field_rules(rules: Dict[str, FieldRule]) -> Dict[str, Dict[str, Any]]:
    return {name: rule.to_dict() for name, rule in rules.items()}


def pick_best_src(value: Optional[str]) -> Optional[str]:
    """First URL of a srcset-like value; inline data URIs are rejected."""
    if not value:
        return None
    value = value.strip()
    if value.startswith("data:"):
        return None
    if "," in value or " " in value:
        first = value.split(",")[0].strip()
        parts = first.split()
        value = parts[0] if parts else ""
        if not value or value.startswith("data:"):
            return None
    return value


def _accept_any(value: str) -> Optional[str]:
    value = value.strip()
    return value or None


@dataclass
class FieldPlan:
    selectors: List[str]
    attributes: List[str]
    modes: List[ReadMode]
    accept: Callable[[str], Optional[str]] = _accept_any


def plan_for(name: str, rule: Optional[FieldRule]) -> FieldPlan:
    selectors = list(rule.selectors) if rule and rule.selectors else list(FIELD_DEFAULT_SELECTORS.get(name, [""]))
    attribute = rule.attribute if rule else None
    mode = rule.mode if rule else ReadMode.TEXT

    # titles and descriptions never read attributes so URLs cannot leak in as text
    if name in ("title", "description"):
        return FieldPlan(selectors, [], [mode])
    if name == "href":
        return FieldPlan(selectors, [attribute] if attribute else list(ATTRIBUTE_PRIORITY), [])
    if name == "image":
        attrs = [a for a in IMAGE_ATTRIBUTE_PRIORITY if a != attribute]
        return FieldPlan(selectors, ([attribute] if attribute else []) + attrs, [], pick_best_src)
    if name == "price":
        attrs = [attribute] if attribute else list(PRICE_ATTRIBUTE_PRIORITY)
        return FieldPlan(selectors, attrs, [ReadMode.TEXT], normalize_price)
    return FieldPlan(selectors, [attribute] if attribute else list(ATTRIBUTE_PRIORITY), [mode])


def read_field(card: Tag, plan: FieldPlan) -> Optional[str]:
    """First accepted value along the plan; attributes before text/markup."""
    for sel in plan.selectors:
        node = select_first(card, sel)
        if node is None:
            continue
        for attr in plan.attributes:
            raw = node.get(attr)
            if isinstance(raw, list):
                raw = " ".join(raw)
            if not raw:
                continue
            value = plan.accept(str(raw))
            if value:
                return value
        for mode in plan.modes:
            raw = node.decode_contents() if mode is ReadMode.HTML else text_of(node)
            if not raw:
                continue
            value = plan.accept(raw)
            if value:
                return value
    return None
