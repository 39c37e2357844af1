"""
Query Primitive - Guarded CSS Selection over Parsed HTML

Every selector string the engine evaluates comes from heuristics or from a
persisted profile, so any of them may be invalid for the parser. Evaluation
returns a SelectResult instead of raising; callers skip failed selectors.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import soupsieve
from bs4 import BeautifulSoup, Tag

from ..exceptions import SelectorError

logger = logging.getLogger(__name__)

_SELECTOR_FAILURES = (soupsieve.SelectorSyntaxError, ValueError, NotImplementedError, TypeError)


@dataclass
class SelectResult:
    """Outcome of evaluating one selector: matched nodes or a SelectorError."""
    selector: str
    nodes: List[Tag] = field(default_factory=list)
    error: Optional[SelectorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return bool(self.nodes)

    def first(self) -> Optional[Tag]:
        return self.nodes[0] if self.nodes else None


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def safe_select(root: Tag, selector: str, limit: int = 0) -> SelectResult:
    """Select descendants of ``root``; invalid selectors yield an error result."""
    selector = (selector or "").strip()
    if not selector:
        return SelectResult(selector, error=SelectorError(selector, "empty selector"))
    try:
        nodes = root.select(selector, limit=limit)
    except _SELECTOR_FAILURES as e:
        logger.debug("Skipping selector %r: %s", selector, e)
        return SelectResult(selector, error=SelectorError(selector, str(e)))
    return SelectResult(selector, nodes=list(nodes))


def select_first(root: Tag, selector: str) -> Optional[Tag]:
    """First descendant match, or ``root`` itself for the empty selector."""
    if not selector:
        return root
    return safe_select(root, selector, limit=1).first()


def matches(node: Tag, selector: str) -> bool:
    if not isinstance(node, Tag) or not selector:
        return False
    try:
        return bool(soupsieve.match(selector, node))
    except _SELECTOR_FAILURES as e:
        logger.debug("Selector %r cannot be matched: %s", selector, e)
        return False


def closest(node: Tag, selector: str, include_self: bool = True) -> Optional[Tag]:
    """Nearest ancestor (optionally the node itself) matching ``selector``."""
    current = node if include_self else node.parent
    while isinstance(current, Tag) and current.name != "[document]":
        if matches(current, selector):
            return current
        current = current.parent
    return None


def has_ancestor(node: Tag, selector: str) -> bool:
    return closest(node, selector, include_self=False) is not None


def find_any(root: Tag, selectors: Iterable[str], cap: int = 200, include_self: bool = False) -> List[Tag]:
    """Nodes for the first selector in ``selectors`` that matches anything."""
    for sel in selectors or []:
        if not sel:
            continue
        if include_self and matches(root, sel):
            return [root]
        result = safe_select(root, sel)
        if result.nodes:
            return result.nodes[:cap]
    return []


def text_of(node: Optional[Tag]) -> str:
    """Element text with whitespace collapsed."""
    if node is None:
        return ""
    return " ".join(node.get_text(" ").split())


def element_children(node: Tag) -> List[Tag]:
    return [c for c in node.children if isinstance(c, Tag)]


def class_tokens(node: Tag) -> List[str]:
    value = node.get("class") or []
    if isinstance(value, str):
        value = value.split()
    return [c for c in value if c]
