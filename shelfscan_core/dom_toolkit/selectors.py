"""
Selector Generator - Build Stable CSS Selectors

Generate short, stable selectors for parsed elements and clean up selectors
coming from earlier runs.

Strategies:
1. ID (only when it does not look generated)
2. Tag + up to two stable classes
3. Bare tag
"""

import re
from typing import List

from bs4 import Tag

from .query import class_tokens

# ids/classes that look generated: leading digit, long numeric run, hex hash
DYNAMIC_TOKEN_RE = re.compile(r'^\d|_\d{4,}|[a-f0-9]{8,}')

# CSS-in-JS and utility prefixes
HASHED_CLASS_RE = re.compile(r'^(css|chakra|sc|tw|jsx|emotion)-|^_')

UTILITY_CLASS_RE = re.compile(r'^(mt|mb|ml|mr|mx|my|pt|pb|pl|pr|px|py|w-|h-|text-|bg-)')

# hashed class fragments inside a selector string; escaped-colon responsive variants too
_HASHED_FRAGMENT_RE = re.compile(
    r'\.(?:css|chakra|sc|tw|jsx|emotion)-[A-Za-z0-9_-]+'
    r'|\._[A-Za-z0-9_-]+'
    r'|\.[A-Za-z0-9_-]*\\:[A-Za-z0-9_-]+'
)

_ESCAPE_RE = re.compile(r'[^a-zA-Z0-9_-]')


def css_escape(value: str) -> str:
    return _ESCAPE_RE.sub(lambda m: '\\' + m.group(0), value)


def is_stable_token(token: str) -> bool:
    if len(token) < 2:
        return False
    if DYNAMIC_TOKEN_RE.search(token):
        return False
    if HASHED_CLASS_RE.search(token):
        return False
    if ':' in token:
        return False
    return True


def strip_hashed_classes(selector: str) -> str:
    """Remove generated class fragments from a selector; idempotent."""
    cleaned = _HASHED_FRAGMENT_RE.sub('', selector or '')
    cleaned = re.sub(r'\s+', ' ', cleaned).strip()
    # a fragment stripped from a compound like "div .css-x" leaves a dangling combinator
    cleaned = re.sub(r'\s*([>+~])\s*$', '', cleaned)
    cleaned = re.sub(r'^\s*[>+~]\s*', '', cleaned)
    return cleaned.strip()


def selector_specificity(selector: str) -> int:
    """Rough specificity: 3 per class, 4 per attribute predicate, 1 per descendant step."""
    weight = selector.count('.') * 3
    weight += selector.count('[') * 4
    weight += len(re.findall(r'\s+', selector.strip()))
    return weight


def simplicity(selector: str) -> int:
    """Lower is simpler: class segments weigh 10, then length."""
    return selector.count('.') * 10 + len(selector)


class SelectorGenerator:
    """
    Generate CSS selectors for parsed elements.
    """

    @staticmethod
    def for_element(node: Tag) -> str:
        tag = (node.name or 'div').lower()
        node_id = node.get('id')
        if isinstance(node_id, str) and node_id.strip() and is_stable_token(node_id.strip()):
            return '#' + css_escape(node_id.strip())

        classes = SelectorGenerator.stable_classes(node)
        if classes:
            return tag + ''.join('.' + css_escape(c) for c in classes[:2])
        return tag

    @staticmethod
    def stable_classes(node: Tag) -> List[str]:
        return [
            c for c in class_tokens(node)
            if is_stable_token(c) and not UTILITY_CLASS_RE.match(c)
        ]
