"""
DOM Toolkit - Parsed-HTML helpers shared by the miner and the cascade

Architecture:
1. Query primitive - guarded selector evaluation (SelectResult)
2. Selectors - stable selector derivation and cleanup
3. Prices - price recognition and normalization
4. Structured data - JSON-LD product records
"""

from .query import (
    SelectResult,
    parse_html,
    safe_select,
    select_first,
    matches,
    closest,
    has_ancestor,
    find_any,
    text_of,
    element_children,
    class_tokens,
)
from .selectors import (
    SelectorGenerator,
    css_escape,
    strip_hashed_classes,
    selector_specificity,
    simplicity,
)
from .prices import PriceDetector, normalize_price, has_currency_token
from .structured_data import page_products, product_to_item, load_blocks

__all__ = [
    # Query
    'SelectResult',
    'parse_html',
    'safe_select',
    'select_first',
    'matches',
    'closest',
    'has_ancestor',
    'find_any',
    'text_of',
    'element_children',
    'class_tokens',
    # Selectors
    'SelectorGenerator',
    'css_escape',
    'strip_hashed_classes',
    'selector_specificity',
    'simplicity',
    # Prices
    'PriceDetector',
    'normalize_price',
    'has_currency_token',
    # Structured data
    'page_products',
    'product_to_item',
    'load_blocks',
]
