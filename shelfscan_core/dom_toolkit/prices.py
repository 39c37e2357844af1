"""
Price Detector - Recognize and Normalize Prices

Handles multiple price formats:
- Symbol prefixed ($19.99, US$ 5, CA$12, €50, £3)
- Currency codes before or after the amount (CAD 12.99, 12.99 USD)
- Sale phrasing ("Now $49.99", "From $50", "As low as $9")
- Ranges ($50 – $70 -> lower bound)

Anything that looks like a URL or a path is never a price.
"""

import re
from typing import Optional

from bs4 import Tag


_NUM = r'\d[\d,]*(?:\.\d{1,2})?'
_SYM = r'(?:US\$|CA\$|C\$|A\$|\$|€|£|¥)'

URL_FRAGMENT_RE = re.compile(r'https?://|www\.|/[A-Za-z0-9._-]', re.I)

RANGE_RE = re.compile(rf'({_SYM}\s*{_NUM})\s*[–—-]\s*{_SYM}?\s*{_NUM}')
PHRASE_RE = re.compile(rf'(?:now|from|as low as)\s*:?\s*({_SYM}\s*{_NUM})', re.I)
SYMBOL_RE = re.compile(rf'{_SYM}\s*{_NUM}')
SYMBOL_SUFFIX_RE = re.compile(rf'({_NUM})\s*(€|£)')
CODE_PREFIX_RE = re.compile(rf'\b(CAD|USD|AUD|CA|EUR|GBP)\s*({_NUM})', re.I)
CODE_SUFFIX_RE = re.compile(rf'({_NUM})\s*(CAD|USD|AUD|EUR|GBP)\b', re.I)
KEYWORD_RE = re.compile(rf'\b(?:price|msrp|sale)\s*:?\s*({_NUM})', re.I)

CURRENCY_TOKEN_RE = re.compile(r'(\$|€|£|¥|cad|usd|eur|gbp|msrp|from)', re.I)

_CODE_SYMBOLS = {
    'CAD': '$',
    'USD': '$',
    'AUD': '$',
    'CA': '$',
    'EUR': '€',
    'GBP': '£',
}

MAX_SCAN = 140


def _squash(value: str) -> str:
    return re.sub(r'\s+', '', value)


def normalize_price(text: Optional[str]) -> Optional[str]:
    """Return a compact price string or None when ``text`` holds no price."""
    if not text:
        return None
    if URL_FRAGMENT_RE.search(text):
        return None

    cleaned = re.sub(r'\s+', ' ', str(text)).strip()
    if not cleaned:
        return None

    m = RANGE_RE.search(cleaned)
    if m:
        return _squash(m.group(1))

    m = PHRASE_RE.search(cleaned)
    if m:
        return _squash(m.group(1))

    m = SYMBOL_RE.search(cleaned)
    if m:
        return _squash(m.group(0))

    m = SYMBOL_SUFFIX_RE.search(cleaned)
    if m:
        return m.group(1) + m.group(2)

    m = CODE_PREFIX_RE.search(cleaned)
    if m:
        return _CODE_SYMBOLS[m.group(1).upper()] + m.group(2)

    m = CODE_SUFFIX_RE.search(cleaned)
    if m:
        return _CODE_SYMBOLS[m.group(2).upper()] + m.group(1)

    m = KEYWORD_RE.search(cleaned)
    if m:
        return '$' + m.group(1)

    return None


def has_currency_token(text: str) -> bool:
    return bool(re.search(r'\d', text or '')) and bool(CURRENCY_TOKEN_RE.search(text or ''))


class PriceDetector:
    """
    Find prices inside parsed cards.
    """

    @staticmethod
    def scan_card(card: Tag, limit: int = MAX_SCAN) -> Optional[str]:
        """Bounded regex scan over the card's own text nodes."""
        strings = []
        for s in card.stripped_strings:
            strings.append(s)
            if len(strings) >= limit:
                break
        for s in strings:
            price = normalize_price(s)
            if price:
                return price
        return None
