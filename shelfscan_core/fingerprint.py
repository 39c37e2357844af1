"""
Template fingerprint - cheap structural signature of an HTML document.

The signature is a coarse, collision-tolerant key: two renders of the same
listing template usually produce the same string, unrelated pages usually
do not. It is a similarity hint, never an identity key.

Format: c{cards}-d{density}-da{dataAttrs}-ld{0|1}-{topSig}
"""

import re

_CARD_VOCAB_RE = re.compile(r'\b(card|tile|result|entry|product|item|grid__item)\b', re.I)
_CLASS_OR_ID_RE = re.compile(r'\s(?:class|id)\s*=\s*(?:"([^"]*)"|\'([^\']*)\')', re.I)
_DATA_ATTR_RE = re.compile(r'\sdata-[a-z0-9_-]+', re.I)
_LD_RE = re.compile(r'application/ld\+json', re.I)
_ANCHOR_RE = re.compile(r'<a\b[^>]*\shref\s*=', re.I)
_DIV_RE = re.compile(r'<div\b', re.I)
_TOP_WRAP_RE = re.compile(r'<(main|body)\b[^>]*\sclass\s*=\s*["\']([^"\']+)["\']', re.I)


def count_card_elements(html: str) -> int:
    """Elements whose class or id tokens hit the card vocabulary."""
    count = 0
    for m in _CLASS_OR_ID_RE.finditer(html):
        value = m.group(1) if m.group(1) is not None else m.group(2)
        if value and _CARD_VOCAB_RE.search(value):
            count += 1
    return count


def anchor_density(html: str) -> int:
    anchors = len(_ANCHOR_RE.findall(html))
    divs = max(1, len(_DIV_RE.findall(html)))
    return min(999, round(1000 * anchors / divs))


def top_signature(html: str) -> str:
    m = _TOP_WRAP_RE.search(html)
    if not m:
        return ""
    return "-".join(m.group(2).split()[:2]).lower()


def template_fingerprint(html: str) -> str:
    html = html or ""
    cards = count_card_elements(html)
    data_attrs = len(_DATA_ATTR_RE.findall(html))
    ld = 1 if _LD_RE.search(html) else 0
    return f"c{cards}-d{anchor_density(html)}-da{data_attrs}-ld{ld}-{top_signature(html)}"
