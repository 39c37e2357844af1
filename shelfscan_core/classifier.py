"""
Page classifier - coarse platform family of a page plus the static
per-kind default selectors that go with it.

Kinds: shopify, bigcommerce, woocommerce, retail, docs, blog, generic.
Per-kind defaults live in ``selectors/<kind>.yaml`` (package data, or the
directory named by SHELFSCAN_SELECTORS_DIR).
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .config import config

logger = logging.getLogger(__name__)

PAGE_KINDS = ("shopify", "bigcommerce", "woocommerce", "retail", "docs", "blog", "generic")

KNOWN_RETAIL_DOMAINS = [
    # big global
    "adidas.", "nike.", "puma.", "reebok.", "underarmour.", "lululemon.",
    # sports / outdoor
    "mec.ca", "rei.com", "decathlon.", "basspro.", "cabelas.",
    # electronics
    "bestbuy.", "mediamarkt.", "fnac.",
    # fashion
    "zara.", "hm.com", "uniqlo.", "asos.", "shein.",
]

RETAIL_PATH_HINTS = [
    "/men", "/women", "/kids", "/girls", "/boys",
    "/sale", "/outlet", "/new", "/new-arrivals",
    "/collections", "/collection", "/category", "/shop",
    "/products", "/product",
]

SHOPIFY_RE = re.compile(r'x-shopify|data-shopify|shopify-section-|cdn\.shopify\.com')
BIGCOMMERCE_RE = re.compile(r'stencil-utils|mybigcommerce|data-bc|data-theme="bigcommerce"')
WOOCOMMERCE_RE = re.compile(r'woocommerce|wc_add_to_cart|/product-category/|wp-content/plugins/woocommerce')
RETAIL_URL_RE = re.compile(r'/category/|/en/c/|/c/[a-z0-9-]+|/cart\b|/checkout\b')
DOCS_RE = re.compile(r'\bdocs?\b|developer|readthedocs|docusaurus|mkdocs')
BLOG_RE = re.compile(r'blog|news|article|post|medium\.com|ghost\.io')
RETAIL_CONTENT_RE = re.compile(r'add-to-cart|cart|variant|sku|price|product|shop|collection|category', re.I)

_PACKAGE_SELECTORS_DIR = Path(__file__).parent / "selectors"


@dataclass
class PageClassification:
    kind: str
    confidence: float


def classify_page(html: str, url: str, autodetect_confidence: Optional[float] = None) -> PageClassification:
    """Ordered rules; the first hit decides."""
    u = (url or "").lower()
    combo = u + (html or "").lower()

    if autodetect_confidence is not None and autodetect_confidence >= 0.85:
        return PageClassification("generic", 0.2)

    if SHOPIFY_RE.search(combo):
        return PageClassification("shopify", 0.95)
    if BIGCOMMERCE_RE.search(combo):
        return PageClassification("bigcommerce", 0.9)
    if WOOCOMMERCE_RE.search(combo):
        return PageClassification("woocommerce", 0.9)

    if any(d in u for d in KNOWN_RETAIL_DOMAINS):
        return PageClassification("retail", 0.85)
    if RETAIL_URL_RE.search(u):
        return PageClassification("retail", 0.8)
    if any(p in u for p in RETAIL_PATH_HINTS):
        return PageClassification("retail", 0.75)

    if DOCS_RE.search(combo):
        return PageClassification("docs", 0.9)
    if BLOG_RE.search(combo):
        return PageClassification("blog", 0.85)
    if RETAIL_CONTENT_RE.search(combo):
        return PageClassification("retail", 0.6)

    return PageClassification("generic", 0.3)


def _selectors_dir(directory: Optional[str]) -> Path:
    if directory:
        return Path(directory)
    if config.selectors_dir:
        return Path(config.selectors_dir)
    return _PACKAGE_SELECTORS_DIR


def load_selectors_for_kind(kind: str, directory: Optional[str] = None) -> Dict[str, Any]:
    """``{list: [...], fields: {...}}`` for ``kind``; missing or invalid files give ``{}``."""
    if kind not in PAGE_KINDS:
        return {}
    path = _selectors_dir(directory) / f"{kind}.yaml"
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not load default selectors for %s from %s: %s", kind, path, e)
        return {}
    if not isinstance(data, dict):
        return {}

    out: Dict[str, Any] = {}
    lst = data.get("list")
    if isinstance(lst, str):
        lst = [lst]
    if isinstance(lst, list):
        out["list"] = [str(s) for s in lst if s]
    if isinstance(data.get("fields"), dict):
        out["fields"] = data["fields"]
    return out
