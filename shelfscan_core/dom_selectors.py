"""
DOM Selectors - Centralized selector definitions for catalog extraction

Instead of hardcoding selectors throughout the codebase, import them from here.
This allows for:
1. Easy maintenance and updates
2. Consistent selector patterns across miner, cascade and resolvers
3. One place to extend vocabularies when a new markup family shows up

Usage:
    from shelfscan_core.dom_selectors import ITEMISH_SELECTORS, PRICE_SELECTORS
"""

import re
from typing import Dict, List


# =============================================================================
# LISTING STRUCTURE
# =============================================================================

# "product-ish" nodes inside a listing container
ITEMISH_SELECTORS = [
    '[data-product-id]',
    '[data-product]',
    '.product-card',
    '.product',
    '.card',
    '.grid__item',
    '.collection-product',
    '.productGrid .card',
    '.productGrid .product',
]

# hrefs that point at product detail pages
PRODUCT_HREF_HINTS = [
    re.compile(r'/product', re.I),
    re.compile(r'/products?/', re.I),
    re.compile(r'item', re.I),
    re.compile(r'sku', re.I),
]

# typical filter/facet containers
FILTER_HINTS = [
    '.facets',
    '.facets__wrapper',
    '.filters',
    '.collection-filters',
    '[data-filters]',
    '.sidebar',
    '.collection-sidebar',
]

SIDEBAR_CLASS_RE = re.compile(r'\b(sidebar|col-2|col-md-3|facets|filters)\b', re.I)

# areas the miner must never pick as a listing container
MINER_BAD_WRAPPERS = [
    'header',
    'footer',
    'nav',
    'form',
    '.breadcrumbs',
    "[role='navigation']",
    "[role='banner']",
    '.newsletter',
    '.subscribe',
    '.pagination',
]

MINER_BAD_CLASS_RE = re.compile(r'footer|header|navbar|topbar|breadcrumb|newsletter', re.I)

MINER_ROOTS = 'main, .content, .container, .page-width, body'

MINER_SCAN_TAGS = 'div, ul, section'

HEADING_SELECTORS = 'h1,h2,h3,h4,.card-title,.product-title'


# =============================================================================
# CASCADE SCORING
# =============================================================================

# site chrome; items found inside are penalized
CHROME_WRAPPERS = [
    'header',
    'footer',
    'nav',
    '.breadcrumbs',
    '.hero',
    '.carousel',
    '.slick-slider',
    '.owl-carousel',
    "[role='banner']",
    '.site-header',
    '.announcement-bar',
    '[data-sticky]',
]

# listing grids; items found inside are rewarded
PRODUCTISH_CONTAINERS = [
    '.productGrid',
    '.product-grid',
    '[data-product-grid]',
    '.card-grid',
    '.products',
]

# wrappers a matched node is tightened to
PRODUCT_CARD_WRAPPERS = [
    '.product-card',
    '.product-grid__card',
    "[data-testid='product-card']",
    '[data-product-position]',
    '[data-product]',
    '[data-item]',
    '[data-sku]',
    "[itemscope][itemtype*='Product']",
    '.grid__item',
    '.card',
    '.product',
    '.product-tile',
]

# buckets always offered after the learned broad selectors
DEFAULT_BROAD_SELECTORS = [
    "a[href*='/product']",
    "a[href*='/products/']",
]


# =============================================================================
# FIELD SELECTORS
# =============================================================================

# fast-path selectors used when a field rule names none
FIELD_DEFAULT_SELECTORS: Dict[str, List[str]] = {
    'title': [
        "[itemprop='name']",
        'h1', 'h2', 'h3', 'h4',
        "[class*='title']",
        "[class*='name']",
    ],
    'href': ['', 'a[href]'],
    'image': ['img', 'picture source', ''],
    'price': [
        "[itemprop='price']",
        '.price',
        "[class*='price']",
        '[data-price]',
    ],
    'description': [
        "[itemprop='description']",
        '.description',
        '.product-description',
    ],
}

# attribute priority when a rule names no attribute
ATTRIBUTE_PRIORITY = ['href', 'src', 'data-src', 'data-srcset', 'content']

IMAGE_ATTRIBUTE_PRIORITY = ['src', 'data-src', 'data-srcset', 'srcset', 'content']

PRICE_ATTRIBUTE_PRIORITY = ['content', 'data-price', 'data-price-amount']

TITLE_SELECTORS = [
    '.product-card__title',
    '.card__heading a',
    '.card__heading',
    '.product-title',
    'a.full-unstyled-link',
    'h3 a', 'h3',
    '.card-title a', '.card-title',
    '.tile-title a', '.tile-title',
    '.product-item__title a', '.product-item__title',
]

PRODUCT_LINK_SELECTORS = "a[href*='/product'], a[href*='/products/']"

IMAGE_NODE_SELECTORS = 'img[srcset], img[data-srcset], img[src], img[data-src]'

PRICE_SELECTORS = [
    '[data-price]',
    '[data-price-amount]',
    "[itemprop='price']",
    "[data-testid*='price']",
    '.price', '.prices',
    '.price__current', '.price__value',
    '.price--main', '.price--large',
    '.product-price', '.product__price', '.product-card__price', '.product-price__price',
    '.money', '.amount',
]

PRICE_LINK_SELECTORS = "a:has(.price), a:has([itemprop='price']), a:has(.money)"

# repeated price markers the miner looks for inside its primary scope
PRICE_HINTS = [
    '.price',
    '.product-price',
    '.product-price__wrapper',
    '.price__sale',
    '.price__regular',
    "[data-test='product-price']",
    "[data-test='product-card-price']",
    "[class*='price']",
]

DESCRIPTION_SELECTORS = '.subtitle, .product-card__subtitle, .card__subtitle, p'

DESCRIPTION_NEAR_TITLE = 'h3, .card__heading, .product-card__title'

CTA_TEXT_RE = re.compile(r'add to cart|wishlist|compare|quick view|view details', re.I)

META_DESCRIPTION_SELECTORS = ["meta[name='description']", "meta[property='og:description']"]


# =============================================================================
# STRUCTURED DATA
# =============================================================================

LD_JSON_SELECTOR = "script[type='application/ld+json']"

MICRODATA_PRODUCT_SELECTOR = "[itemtype*='schema.org/Product'], [typeof*='schema.org/Product']"

# generic candidates every page contributes to the learned buckets
GENERIC_CANDIDATES = [
    '[data-product]',
    '[data-item]',
    '[data-sku]',
    "[itemscope][itemtype*='Product']",
]
