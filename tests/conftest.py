import json

import pytest


LISTING_URL = "https://shop.example.com/collections/shoes"


def _card(i: int) -> str:
    return f"""
      <div class="product-card">
        <a href="/products/trail-runner-{i}"><img src="/img/runner-{i}.jpg" alt="Trail Runner {i}"></a>
        <h3 class="product-card__title">Trail Runner {i}</h3>
        <span class="price">$19.99</span>
      </div>"""


def listing_html(count: int = 8) -> str:
    cards = "".join(_card(i) for i in range(1, count + 1))
    return f"""<!doctype html>
<html><head><title>Shoes</title></head>
<body>
  <header class="site-header">
    <nav>
      <a href="/">Home</a><a href="/collections/all">Shop</a>
      <a href="/pages/about">About</a><a href="/pages/contact">Contact</a>
    </nav>
  </header>
  <main>
    <h1>Shoes</h1>
    <div class="product-grid">{cards}
    </div>
  </main>
  <footer class="site-footer">
    <a href="/policies/privacy">Privacy</a><a href="/policies/terms">Terms</a>
    <a href="/pages/shipping">Shipping</a><a href="/pages/returns">Returns</a>
  </footer>
</body></html>"""


def item_list_html(count: int = 5) -> str:
    products = [
        {
            "@type": "ListItem",
            "position": i,
            "item": {
                "@type": "Product",
                "name": f"Camp Stove {i}",
                "url": f"https://outdoor.example.com/p/camp-stove-{i}",
                "image": f"https://outdoor.example.com/img/stove-{i}.jpg",
                "offers": {"@type": "Offer", "price": f"{40 + i}.00", "priceCurrency": "USD"},
            },
        }
        for i in range(1, count + 1)
    ]
    blob = {"@context": "https://schema.org", "@type": "ItemList", "itemListElement": products}
    return f"""<html><head>
<script type="application/ld+json">{json.dumps(blob)}</script>
<script type="application/ld+json">{{ not valid json </script>
</head><body><main><p>Loading the catalog</p></main></body></html>"""


URL_PRICE_HTML = """<html><body><main>
  <div class="product-grid">
    <div class="product-card">
      <a href="/products/abc-123"><h3>Widget</h3></a>
      <span class="price">/products/abc-123</span>
    </div>
  </div>
</main></body></html>"""


@pytest.fixture
def listing_page():
    return listing_html()


@pytest.fixture
def item_list_page():
    return item_list_html()


@pytest.fixture
def url_price_page():
    return URL_PRICE_HTML


@pytest.fixture
def listing_url():
    return LISTING_URL


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "learned.json"


@pytest.fixture
def fixed_clock():
    """Clock returning strictly increasing ISO-like timestamps."""
    ticks = {"n": 0}

    def _now():
        ticks["n"] += 1
        return f"2024-01-01T00:00:{ticks['n']:02d}+00:00"

    return _now
