#!/usr/bin/env python3
"""
JSONL sinks for fetched pages and extracted items.

Layout under the writer directory:
- pages.jsonl       one ``{url, ts}`` record per distinct page URL
- pages.html.jsonl  one ``{url, html}`` record per distinct page URL
- items.jsonl       one record per extracted item (public fields only)
"""

import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set

from .config import config
from .extraction.postprocess import public_fields

logger = logging.getLogger(__name__)


def _url_key(url: str) -> str:
    return hashlib.sha1((url or "").encode("utf-8")).hexdigest()


class PageItemWriter:
    """Append-only writer; each page URL is recorded once per writer directory."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory) if directory else Path(config.workspace)
        self.pages_path = self.directory / "pages.jsonl"
        self.pages_html_path = self.directory / "pages.html.jsonl"
        self.items_path = self.directory / "items.jsonl"
        self._counts = {"pages": 0, "pages_html": 0, "items": 0}
        self._seen: Optional[Set[str]] = None

    def _ensure_dir(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def _load_seen(self) -> Set[str]:
        if self._seen is not None:
            return self._seen
        seen: Set[str] = set()
        if self.pages_path.exists():
            with open(self.pages_path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        rec = json.loads(line)
                    except json.JSONDecodeError:
                        logger.debug("Skipping malformed line in %s", self.pages_path)
                        continue
                    if isinstance(rec, dict) and rec.get("url"):
                        seen.add(_url_key(rec["url"]))
        self._seen = seen
        return seen

    def _append(self, path: Path, record: Dict[str, Any]) -> None:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")

    def write_page_once(self, url: str, html: str) -> bool:
        """Record the page; returns False when the URL was already written."""
        seen = self._load_seen()
        key = _url_key(url)
        if key in seen:
            return False
        self._ensure_dir()
        ts = datetime.now().isoformat(timespec="seconds")
        self._append(self.pages_path, {"url": url, "ts": ts})
        self._counts["pages"] += 1
        self._append(self.pages_html_path, {"url": url, "html": html or ""})
        self._counts["pages_html"] += 1
        seen.add(key)
        return True

    def write_items(self, items: Iterable[Dict[str, Any]]) -> int:
        written = 0
        self._ensure_dir()
        with open(self.items_path, "a", encoding="utf-8") as f:
            for item in items:
                f.write(json.dumps(public_fields(item), ensure_ascii=False) + "\n")
                written += 1
        self._counts["items"] += written
        return written

    def stats(self) -> Dict[str, int]:
        return dict(self._counts)
