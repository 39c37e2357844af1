#!/usr/bin/env python3
"""
Extraction engine - one run from page HTML to items plus a profile update.

Stages run strictly in order under the host lock:
1. FINGERPRINT/MINE - autodetect a listing container on the final HTML
2. PROFILE - best learned profile for the host (cold below the threshold)
3. DEFAULTS - per-kind selectors from the page classifier
4. FIELDS/BUCKETS - merge learned, mined, classified and assisted inputs
5. CASCADE - first bucket that yields items wins
6. POST-PROCESS - canonicalize, dedupe, rank
7. PERSIST - page/items JSONL, then profile upsert
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .classifier import classify_page, load_selectors_for_kind
from .config import config
from .diagnostics import get_logger
from .dom_selectors import DEFAULT_BROAD_SELECTORS
from .extraction.cascade import CascadeResult, ExtractionCascade
from .extraction.field_rules import FieldRule, normalize_field_rules
from .extraction.postprocess import postprocess_items
from .fetchers import PageFetcher, PlaywrightPageFetcher
from .fingerprint import template_fingerprint
from .learning.bucketize import bucketize_for_learning, is_anchorish, is_containerish, to_anchor_variant
from .learning.buckets import Buckets, unique
from .learning.assisted import AssistSuggestion, suggest_assistance
from .learning.profile_store import HostLocks, ProfileMatch, ProfileStore, ProfileUpdate, normalize_host
from .miner import CandidateMiner, MinedCandidates
from .storage import PageItemWriter

logger = get_logger(__name__)

ASSIST_MIN_CONFIDENCE = 0.7
ASSIST_CAPS = {"anchors": 60, "containers": 60, "candidates": 120}


@dataclass
class RunSummary:
    host: str
    profile_id: Optional[str]
    profile_score: int
    cold: bool
    winning_bucket: Optional[str]
    items: int
    precision: float
    source: str
    kind: str = "generic"
    fingerprint: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RunResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    summary: Optional[RunSummary] = None


def host_of(url: str) -> str:
    return urlparse(url or "").netloc


def precision_of(items: List[Dict[str, Any]]) -> float:
    """Share of items that carry both a title and an href."""
    if not items:
        return 0.0
    good = sum(1 for it in items if it.get("title") and it.get("href"))
    return good / len(items)


def merge_fields(
    classified: Dict[str, FieldRule],
    mined: Dict[str, FieldRule],
    learned: Dict[str, FieldRule],
) -> Dict[str, FieldRule]:
    """Later sources win: classified < mined < learned.

    A rule without selectors only fills a gap; it never shadows an earlier
    rule that names some.
    """
    merged: Dict[str, FieldRule] = {}
    for source in (classified, mined, learned):
        for name, rule in (source or {}).items():
            if rule.selectors or name not in merged:
                merged[name] = rule
    return merged


def build_buckets(
    learned: Buckets,
    mined: MinedCandidates,
    classified_list: List[str],
    cold: bool,
    assisted: Optional[Dict[str, List[str]]] = None,
) -> Buckets:
    """Ordered selector buckets to try for one run.

    A cold run never trusts the learned ``list`` bucket; everything else
    learned still leads its bucket.
    """
    primary = [mined.primary_selector] if mined.primary_selector else []
    auto = unique(primary + list(mined.candidates))

    buckets: Buckets = {
        "list": [] if cold else list(learned.get("list") or []),
        "anchors": unique(
            list(learned.get("anchors") or [])
            + [to_anchor_variant(s) for s in primary]
            + [s for s in auto if is_anchorish(s)]
        ),
        "containers": unique(
            list(learned.get("containers") or [])
            + [s for s in auto if is_containerish(s)]
        ),
        "broad": unique(list(learned.get("broad") or []) + DEFAULT_BROAD_SELECTORS),
        "candidates": unique(
            list(learned.get("candidates") or [])
            + auto
            + list(classified_list or [])
        ),
    }

    if assisted:
        for name, cap in ASSIST_CAPS.items():
            buckets[name] = unique(list(assisted.get(name) or []) + buckets[name])[:cap]
    return buckets


class ExtractionEngine:
    """
    Run the adaptive extraction pipeline for one page at a time.

    Usage:
        engine = ExtractionEngine(ProfileStore("learned.json").load())
        result = engine.process(url, html)
        result.items, result.summary.winning_bucket
    """

    def __init__(
        self,
        store: Optional[ProfileStore] = None,
        writer: Optional[PageItemWriter] = None,
        locks: Optional[HostLocks] = None,
        assist: Optional[bool] = None,
        cascade: Optional[ExtractionCascade] = None,
        fetcher: Optional[PageFetcher] = None,
        miner: Optional[CandidateMiner] = None,
    ):
        self.store = store if store is not None else ProfileStore().load()
        self.writer = writer
        self.locks = locks or HostLocks()
        self.assist = config.assist_enabled if assist is None else assist
        self.cascade = cascade or ExtractionCascade()
        self.fetcher = fetcher
        self.miner = miner or CandidateMiner()

    async def run(self, url: str) -> RunResult:
        """Fetch ``url`` and process it; FetchError propagates."""
        fetcher = self.fetcher or PlaywrightPageFetcher()
        page = await fetcher.fetch(url)
        return self.process(url, page.html, page.final_html)

    def process(self, url: str, html: str, final_html: Optional[str] = None) -> RunResult:
        host = host_of(url)
        with self.locks.for_host(host):
            return self._process(url, host, final_html or html or "")

    # ------------------------------------------------------------------ stages

    def _process(self, url: str, host: str, html: str) -> RunResult:
        fingerprint = template_fingerprint(html)
        mined = self.miner.mine(html, url)
        logger.debug("Mined %s via %s (confidence %.2f)", mined.primary_selector, mined.strategy, mined.confidence)

        match: ProfileMatch = self.store.get_best_profile(host, url, html)
        cold = match.score < config.cold_threshold
        logger.info(
            "Profile %s for %s (score %d%s)",
            match.profile.id if match.profile else "(none)", normalize_host(host), match.score,
            ", cold" if cold else "",
        )

        kind = classify_page(html, url, autodetect_confidence=mined.confidence).kind
        defaults = load_selectors_for_kind(kind)
        fields = merge_fields(
            normalize_field_rules(defaults.get("fields")),
            mined.fields,
            match.fields,
        )

        assisted_buckets = None
        if self.assist:
            suggestion = suggest_assistance(html, url, seeds=fields)
            self._apply_assist(fields, suggestion)
            assisted_buckets = suggestion.buckets

        buckets = build_buckets(match.buckets, mined, defaults.get("list") or [], cold, assisted_buckets)
        result: CascadeResult = self.cascade.run(html, buckets, fields, base_url=url)
        items = postprocess_items(result.items, url)
        precision = precision_of(items)
        logger.info(
            "Extracted %d items from %s (bucket=%s, source=%s, precision=%.0f%%)",
            len(items), url, result.winning_bucket, result.source, precision * 100,
        )

        if self.writer is not None:
            self.writer.write_page_once(url, html)
            if items:
                self.writer.write_items(items)

        learned = bucketize_for_learning(result.tried, result.winners)
        reuse = not cold and precision >= config.min_precision and match.profile is not None
        profile = self.store.upsert_profile(
            host,
            ProfileUpdate(
                buckets=learned,
                fields=fields,
                items=len(items),
                id=match.profile.id if reuse else None,
                url=url,
            ),
            html,
        )

        summary = RunSummary(
            host=normalize_host(host),
            profile_id=profile.id,
            profile_score=match.score,
            cold=cold,
            winning_bucket=result.winning_bucket,
            items=len(items),
            precision=precision,
            source=result.source,
            kind=kind,
            fingerprint=fingerprint,
        )
        return RunResult(items=items, summary=summary)

    @staticmethod
    def _apply_assist(fields: Dict[str, FieldRule], suggestion: AssistSuggestion) -> None:
        for name, suggested in suggestion.fields.items():
            if name not in fields and suggested.confidence >= ASSIST_MIN_CONFIDENCE:
                fields[name] = suggested.rule
        for note in suggestion.notes:
            logger.info("Assist: %s", note)


def process_page(url: str, html: str, store: Optional[ProfileStore] = None, **kwargs) -> RunResult:
    """One-shot helper around ExtractionEngine.process."""
    return ExtractionEngine(store=store, **kwargs).process(url, html)
