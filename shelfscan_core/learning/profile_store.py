"""
Profile Store - Remember What Worked per Host

Stores:
1. Per-host profiles (up to 8) of learned selector buckets
2. A match predicate per profile (path regex, query keys, template hash)
3. Learned field rules
4. Usage metrics (runs, average items, last seen)

Persists to a single JSON file, fully rewritten after every mutation.
"""

import json
import logging
import os
import re
import tempfile
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qsl, urlparse

from ..config import config
from ..exceptions import PersistenceError
from ..extraction.field_rules import FieldRule, normalize_field_rules, serialize_field_rules
from ..fingerprint import template_fingerprint
from .buckets import (
    BUCKET_CAPS,
    BUCKET_NAMES,
    Buckets,
    merge_unique,
    normalize_buckets,
    union_buckets,
)
from .hint_miner import mine_bucket_hints

logger = logging.getLogger(__name__)

MAX_PROFILES = 8

DEFAULT_PROFILE_ID = "default"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_host(host: str) -> str:
    """Host key: no scheme, port, path or ``www.``; one generic two-letter prefix dropped."""
    h = (host or "").strip().lower()
    h = re.sub(r'^[a-z][a-z0-9+.-]*://', '', h)
    h = h.split('/')[0].split('?')[0].split(':')[0]
    if h.startswith('www.'):
        h = h[4:]
    m = re.match(r'^[a-z]{2}\.(.+)$', h)
    if m and '.' in m.group(1):
        h = m.group(1)
    return h


def infer_match_hints(url: str) -> "MatchPredicate":
    """Path regex keeping the first segment literal; query keys sorted."""
    parsed = urlparse(url or "")
    segments = [s for s in parsed.path.split('/') if s]
    path_regex = None
    if segments:
        parts = [re.escape(segments[0])] + ['[^/]+'] * (len(segments) - 1)
        path_regex = '^/' + '/'.join(parts) + '$'
    keys = sorted({k for k, _ in parse_qsl(parsed.query, keep_blank_values=True)})
    return MatchPredicate(path_regex=path_regex, query_keys=keys)


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


@dataclass
class MatchPredicate:
    path_regex: Optional[str] = None
    query_keys: List[str] = field(default_factory=list)
    template_hash: Optional[str] = None

    def score(self, url: str, fingerprint: str) -> int:
        parsed = urlparse(url or "")
        s = 0
        if self.path_regex:
            try:
                if re.search(self.path_regex, parsed.path or "/"):
                    s += 2
            except (re.error, TypeError) as e:
                logger.debug("Invalid stored path regex %r: %s", self.path_regex, e)
        if self.query_keys:
            present = {k for k, _ in parse_qsl(parsed.query, keep_blank_values=True)}
            s += sum(1 for k in self.query_keys if k in present)
        if self.template_hash and self.template_hash == fingerprint:
            s += 3
        return s

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.path_regex:
            out["pathRegex"] = self.path_regex
        if self.query_keys:
            out["queryKeys"] = list(self.query_keys)
        if self.template_hash:
            out["templateHash"] = self.template_hash
        return out

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MatchPredicate":
        data = data if isinstance(data, dict) else {}
        keys = data.get("queryKeys") or []
        return cls(
            path_regex=_str_or_none(data.get("pathRegex")),
            query_keys=[str(k) for k in keys] if isinstance(keys, list) else [],
            template_hash=_str_or_none(data.get("templateHash")),
        )


@dataclass
class ProfileMetrics:
    runs: int = 0
    avg_items: int = 0
    last_seen: str = ""

    def record(self, items: int, now: str) -> None:
        self.runs += 1
        self.avg_items = round((self.avg_items * (self.runs - 1) + items) / self.runs)
        self.last_seen = now

    def to_dict(self) -> Dict[str, Any]:
        return {"runs": self.runs, "avgItems": self.avg_items, "lastSeen": self.last_seen}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProfileMetrics":
        data = data if isinstance(data, dict) else {}
        return cls(
            runs=int(data.get("runs") or 0),
            avg_items=int(data.get("avgItems") or 0),
            last_seen=str(data.get("lastSeen") or ""),
        )


@dataclass
class Profile:
    """Learned, host-scoped bundle of selector buckets."""
    id: str
    match: MatchPredicate = field(default_factory=MatchPredicate)
    buckets: Buckets = field(default_factory=dict)
    fields: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    metrics: ProfileMetrics = field(default_factory=ProfileMetrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "matchPredicate": self.match.to_dict(),
            "buckets": {name: list(self.buckets.get(name) or []) for name in BUCKET_NAMES},
            "fields": dict(self.fields),
            "metrics": self.metrics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        buckets = data.get("buckets") if isinstance(data.get("buckets"), dict) else {}
        # older records keep fields inside the bucket map
        raw_fields = data.get("fields") or buckets.get("fields") or {}
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex[:12]),
            match=MatchPredicate.from_dict(data.get("matchPredicate", data.get("match"))),
            buckets=normalize_buckets(buckets),
            fields=serialize_field_rules(normalize_field_rules(raw_fields if isinstance(raw_fields, dict) else {})),
            metrics=ProfileMetrics.from_dict(data.get("metrics")),
        )


@dataclass
class ProfileMatch:
    profile: Optional[Profile]
    buckets: Buckets
    fields: Dict[str, FieldRule]
    score: int


@dataclass
class ProfileUpdate:
    """What one extraction run wants to teach the store."""
    buckets: Dict[str, Any] = field(default_factory=dict)
    fields: Dict[str, Any] = field(default_factory=dict)
    items: int = 0
    id: Optional[str] = None
    match: Optional[MatchPredicate] = None
    url: Optional[str] = None


class ProfileStore:
    """
    Persisted, per-host collection of learned selector bundles.

    Process-wide state: load once, mutate through upsert_profile, every
    mutation rewrites the whole file. Callers serialize runs per host
    (see HostLocks); the store itself does not lock.
    """

    def __init__(self, path: Optional[str] = None, clock: Optional[Callable[[], str]] = None):
        self.path = Path(path) if path else Path(config.profile_path)
        self._clock = clock or _utcnow
        self._hosts: Dict[str, List[Profile]] = {}

    # ------------------------------------------------------------------ load/save

    def load(self) -> "ProfileStore":
        self._hosts = {}
        if not self.path.exists():
            return self
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Profile store %s unreadable, starting empty: %s", self.path, e)
            return self
        if not isinstance(data, dict):
            logger.warning("Profile store %s is not a JSON object, starting empty", self.path)
            return self

        for host, record in data.items():
            if not isinstance(record, dict):
                logger.warning("Dropping malformed record for host %s", host)
                continue
            if "profiles" not in record:
                try:
                    self._hosts[normalize_host(host)] = [self._migrate_legacy(record)]
                except (TypeError, ValueError) as e:
                    logger.warning("Dropping malformed legacy record for host %s: %s", host, e)
                continue
            entries = record.get("profiles") or []
            if not isinstance(entries, list):
                logger.warning("Dropping malformed profile list for host %s", host)
                continue
            profiles = []
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                try:
                    profiles.append(Profile.from_dict(entry))
                except (TypeError, ValueError) as e:
                    logger.warning("Dropping malformed profile %r for host %s: %s", entry.get("id"), host, e)
            self._hosts[normalize_host(host)] = profiles[-MAX_PROFILES:]
        logger.debug("Loaded %d host(s) from %s", len(self._hosts), self.path)
        return self

    def _migrate_legacy(self, record: Dict[str, Any]) -> Profile:
        return Profile(
            id=DEFAULT_PROFILE_ID,
            buckets=normalize_buckets(record),
            fields=serialize_field_rules(normalize_field_rules(record.get("fields") or {})),
            metrics=ProfileMetrics(last_seen=self._clock()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {host: {"profiles": [p.to_dict() for p in profiles]} for host, profiles in self._hosts.items()}

    def flush(self) -> None:
        """Rewrite the whole store; raises PersistenceError (retryable) on failure."""
        payload = json.dumps(self.to_dict(), ensure_ascii=False, indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".learned-", suffix=".tmp", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(self.path, e) from e

    # ------------------------------------------------------------------ queries

    def hosts(self) -> List[str]:
        return list(self._hosts.keys())

    def profiles_for(self, host: str) -> List[Profile]:
        return list(self._hosts.get(normalize_host(host), []))

    def get_best_profile(self, host: str, url: str, html: str) -> ProfileMatch:
        """Best matching profile for the page; ties go to stored order."""
        profiles = self._hosts.get(normalize_host(host)) or []
        if not profiles:
            return ProfileMatch(profile=None, buckets={}, fields={}, score=0)

        fingerprint = template_fingerprint(html)
        best: Optional[Profile] = None
        best_score = -1
        for p in profiles:
            sc = p.match.score(url, fingerprint)
            if sc > best_score:
                best, best_score = p, sc

        return ProfileMatch(
            profile=best,
            buckets=normalize_buckets(best.buckets),
            fields=normalize_field_rules(best.fields),
            score=best_score,
        )

    def get_learned_for_host(self, host: str) -> Optional[Dict[str, Any]]:
        """Buckets and fields of the most recently appended profile."""
        profiles = self._hosts.get(normalize_host(host)) or []
        if not profiles:
            return None
        p = profiles[-1]
        learned: Dict[str, Any] = dict(normalize_buckets(p.buckets))
        learned["fields"] = dict(p.fields)
        return learned

    # ------------------------------------------------------------------ mutation

    def upsert_profile(self, host: str, update: ProfileUpdate, html: str = "") -> Profile:
        """Merge one run into its profile (created if needed) and persist.

        The in-memory store is updated before the write; a PersistenceError
        leaves it updated and ``flush()`` can be retried.
        """
        key = normalize_host(host)
        profiles = self._hosts.setdefault(key, [])
        now = self._clock()

        profile = None
        if update.id:
            profile = next((p for p in profiles if p.id == update.id), None)

        if profile is None:
            profile = self._create_profile(profiles, update, html, now)

        mined = normalize_buckets(mine_bucket_hints(html)) if html else {}
        incoming = normalize_buckets(union_buckets(update.buckets or {}, mined))
        current = normalize_buckets(profile.buckets)

        merged: Buckets = {}
        for name in BUCKET_NAMES:
            if name == "list" and update.items <= 0:
                # a failed run never erases a working list selector
                merged[name] = current[name]
                continue
            merged[name] = merge_unique(current[name], incoming[name], BUCKET_CAPS[name])
        profile.buckets = merged

        new_fields = serialize_field_rules(normalize_field_rules(update.fields))
        profile.fields = {**profile.fields, **new_fields}
        profile.metrics.record(update.items, now)

        logger.debug(
            "Upserted profile %s for %s (runs=%d, avgItems=%d)",
            profile.id, key, profile.metrics.runs, profile.metrics.avg_items,
        )
        self.flush()
        return profile

    def _create_profile(self, profiles: List[Profile], update: ProfileUpdate, html: str, now: str) -> Profile:
        match = MatchPredicate()
        if update.url:
            match = infer_match_hints(update.url)
        if update.match:
            match.path_regex = update.match.path_regex or match.path_regex
            match.query_keys = update.match.query_keys or match.query_keys
            match.template_hash = update.match.template_hash
        if not match.template_hash and html:
            match.template_hash = template_fingerprint(html)

        profile = Profile(
            id=update.id or uuid.uuid4().hex[:12],
            match=match,
            buckets={},
            metrics=ProfileMetrics(last_seen=now),
        )

        if len(profiles) >= MAX_PROFILES:
            evicted = min(profiles, key=lambda p: p.metrics.last_seen)
            profiles.remove(evicted)
            logger.info("Evicted least recently seen profile %s", evicted.id)

        profiles.append(profile)
        return profile

    def save_learned_for_host(self, host: str, payload: Dict[str, Any]) -> Profile:
        """Legacy surface: merge a flat bucket payload into the ``default`` profile."""
        buckets = {name: payload.get(name) for name in BUCKET_NAMES if payload.get(name)}
        return self.upsert_profile(
            host,
            ProfileUpdate(
                id=DEFAULT_PROFILE_ID,
                buckets=buckets,
                fields=payload.get("fields") or {},
                items=int(payload.get("items") or 0),
            ),
            "",
        )


class HostLocks:
    """One lock per normalized host; runs against the same host are serialized.

    Locks are never released: the map holds one entry per host seen for the
    lifetime of the instance. A long-lived crawler over an open-ended host
    set should scope one HostLocks per batch.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def for_host(self, host: str) -> threading.Lock:
        key = normalize_host(host)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def __len__(self) -> int:
        return len(self._locks)
