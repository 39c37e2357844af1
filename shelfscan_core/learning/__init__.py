"""
Learning - per-host memory of selectors that worked.
"""

from .buckets import BUCKET_CAPS, BUCKET_NAMES, normalize_buckets
from .bucketize import bucketize_for_learning
from .hint_miner import mine_bucket_hints
from .profile_store import (
    HostLocks,
    MatchPredicate,
    Profile,
    ProfileMatch,
    ProfileStore,
    ProfileUpdate,
    normalize_host,
)
from .assisted import AssistSuggestion, suggest_assistance

__all__ = [
    'BUCKET_CAPS',
    'BUCKET_NAMES',
    'normalize_buckets',
    'bucketize_for_learning',
    'mine_bucket_hints',
    'HostLocks',
    'MatchPredicate',
    'Profile',
    'ProfileMatch',
    'ProfileStore',
    'ProfileUpdate',
    'normalize_host',
    'AssistSuggestion',
    'suggest_assistance',
]
