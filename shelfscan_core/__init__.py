"""
shelfscan - adaptive product listing extraction with per-host learning
"""

__version__ = "0.3.0"

from .config import config
from .engine import ExtractionEngine, RunResult, RunSummary
from .extraction import extract
from .fingerprint import template_fingerprint
from .learning import ProfileStore, ProfileUpdate
from .miner import mine_candidates

__all__ = [
    'config',
    'ExtractionEngine',
    'RunResult',
    'RunSummary',
    'extract',
    'template_fingerprint',
    'ProfileStore',
    'ProfileUpdate',
    'mine_candidates',
]
