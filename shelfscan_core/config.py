#!/usr/bin/env python3
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

_WORKSPACE = os.getenv("SHELFSCAN_WORKSPACE", "./storage")


@dataclass
class Config:
    """Application configuration"""
    workspace: Path = Path(_WORKSPACE)
    profile_path: Path = Path(os.getenv("SHELFSCAN_PROFILE_PATH", os.path.join(_WORKSPACE, "learned.json")))
    selectors_dir: Optional[str] = os.getenv("SHELFSCAN_SELECTORS_DIR") or None
    enable_debug: bool = os.getenv("SHELFSCAN_DEBUG", "false").lower() == "true"

    # Page fetching (collaborator)
    headless: bool = os.getenv("SHELFSCAN_HEADLESS", "true").lower() == "true"
    navigation_timeout_ms: int = int(os.getenv("SHELFSCAN_NAV_TIMEOUT_MS", "25000"))
    settle_ms: int = int(os.getenv("SHELFSCAN_SETTLE_MS", "1000"))
    user_agent: str = os.getenv(
        "SHELFSCAN_USER_AGENT",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    )

    # Extraction
    max_items: int = int(os.getenv("SHELFSCAN_MAX_ITEMS", "150"))

    # Learning: a profile match below this score counts as a cold start
    cold_threshold: int = int(os.getenv("SHELFSCAN_COLD_THRESHOLD", "2"))
    # Runs below this precision write into a fresh profile instead of the matched one
    min_precision: float = float(os.getenv("SHELFSCAN_MIN_PRECISION", "0.5"))
    assist_enabled: bool = os.getenv("SHELFSCAN_ASSIST", "false").lower() in ["true", "1", "yes"]


config = Config()
