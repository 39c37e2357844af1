#!/usr/bin/env python3
"""
shelfscan CLI - adaptive catalog extraction

Usage:
    shelfscan run <url> [--static] [--no-headless] [--assist]
    shelfscan extract <page.html> --url <url>
    shelfscan profiles <host>
    shelfscan mine <page.html> --url <url>
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .config import config
from .diagnostics import enable_diagnostics, get_logger
from .engine import ExtractionEngine, RunResult
from .exceptions import ShelfscanError
from .extraction.field_rules import serialize_field_rules
from .fetchers import PlaywrightPageFetcher, RequestsPageFetcher
from .learning.profile_store import ProfileStore
from .miner import mine_candidates
from .storage import PageItemWriter

logger = get_logger(__name__)


def _configure_diagnostics(args):
    if getattr(args, "debug", False) or config.enable_debug:
        enable_diagnostics("DEBUG")
    elif getattr(args, "quiet", False):
        enable_diagnostics("ERROR")
    else:
        enable_diagnostics("INFO")


def _read_html(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ShelfscanError(f"Cannot read {path}: {e}") from e


def _print_result(result: RunResult, output: str = None):
    payload = {
        "summary": result.summary.to_dict() if result.summary else None,
        "items": [{k: v for k, v in it.items() if not k.startswith("_")} for it in result.items],
    }
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        logger.info(f"Result written to: {output}")
    else:
        print(text)


def _engine(args, fetcher=None) -> ExtractionEngine:
    store = ProfileStore(args.store).load() if args.store else ProfileStore().load()
    writer = PageItemWriter(args.workspace) if not args.no_write else None
    return ExtractionEngine(store=store, writer=writer, assist=args.assist or None, fetcher=fetcher)


def cmd_run(args):
    """Fetch a listing page and extract items"""
    _configure_diagnostics(args)
    if args.static:
        fetcher = RequestsPageFetcher()
    else:
        fetcher = PlaywrightPageFetcher(headless=not args.no_headless)
    try:
        engine = _engine(args, fetcher)
        result = asyncio.run(engine.run(args.url))
    except ShelfscanError as e:
        logger.error(f"Run failed: {e}")
        return 1
    _print_result(result, args.output)
    return 0


def cmd_extract(args):
    """Extract items from a saved HTML file"""
    _configure_diagnostics(args)
    try:
        html = _read_html(args.html)
        result = _engine(args).process(args.url, html)
    except ShelfscanError as e:
        logger.error(f"Extraction failed: {e}")
        return 1
    _print_result(result, args.output)
    return 0


def cmd_profiles(args):
    """Show learned profiles for a host"""
    enable_diagnostics("WARNING")
    store = ProfileStore(args.store).load() if args.store else ProfileStore().load()
    profiles = store.profiles_for(args.host)
    if not profiles:
        print(f"No profiles for {args.host}")
        return 1
    print(json.dumps([p.to_dict() for p in profiles], indent=2, ensure_ascii=False))
    return 0


def cmd_mine(args):
    """Show what the candidate miner finds in a saved HTML file"""
    _configure_diagnostics(args)
    try:
        html = _read_html(args.html)
    except ShelfscanError as e:
        logger.error(e)
        return 1
    mined = mine_candidates(html, args.url)
    print(json.dumps({
        "primary": mined.primary_selector,
        "strategy": mined.strategy,
        "confidence": mined.confidence,
        "candidates": mined.candidates,
        "scored": mined.scored,
        "fields": serialize_field_rules(mined.fields),
    }, indent=2, ensure_ascii=False))
    return 0 if mined.found else 1


def _add_common(p: argparse.ArgumentParser, writes: bool = True):
    p.add_argument('--store', help='Profile store JSON (default: SHELFSCAN_PROFILE_PATH)')
    p.add_argument('--debug', action='store_true', help='Debug logging')
    p.add_argument('--quiet', '-q', action='store_true', help='Quiet mode')
    if writes:
        p.add_argument('--workspace', help='Directory for pages/items JSONL (default: SHELFSCAN_WORKSPACE)')
        p.add_argument('--no-write', action='store_true', help='Do not write pages/items JSONL')
        p.add_argument('--assist', action='store_true', help='Enable assisted field suggestions')
        p.add_argument('--output', '-o', help='Output file for results')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shelfscan",
        description="shelfscan - adaptive product listing extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    run_parser = subparsers.add_parser('run', help='Fetch a URL and extract items')
    run_parser.add_argument('url', help='Listing page URL')
    run_parser.add_argument('--static', action='store_true', help='Plain HTTP fetch, no browser')
    run_parser.add_argument('--no-headless', action='store_true', help='Show the browser window')
    _add_common(run_parser)
    run_parser.set_defaults(func=cmd_run)

    extract_parser = subparsers.add_parser('extract', help='Extract items from a saved HTML file')
    extract_parser.add_argument('html', help='Path to HTML file')
    extract_parser.add_argument('--url', required=True, help='URL the HTML was fetched from')
    _add_common(extract_parser)
    extract_parser.set_defaults(func=cmd_extract)

    profiles_parser = subparsers.add_parser('profiles', help='Show learned profiles for a host')
    profiles_parser.add_argument('host', help='Host name, e.g. shop.example.com')
    profiles_parser.add_argument('--store', help='Profile store JSON (default: SHELFSCAN_PROFILE_PATH)')
    profiles_parser.set_defaults(func=cmd_profiles)

    mine_parser = subparsers.add_parser('mine', help='Run the candidate miner on a saved HTML file')
    mine_parser.add_argument('html', help='Path to HTML file')
    mine_parser.add_argument('--url', default='', help='URL the HTML was fetched from')
    _add_common(mine_parser, writes=False)
    mine_parser.set_defaults(func=cmd_mine)

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
