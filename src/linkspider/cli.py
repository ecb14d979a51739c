"""
Command-line interface for the link and anchor checker.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from linkspider.config import ConfigError, SpiderConfig, load_config
from linkspider.core import InvalidSeedUrl, Spider


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkspider",
        description="Crawl a site and verify that links, #fragments and page titles are intact.",
    )
    parser.add_argument("url", help="Seed URL (e.g. https://example.com/)")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--exclude", action="append", default=[], metavar="PATTERN",
                        help="Do not fetch URLs matching this glob (or re:REGEX); repeatable")
    parser.add_argument("--include", action="append", default=[], metavar="PATTERN",
                        help="Only fetch URLs matching this glob (or re:REGEX); repeatable")
    parser.add_argument("--additional-path", action="append", default=[], metavar="PATH",
                        help="Extra entry-point path to queue; repeatable")
    parser.add_argument("--title-pattern", metavar="REGEX", help="Regex every page title must match")
    parser.add_argument("--report-spool-interval", type=int, metavar="MS",
                        help="List in-flight URLs every MS milliseconds (0 disables)")
    parser.add_argument("--strict-ciphers", action="store_true", default=None,
                        help="Keep the default TLS cipher list")
    parser.add_argument("--ignore-invalid-ssl", action="store_true", default=None,
                        help="Do not verify TLS certificates")
    parser.add_argument("--max-concurrency", type=int, help="Parallel fetches (default: 5)")
    parser.add_argument("--max-depth", type=int, help="Maximum link depth, 0 for unlimited (default: 0)")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (default: 30)")
    parser.add_argument("--user-agent", help="User-Agent header")
    parser.add_argument("--ignore-robots", action="store_true", help="Do not honour robots.txt")
    parser.add_argument("--verbose", action="store_true", help="Log every fetch")
    return parser


def config_from_args(args: argparse.Namespace) -> SpiderConfig:
    """Load the config file (if any) and apply command-line overrides."""
    config = load_config(args.config) if args.config else SpiderConfig()

    config.exclude_patterns.extend(args.exclude)
    config.include_patterns.extend(args.include)
    config.additional_paths.extend(args.additional_path)
    if args.title_pattern is not None:
        config.title_pattern = args.title_pattern
    if args.report_spool_interval is not None:
        config.report_spool_interval = args.report_spool_interval
    if args.strict_ciphers:
        config.strict_ciphers = True
    if args.ignore_invalid_ssl:
        config.ignore_invalid_ssl = True
    if args.verbose:
        config.verbose = True

    engine = config.engine
    if args.max_concurrency is not None:
        engine.max_concurrency = args.max_concurrency
    if args.max_depth is not None:
        engine.max_depth = args.max_depth
    if args.timeout is not None:
        engine.timeout = args.timeout
    if args.user_agent:
        engine.user_agent = args.user_agent
    if args.ignore_robots:
        engine.respect_robots_txt = False
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the linkspider CLI."""
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = config_from_args(args)
        spider = Spider(args.url, config)
    except (ConfigError, InvalidSeedUrl) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2

    return spider.crawl()


if __name__ == "__main__":
    raise SystemExit(main())
