"""
Crawls a site from a seed URL and verifies link integrity: every fetch must
succeed, every href="page#id" must point at an id or name that exists on the
target page, and page titles may be checked against a pattern.
"""
from linkspider.config import SpiderConfig, load_config
from linkspider.core import InvalidSeedUrl, Spider, SpiderState, crawl
from linkspider.report import CrawlReport, ErrorKind, ErrorRecord

__version__ = "1.0.0"
__all__ = [
    "crawl",
    "Spider",
    "SpiderState",
    "SpiderConfig",
    "load_config",
    "InvalidSeedUrl",
    "CrawlReport",
    "ErrorKind",
    "ErrorRecord",
]
