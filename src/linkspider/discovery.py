"""
Resource discovery for fetched pages.

Parses HTML with BeautifulSoup, feeds declared ids and fragment references to
the :class:`~linkspider.anchors.HashProcessor`, validates titles, and returns
the URLs the engine should queue next.
"""
from __future__ import annotations

import logging
import random
import re
from typing import Callable, List, Optional, Union

from bs4 import BeautifulSoup

from linkspider.anchors import HashProcessor
from linkspider.engine import QueueItem, extract_resources, is_html
from linkspider.report import ErrorRecorder
from linkspider.validation import HtmlValidator

LOGGER = logging.getLogger(__name__)

MAILTO_MATCHER = re.compile(r"mailto:", re.IGNORECASE)

# Literal text that trips up URL extraction without being a link.
FALSE_URL_TOKEN = "URL(s)"

# Subtrees whose contents look like links but are not navigable resources
NON_CONTENT_TAGS = ("pre", "code", "svg")

LinkExtractor = Callable[[Union[str, BeautifulSoup], str], List[str]]


class ResourceDiscoverer:
    """
    Discovery strategy handed to the engine.

    Args:
        crawl_host: Host of the seed URL; only pages on it are followed.
        hash_processor: Ledger of expected and declared fragments.
        recorder: Where title mismatches are recorded.
        title_pattern: Optional regex every same-host page title must match.
        link_extractor: The engine's default link discovery.
        rng: Source of randomness for result ordering.
    """

    def __init__(
        self,
        crawl_host: str,
        hash_processor: HashProcessor,
        recorder: ErrorRecorder,
        title_pattern: Optional[Union[str, re.Pattern]] = None,
        link_extractor: LinkExtractor = extract_resources,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.crawl_host = crawl_host.lower()
        self.hash_processor = hash_processor
        self.recorder = recorder
        self.title_pattern = title_pattern
        self.html_validator = HtmlValidator(title_pattern)
        self.link_extractor = link_extractor
        self.rng = rng or random.Random()

    def __call__(self, buffer: bytes, item: QueueItem) -> List[str]:
        return self.discover_resources(buffer, item)

    def check_title(self, url: str, soup: BeautifulSoup) -> None:
        failure = self.html_validator.title_validation_failure(soup)
        if failure:
            self.recorder.handle_title_error(
                url,
                f"pattern: {failure.title_pattern} failed on title: {failure.title_text}",
            )

    def discover_resources(self, buffer: bytes, item: QueueItem) -> List[str]:
        if not is_html(item.state_data.content_type):
            return []

        content = buffer.decode("utf-8", errors="replace").replace(FALSE_URL_TOKEN, "")
        soup = BeautifulSoup(content, "lxml")

        # Off-site pages can still be fragment targets.
        self.hash_processor.find_supported_hashes(item.url, soup)

        if item.host.lower() != self.crawl_host:
            return []

        if self.title_pattern:
            self.check_title(item.url, soup)

        for element in soup.find_all(NON_CONTENT_TAGS):
            element.extract()

        self._register_expected_hashes(soup, item)

        resources = [
            url for url in self.link_extractor(str(soup), item.url)
            if not MAILTO_MATCHER.search(url)
        ]

        # Unique, then shuffled to spread load across hosts.
        unique = list(dict.fromkeys(resources))
        self.rng.shuffle(unique)
        LOGGER.debug("Discovered %d resources on %s", len(unique), item.url)
        return unique

    def _register_expected_hashes(self, soup: BeautifulSoup, item: QueueItem) -> None:
        # The engine drops fragments, so they are collected from the tree directly.
        for anchor in soup.find_all("a", href=True):
            self.hash_processor.register_expected_hash(anchor["href"], item.url)
