"""
Cross-page tracking of fragment (``#id``) references and the ids pages declare.
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import unquote, urldefrag, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from linkspider.report import ErrorKind, ErrorRecord

LOGGER = logging.getLogger(__name__)

CHECKED_SCHEMES: frozenset[str] = frozenset(("http", "https"))


def normalize_url(url: str, base: Optional[str] = None) -> Optional[str]:
    """
    Canonical form of a page address used as the join key between pages.

    - Joins relative URLs against base
    - Normalizes scheme/host case
    - Removes default ports (:80, :443)
    - Drops query strings and fragments
    """
    if not url and not base:
        return None

    try:
        joined, _ = urldefrag(urljoin(base, url) if base else url)
        parsed = urlparse(joined)
        port = parsed.port
    except ValueError:
        return None

    if parsed.scheme.lower() not in CHECKED_SCHEMES:
        return None

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return None

    scheme = parsed.scheme.lower()
    if (scheme == "http" and port == 80) or (scheme == "https" and port == 443) or not port:
        netloc = hostname
    else:
        netloc = f"{hostname}:{port}"

    return urlunparse((scheme, netloc, parsed.path or "/", "", "", ""))


def split_fragment(href: str, source_url: str) -> Optional[Tuple[str, str]]:
    """Return (normalized target, fragment) for an href carrying a non-empty fragment."""
    if not href or "#" not in href:
        return None
    try:
        target, fragment = urldefrag(urljoin(source_url, href.strip()))
    except ValueError:
        return None
    fragment = unquote(fragment)
    if not fragment:
        return None
    normalized = normalize_url(target)
    if normalized is None:
        return None
    return normalized, fragment


class HashProcessor:
    """
    Accumulates expected and declared fragments for one crawl run.

    Pages may be fetched in any order relative to the pages that link to
    them, so nothing is reconciled until :meth:`find_errors` is called after
    the crawl has drained.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._expected: Dict[str, Set[str]] = defaultdict(set)
        self._declared: Dict[str, Set[str]] = defaultdict(set)
        self._referrers: Dict[Tuple[str, str], Set[str]] = defaultdict(set)

    def register_expected_hash(self, href: str, source_url: str) -> Optional[Tuple[str, str]]:
        """Record that ``source_url`` links to a fragment; no-op when href has none."""
        reference = split_fragment(href, source_url)
        if reference is None:
            return None

        target, fragment = reference
        with self._lock:
            self._expected[target].add(fragment)
            source = normalize_url(source_url)
            if source:
                self._referrers[reference].add(source)
        return reference

    def find_supported_hashes(self, page_url: str, soup: BeautifulSoup) -> Set[str]:
        """Record every ``id`` and ``name`` attribute present on a fetched page."""
        page = normalize_url(page_url)
        if page is None:
            return set()

        found: Set[str] = set()
        for element in soup.find_all(attrs={"id": True}):
            found.add(str(element["id"]))
        for element in soup.find_all(attrs={"name": True}):
            found.add(str(element["name"]))
        found.discard("")

        with self._lock:
            self._declared[page].update(found)
        LOGGER.debug("Declared %d hash targets on %s", len(found), page)
        return found

    def expected_hashes(self) -> Dict[str, Set[str]]:
        with self._lock:
            return {url: set(fragments) for url, fragments in self._expected.items()}

    def declared_hashes(self) -> Dict[str, Set[str]]:
        with self._lock:
            return {url: set(ids) for url, ids in self._declared.items()}

    def find_errors(self) -> List[ErrorRecord]:
        """
        Reconcile the ledgers into broken-fragment records.

        Must only be called once every page that will be fetched has been
        fetched. A target that was never fetched is reported the same way as a
        fetched page lacking the id.
        """
        errors: List[ErrorRecord] = []
        with self._lock:
            for url in sorted(self._expected):
                declared = self._declared.get(url, set())
                for fragment in sorted(self._expected[url]):
                    if fragment in declared:
                        continue
                    errors.append(
                        ErrorRecord(
                            kind=ErrorKind.BROKEN_FRAGMENT,
                            url=url,
                            detail=f"no id or name '{fragment}' on {url}",
                            fragment=fragment,
                            referrers=tuple(sorted(self._referrers.get((url, fragment), ()))),
                        )
                    )
        return errors
