"""
Classification and accumulation of crawl failures, and the final summary.
"""
from __future__ import annotations

import functools
import logging
import sys
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, TextIO, Tuple, TypeVar

LOGGER = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class ErrorKind(str, Enum):
    FETCH_STATUS = "fetch-status"
    FETCH_ERROR = "fetch-error"
    FETCH_TIMEOUT = "fetch-timeout"
    GZIP_ERROR = "gzip-error"
    CLIENT_ERROR = "client-error"
    QUEUE_ERROR = "queue-error"
    TITLE_MISMATCH = "title-mismatch"
    BROKEN_FRAGMENT = "broken-fragment"
    IGNORED = "ignored"

    @property
    def is_error(self) -> bool:
        return self is not ErrorKind.IGNORED


@dataclass(slots=True, frozen=True)
class ErrorRecord:
    """A single classified crawl failure (or informational entry)."""
    kind: ErrorKind
    url: str
    detail: str = ""
    status_code: Optional[int] = None
    fragment: Optional[str] = None
    referrers: Tuple[str, ...] = ()


@dataclass(slots=True)
class CrawlReport:
    """Aggregate of everything recorded during one crawl."""
    records: List[ErrorRecord] = field(default_factory=list)
    successes: int = 0
    redirects: int = 0
    disallowed: int = 0
    ignored: int = 0
    finalized: bool = False

    @property
    def errors(self) -> List[ErrorRecord]:
        return [r for r in self.records if r.kind.is_error]

    def by_kind(self) -> Dict[ErrorKind, List[ErrorRecord]]:
        grouped: Dict[ErrorKind, List[ErrorRecord]] = defaultdict(list)
        for record in self.errors:
            grouped[record.kind].append(record)
        return dict(grouped)

    @property
    def exit_code(self) -> int:
        return 1 if self.errors else 0


def never_raise(method: F) -> F:
    """Recording must not fail the crawl: log and drop any unexpected exception."""
    @functools.wraps(method)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return method(*args, **kwargs)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Failed to record crawl event in %s", method.__name__)
            return None
    return wrapper  # type: ignore[return-value]


def _item_url(item: Any) -> str:
    return str(getattr(item, "url", item))


class ErrorRecorder:
    """Receives one call per engine event and keeps the crawl report."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self.crawl_report = CrawlReport()
        self._inlinks: Dict[str, Set[str]] = defaultdict(set)

    def _add(self, kind: ErrorKind, url: str, detail: str = "", **extra: Any) -> ErrorRecord:
        record = ErrorRecord(kind=kind, url=url, detail=detail, **extra)
        self.crawl_report.records.append(record)
        if kind.is_error:
            LOGGER.info("%s %s %s", kind.value, url, detail)
        return record

    # Successes and informational events

    @never_raise
    def log_success(self, item: Any) -> None:
        self.crawl_report.successes += 1
        if self.verbose:
            LOGGER.info("OK %s", _item_url(item))

    @never_raise
    def log_redirect(self, item: Any, location: str) -> None:
        self.crawl_report.redirects += 1
        LOGGER.debug("Redirect %s -> %s", _item_url(item), location)

    @never_raise
    def log_disallowed(self, url: str) -> None:
        self.crawl_report.disallowed += 1
        LOGGER.info("Disallowed by robots.txt: %s", url)

    @never_raise
    def log_ignore(self, url: str) -> None:
        self.crawl_report.ignored += 1
        self._add(ErrorKind.IGNORED, url, "excluded by include/exclude patterns")
        LOGGER.debug("Ignoring %s", url)

    @never_raise
    def register_link(self, source: str, target: str) -> None:
        self._inlinks[target].add(source)

    def referrers_of(self, url: str) -> Tuple[str, ...]:
        return tuple(sorted(self._inlinks.get(url, ())))

    # Transport and protocol failures

    @never_raise
    def handle_fetch_status(self, status_code: int, item: Any) -> None:
        url = _item_url(item)
        self._add(
            ErrorKind.FETCH_STATUS,
            url,
            f"HTTP {status_code}",
            status_code=status_code,
            referrers=self.referrers_of(url),
        )

    @never_raise
    def handle_fetch_error(self, item: Any, kind: ErrorKind, detail: str = "") -> None:
        url = _item_url(item)
        self._add(kind, url, detail, referrers=self.referrers_of(url))

    @never_raise
    def handle_client_error(self, item: Any, error: Any) -> None:
        url = _item_url(item)
        self._add(ErrorKind.CLIENT_ERROR, url, str(error), referrers=self.referrers_of(url))

    @never_raise
    def handle_queue_error(self, error: Any, url: str) -> None:
        self._add(ErrorKind.QUEUE_ERROR, str(url), str(error))

    # Content policy failures

    @never_raise
    def handle_title_error(self, url: str, msg: str) -> None:
        self._add(ErrorKind.TITLE_MISMATCH, url, msg)

    @never_raise
    def handle_hash_errors(self, records: Iterable[ErrorRecord]) -> None:
        for record in records:
            self.crawl_report.records.append(record)
            LOGGER.info("%s %s#%s", record.kind.value, record.url, record.fragment)

    # Final report

    def report(self, stream: Optional[TextIO] = None) -> int:
        """Write the summary once and return the process exit code."""
        crawl_report = self.crawl_report
        if crawl_report.finalized:
            return crawl_report.exit_code
        crawl_report.finalized = True
        print_summary(crawl_report, stream or sys.stderr)
        return crawl_report.exit_code


def _format_record(record: ErrorRecord) -> str:
    target = f"{record.url}#{record.fragment}" if record.fragment else record.url
    return f"{target}  ({record.detail})" if record.detail else target


def print_summary(crawl_report: CrawlReport, stream: TextIO) -> None:
    """Print crawl summary to the given stream."""
    stream.write("=" * 50 + "\n")
    stream.write("CRAWL SUMMARY\n")
    stream.write("=" * 50 + "\n\n")

    stream.write(f"Pages fetched:          {crawl_report.successes}\n")
    stream.write(f"Redirects:              {crawl_report.redirects}\n")
    stream.write(f"Disallowed:             {crawl_report.disallowed}\n")
    stream.write(f"Ignored:                {crawl_report.ignored}\n\n")

    grouped = crawl_report.by_kind()
    if grouped:
        stream.write("Errors by type:\n")
        for kind in ErrorKind:
            records = grouped.get(kind)
            if not records:
                continue
            stream.write(f"  {kind.value} ({len(records)}):\n")
            for record in records:
                stream.write(f"    {_format_record(record)}\n")
                for referrer in record.referrers:
                    stream.write(f"      linked from {referrer}\n")
        stream.write(f"\n{len(crawl_report.errors)} error(s) found.\n")
    else:
        stream.write("No errors encountered.\n")

    stream.write("\n")
