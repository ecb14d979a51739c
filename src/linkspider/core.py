"""
Crawl orchestration: wires the engine to discovery, anchor tracking and the
error recorder, and drives one crawl run to its exit code.
"""
from __future__ import annotations

import logging
import random
import sys
import threading
from enum import Enum
from typing import Callable, Dict, Optional, TextIO, Type, Union
from urllib.parse import urlparse, urlunparse

from linkspider.anchors import HashProcessor
from linkspider.config import SpiderConfig
from linkspider.discovery import ResourceDiscoverer
from linkspider.engine import Engine, FetchQueue, QueueItem
from linkspider.events import (
    CrawlComplete,
    DiscoveryComplete,
    EngineEvent,
    Fetch404,
    FetchClientError,
    FetchComplete,
    FetchDataError,
    FetchDisallowed,
    FetchError,
    FetchRedirect,
    FetchTimeout,
    GzipError,
    QueueError,
)
from linkspider.patterns import should_fetch
from linkspider.report import ErrorKind, ErrorRecorder
from linkspider.transport import TransportConfig

LOGGER = logging.getLogger(__name__)


class SpiderState(str, Enum):
    CONFIGURED = "configured"
    RUNNING = "running"
    DRAINING = "draining"
    COMPLETE = "complete"


class InvalidSeedUrl(ValueError):
    """The seed URL lacks a protocol or host."""


def validate_seed_url(seed_url: str) -> str:
    """Return the seed URL with an explicit path, or raise InvalidSeedUrl."""
    try:
        parsed = urlparse((seed_url or "").strip())
        parsed.port  # raises ValueError on a malformed port
    except ValueError as exc:
        raise InvalidSeedUrl(f"Invalid URL: {seed_url}") from exc

    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        raise InvalidSeedUrl(f"Invalid URL: {seed_url}")

    return urlunparse(parsed._replace(path=parsed.path or "/"))


def root_url_for(seed_url: str) -> str:
    """scheme://host[:port] of the seed URL."""
    parsed = urlparse(seed_url)
    protocol = parsed.scheme or "https"
    port = f":{parsed.port}" if parsed.port else ""
    return f"{protocol}://{parsed.hostname}{port}"


class SpoolReporter:
    """Periodically lists queued items that are being fetched but not yet done."""

    def __init__(self, queue: FetchQueue, interval_ms: int, stream: TextIO) -> None:
        self.queue = queue
        self.interval = interval_ms / 1000.0
        self.stream = stream
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name="linkspider-spool", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval + 1.0)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def report_once(self) -> None:
        spooled = self.queue.filter_items(status="spooled")
        self.stream.write("currently spooled:\n")
        for item in spooled:
            self.stream.write(f"  {item.url}\n")
        self.stream.write("\n")
        self.stream.flush()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.report_once()


EngineFactory = Callable[..., Engine]


class Spider:
    """
    One crawl run over a seed URL.

    Lifecycle: configured -> running -> draining -> complete. Fragment
    reconciliation happens only in the draining step, after the engine has
    reported that nothing else will be fetched.
    """

    def __init__(
        self,
        seed_url: str,
        config: Optional[SpiderConfig] = None,
        engine_factory: Optional[EngineFactory] = None,
        stream: Optional[TextIO] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.seed_url = validate_seed_url(seed_url)
        self.config = config or SpiderConfig()
        self.config.root_url = root_url_for(self.seed_url)
        LOGGER.info("Set root URL to %s", self.config.root_url)

        self.stream = stream or sys.stderr
        self.state = SpiderState.CONFIGURED
        self.exit_code: Optional[int] = None
        self.spool_reporter: Optional[SpoolReporter] = None

        self.recorder = ErrorRecorder(verbose=self.config.verbose)
        self.hash_processor = HashProcessor()
        self.transport = TransportConfig(
            strict_ciphers=self.config.strict_ciphers,
            ignore_invalid_ssl=self.config.ignore_invalid_ssl,
        )
        self.discoverer = ResourceDiscoverer(
            crawl_host=urlparse(self.seed_url).hostname or "",
            hash_processor=self.hash_processor,
            recorder=self.recorder,
            title_pattern=self.config.title_pattern,
            rng=rng,
        )

        factory = engine_factory or Engine
        self.engine = factory(
            self.seed_url,
            settings=self.config.engine,
            transport=self.transport,
            discoverer=self.discoverer,
        )

        self._handlers: Dict[Type, Callable] = {
            FetchComplete: self._on_fetch_complete,
            FetchRedirect: self._on_fetch_redirect,
            Fetch404: self._on_fetch_status,
            FetchError: self._on_fetch_status,
            FetchDataError: self._on_fetch_data_error,
            GzipError: self._on_gzip_error,
            FetchTimeout: self._on_fetch_timeout,
            FetchClientError: self._on_client_error,
            QueueError: self._on_queue_error,
            FetchDisallowed: self._on_fetch_disallowed,
            DiscoveryComplete: self._on_discovery_complete,
            CrawlComplete: self._on_complete,
        }
        self.engine.subscribe(self.dispatch)
        self._init_fetch_condition()

    # Setup

    def _init_fetch_condition(self) -> None:
        if self.config.exclude_patterns or self.config.include_patterns:
            self.engine.add_fetch_condition(self._fetch_condition)

    def _fetch_condition(self, item: QueueItem) -> bool:
        fetch = should_fetch(
            item.url,
            self.config.root_url,
            include_patterns=self.config.include_patterns,
            exclude_patterns=self.config.exclude_patterns,
        )
        if not fetch:
            self.recorder.log_ignore(item.url)
        return fetch

    def _init_additional_paths(self) -> None:
        for relative_path in self.config.additional_paths:
            self.engine.queue_url(relative_path, force=True)

    def _start_spool(self) -> None:
        if self.config.report_spool_interval > 0:
            self.stream.write(f"Starting spool reporting every {self.config.report_spool_interval} ms.\n")
            self.spool_reporter = SpoolReporter(
                self.engine.queue, self.config.report_spool_interval, self.stream
            )
            self.spool_reporter.start()

    def _stop_spool(self) -> None:
        if self.spool_reporter is not None:
            self.spool_reporter.cancel()

    # Run

    def crawl(self) -> int:
        """Run the crawl to completion and return the process exit code."""
        if self.state is not SpiderState.CONFIGURED:
            raise RuntimeError(f"Spider already {self.state.value}")

        self._init_additional_paths()
        self._start_spool()
        self.state = SpiderState.RUNNING
        try:
            self.engine.start()
        finally:
            self._stop_spool()

        if self.state is not SpiderState.COMPLETE:
            LOGGER.debug("Engine returned without a completion event")
            self._on_complete(CrawlComplete())
        return self.exit_code

    def dispatch(self, event: EngineEvent) -> None:
        """Route one engine event to its handler."""
        handler = self._handlers.get(type(event))
        if handler is None:
            LOGGER.debug("Ignoring unknown engine event %r", event)
            return
        handler(event)

    # Handlers

    def _on_fetch_complete(self, event: FetchComplete) -> None:
        self.recorder.log_success(event.item)

    def _on_fetch_redirect(self, event: FetchRedirect) -> None:
        self.recorder.register_link(event.item.url, event.location)
        self.recorder.log_redirect(event.item, event.location)

    def _on_fetch_status(self, event: Union[Fetch404, FetchError]) -> None:
        code = event.item.state_data.code or 404
        self.recorder.handle_fetch_status(code, event.item)

    def _on_fetch_data_error(self, event: FetchDataError) -> None:
        self.recorder.handle_fetch_error(
            event.item,
            ErrorKind.FETCH_ERROR,
            f"response larger than {self.config.engine.max_resource_size} bytes",
        )

    def _on_gzip_error(self, event: GzipError) -> None:
        self.recorder.handle_fetch_error(event.item, ErrorKind.GZIP_ERROR, str(event.error))

    def _on_fetch_timeout(self, event: FetchTimeout) -> None:
        self.recorder.handle_fetch_error(
            event.item, ErrorKind.FETCH_TIMEOUT, f"timed out after {self.config.engine.timeout}s"
        )

    def _on_client_error(self, event: FetchClientError) -> None:
        self.recorder.handle_client_error(event.item, event.error)

    def _on_queue_error(self, event: QueueError) -> None:
        self.recorder.handle_queue_error(event.error, event.url)

    def _on_fetch_disallowed(self, event: FetchDisallowed) -> None:
        self.recorder.log_disallowed(event.item.url)

    def _on_discovery_complete(self, event: DiscoveryComplete) -> None:
        for url in event.resources:
            self.recorder.register_link(event.item.url, url)

    def _on_complete(self, event: CrawlComplete) -> None:
        if self.state in (SpiderState.DRAINING, SpiderState.COMPLETE):
            return
        self.state = SpiderState.DRAINING
        self._stop_spool()

        self.recorder.handle_hash_errors(self.hash_processor.find_errors())
        self.exit_code = self.recorder.report(self.stream)
        self.state = SpiderState.COMPLETE


def crawl(seed_url: str, config: Optional[SpiderConfig] = None, **kwargs) -> int:
    """Crawl a site and return the exit code (0 when no errors were recorded)."""
    return Spider(seed_url, config, **kwargs).crawl()
