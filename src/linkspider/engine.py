"""
Crawl engine: URL queue, robots.txt, bounded-concurrency fetching and events.

Worker threads only perform HTTP I/O. Outcomes are handed back to the thread
that called :meth:`Engine.start`, which emits every event and runs resource
discovery, so subscribers never run concurrently with each other.
"""
from __future__ import annotations

import logging
import re
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Optional, Set, Union
from urllib import robotparser
from urllib.parse import urldefrag, urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from requests.structures import CaseInsensitiveDict

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
from linkspider.transport import TransportConfig

LOGGER = logging.getLogger(__name__)

SUPPORTED_SCHEMES: frozenset[str] = frozenset(("http", "https"))

# (tag, attribute) pairs the default discovery follows
RESOURCE_ATTRIBUTES = (
    ("a", "href"),
    ("area", "href"),
    ("link", "href"),
    ("img", "src"),
    ("script", "src"),
    ("iframe", "src"),
    ("source", "src"),
    ("embed", "src"),
)

SKIP_PREFIXES = ("javascript:", "data:", "tel:", "#")

NOT_FOUND_CODES = (404, 410)

CHUNK_SIZE = 64 * 1024

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def is_html(content_type: Optional[str]) -> bool:
    return (content_type or "").strip().lower().startswith("text/html")


def extract_resources(html: Union[str, BeautifulSoup], base_url: str) -> List[str]:
    """Default link discovery: absolute, fragment-less URLs referenced by a page."""
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "lxml")
    resources: List[str] = []
    for tag, attribute in RESOURCE_ATTRIBUTES:
        for element in soup.find_all(tag, attrs={attribute: True}):
            value = (element.get(attribute) or "").strip()
            if not value or value.lower().startswith(SKIP_PREFIXES):
                continue
            try:
                resolved, _ = urldefrag(urljoin(base_url, value))
            except ValueError:
                # Left unresolved so queueing reports it.
                resolved = value
            resources.append(resolved)
    return resources


def default_discover_resources(buffer: bytes, item: "QueueItem") -> List[str]:
    if not is_html(item.state_data.content_type):
        return []
    return extract_resources(buffer.decode("utf-8", errors="replace"), item.url)


@dataclass(slots=True)
class EngineSettings:
    """Engine knobs; unknown keys from configuration are kept in ``extra``."""
    user_agent: str = "linkspider/1.0"
    timeout: float = 30.0
    max_concurrency: int = 5
    max_depth: int = 0
    max_resource_size: int = 16 * 1024 * 1024
    respect_robots_txt: bool = True
    filter_by_domain: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> "EngineSettings":
        """Build settings from snake_case or camelCase keys."""
        known = {f.name for f in fields(cls)} - {"extra"}
        settings = cls()
        for key, value in (values or {}).items():
            name = _CAMEL_BOUNDARY.sub("_", key).lower()
            if name in known:
                setattr(settings, name, value)
            else:
                settings.extra[key] = value
        if settings.extra:
            LOGGER.debug("Passing through engine settings: %s", sorted(settings.extra))
        return settings


@dataclass(slots=True)
class StateData:
    code: Optional[int] = None
    content_type: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True, eq=False)
class QueueItem:
    """A URL known to the engine and its fetch state."""
    url: str
    protocol: str
    host: str
    port: Optional[int]
    path: str
    depth: int = 1
    referrer: Optional[str] = None
    status: str = "queued"
    fetched: bool = False
    state_data: StateData = field(default_factory=StateData)


@dataclass(slots=True)
class FetchOutcome:
    """What a worker thread learned about one item; classified on the main thread."""
    item: QueueItem
    status_code: Optional[int] = None
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""
    location: Optional[str] = None
    disallowed: bool = False
    oversized: bool = False
    error: Optional[BaseException] = None


class FetchQueue:
    """Insertion-ordered, URL-deduplicated queue safe to query from other threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: List[QueueItem] = []
        self._urls: Set[str] = set()
        self._cursor = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def exists(self, url: str) -> bool:
        with self._lock:
            return url in self._urls

    def add(self, item: QueueItem) -> bool:
        with self._lock:
            if item.url in self._urls:
                return False
            self._urls.add(item.url)
            self._items.append(item)
            return True

    def next_queued(self) -> Optional[QueueItem]:
        """Take the oldest queued item and mark it spooled."""
        with self._lock:
            if self._cursor >= len(self._items):
                return None
            item = self._items[self._cursor]
            self._cursor += 1
            item.status = "spooled"
            return item

    def filter_items(self, status: Optional[str] = None) -> List[QueueItem]:
        with self._lock:
            return [item for item in self._items if status is None or item.status == status]


class RobotsCache:
    """robots.txt rules per origin, fetched once. Unreachable files allow everything."""

    def __init__(self, session: requests.Session, user_agent: str, timeout: float) -> None:
        self._session = session
        self._user_agent = user_agent
        self._timeout = timeout
        self._lock = threading.Lock()
        self._parsers: Dict[str, Optional[robotparser.RobotFileParser]] = {}

    def allowed(self, url: str) -> bool:
        parsed = urlparse(url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        with self._lock:
            known = origin in self._parsers
            parser = self._parsers.get(origin)
        if not known:
            parser = self._load(origin)
            with self._lock:
                parser = self._parsers.setdefault(origin, parser)
        if parser is None:
            return True
        return parser.can_fetch(self._user_agent, url)

    def _load(self, origin: str) -> Optional[robotparser.RobotFileParser]:
        robots_url = f"{origin}/robots.txt"
        try:
            resp = self._session.get(robots_url, timeout=self._timeout)
        except requests.RequestException as exc:
            LOGGER.debug("No robots.txt at %s: %s", robots_url, exc)
            return None
        if resp.status_code >= 400:
            return None
        parser = robotparser.RobotFileParser(robots_url)
        parser.parse(resp.text.splitlines())
        return parser


EventHandler = Callable[[EngineEvent], None]
FetchCondition = Callable[[QueueItem], bool]
Discoverer = Callable[[bytes, QueueItem], List[str]]


class Engine:
    """
    Breadth-first crawler over a single seed URL.

    Args:
        initial_url: The seed URL; its host is the crawl's own host.
        settings: Engine knobs.
        transport: TLS settings for the HTTP session.
        discoverer: Callable turning (body, item) into URLs to queue.
        session: Pre-built HTTP session (overrides ``transport``).
    """

    def __init__(
        self,
        initial_url: str,
        settings: Optional[EngineSettings] = None,
        transport: Optional[TransportConfig] = None,
        discoverer: Optional[Discoverer] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        parsed = urlparse(initial_url)
        self.initial_url = initial_url
        self.protocol = parsed.scheme.lower()
        self.host = (parsed.hostname or "").lower()
        self.port = parsed.port
        port = f":{self.port}" if self.port else ""
        self.root_url = f"{self.protocol}://{self.host}{port}"

        self.settings = settings or EngineSettings()
        self.transport = transport or TransportConfig()
        self.session = session or self.transport.build_session(self.settings.user_agent)
        self.discoverer: Discoverer = discoverer or default_discover_resources
        self.queue = FetchQueue()
        self.fetch_conditions: List[FetchCondition] = []
        self.running = False

        self._handlers: List[EventHandler] = []
        self._rejected: Set[str] = set()
        self._robots = RobotsCache(self.session, self.settings.user_agent, self.settings.timeout)

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def add_fetch_condition(self, condition: FetchCondition) -> None:
        self.fetch_conditions.append(condition)

    def _emit(self, event: EngineEvent) -> None:
        for handler in self._handlers:
            handler(event)

    def queue_url(
        self,
        url: str,
        referrer: Optional[QueueItem] = None,
        force: bool = False,
    ) -> Optional[QueueItem]:
        """
        Resolve and queue a URL. Returns the new item, or None when it was
        already known, filtered out, or invalid.
        """
        base = referrer.url if referrer else self.root_url
        try:
            absolute, _ = urldefrag(urljoin(base, url.strip()))
            parsed = urlparse(absolute)
            port = parsed.port
        except ValueError as exc:
            self._emit(QueueError(url=url, error=exc))
            return None

        protocol = parsed.scheme.lower()
        if protocol not in SUPPORTED_SCHEMES:
            return None
        if not parsed.hostname:
            self._emit(QueueError(url=url, error=ValueError(f"URL has no host: {url}")))
            return None
        if self.queue.exists(absolute) or absolute in self._rejected:
            return None

        item = QueueItem(
            url=absolute,
            protocol=protocol,
            host=parsed.hostname.lower(),
            port=port,
            path=parsed.path or "/",
            depth=referrer.depth + 1 if referrer else 1,
            referrer=referrer.url if referrer else None,
        )

        if not force:
            if self.settings.filter_by_domain and item.host != self.host:
                return None
            if self.settings.max_depth and item.depth > self.settings.max_depth:
                return None
            if not all(condition(item) for condition in self.fetch_conditions):
                self._rejected.add(absolute)
                return None

        if not self.queue.add(item):
            return None
        return item

    def start(self) -> None:
        """Crawl until the queue drains, then emit :class:`CrawlComplete`."""
        self.running = True
        self.queue_url(self.initial_url, force=True)
        max_workers = max(1, int(self.settings.max_concurrency))

        try:
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="linkspider") as pool:
                in_flight: Dict[Future, QueueItem] = {}
                while True:
                    while len(in_flight) < max_workers:
                        item = self.queue.next_queued()
                        if item is None:
                            break
                        in_flight[pool.submit(self._fetch, item)] = item
                    if not in_flight:
                        break
                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        in_flight.pop(future)
                        self._handle_outcome(future.result())
        finally:
            self.running = False

        self._emit(CrawlComplete())

    def _fetch(self, item: QueueItem) -> FetchOutcome:
        """Runs on a worker thread; never raises."""
        outcome = FetchOutcome(item=item)
        try:
            if self.settings.respect_robots_txt and not self._robots.allowed(item.url):
                outcome.disallowed = True
                return outcome

            with self.session.get(
                item.url,
                timeout=self.settings.timeout,
                allow_redirects=False,
                stream=True,
            ) as resp:
                outcome.status_code = resp.status_code
                outcome.headers = CaseInsensitiveDict(resp.headers)

                if resp.is_redirect:
                    outcome.location = resp.headers.get("location")
                    return outcome
                if resp.status_code >= 400:
                    return outcome

                body = bytearray()
                for chunk in resp.iter_content(CHUNK_SIZE):
                    body.extend(chunk)
                    if len(body) > self.settings.max_resource_size:
                        outcome.oversized = True
                        return outcome
                outcome.body = bytes(body)
        except requests.RequestException as exc:
            outcome.error = exc
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Unexpected failure fetching %s", item.url)
            outcome.error = exc
        return outcome

    def _handle_outcome(self, outcome: FetchOutcome) -> None:
        item = outcome.item
        item.fetched = True

        if outcome.disallowed:
            item.status = "disallowed"
            self._emit(FetchDisallowed(item))
            return

        if outcome.error is not None:
            item.status = "failed"
            error = outcome.error
            if isinstance(error, requests.exceptions.ContentDecodingError):
                self._emit(GzipError(item, error))
            elif isinstance(error, requests.Timeout):
                self._emit(FetchTimeout(item))
            else:
                self._emit(FetchClientError(item, error))
            return

        code = outcome.status_code
        item.state_data.code = code
        item.state_data.headers = dict(outcome.headers)
        item.state_data.content_type = outcome.headers.get("content-type", "")

        if outcome.location:
            item.status = "redirected"
            try:
                location = urljoin(item.url, outcome.location)
            except ValueError:
                # Left unresolved so queueing reports it.
                location = outcome.location
            self._emit(FetchRedirect(item, location))
            self.queue_url(location, referrer=item)
            return

        if code in NOT_FOUND_CODES:
            item.status = "notfound"
            self._emit(Fetch404(item))
            return
        if code is not None and code >= 400:
            item.status = "failed"
            self._emit(FetchError(item))
            return
        if outcome.oversized:
            item.status = "failed"
            self._emit(FetchDataError(item))
            return

        item.status = "downloaded"
        self._emit(FetchComplete(item, outcome.body))

        try:
            resources = list(self.discoverer(outcome.body, item))
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Resource discovery failed for %s", item.url)
            item.status = "failed"
            self._emit(FetchClientError(item, exc))
            return
        for url in resources:
            self.queue_url(url, referrer=item)
        self._emit(DiscoveryComplete(item, tuple(resources)))
