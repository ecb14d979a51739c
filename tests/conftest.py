"""Shared fixtures for linkspider tests."""

from __future__ import annotations

import random
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import pytest

from linkspider.engine import EngineSettings, FetchQueue, QueueItem
from linkspider.events import CrawlComplete, DiscoveryComplete, FetchComplete

SITE = "https://site.test"


def make_item(url: str, content_type: str = "text/html; charset=utf-8", code: int = 200) -> QueueItem:
    parsed = urlparse(url)
    item = QueueItem(
        url=url,
        protocol=parsed.scheme,
        host=parsed.hostname or "",
        port=parsed.port,
        path=parsed.path or "/",
    )
    item.state_data.content_type = content_type
    item.state_data.code = code
    return item


class FakeEngine:
    """
    Engine stand-in that "fetches" a fixed set of pages in the given order,
    without any network I/O.
    """

    def __init__(self, initial_url, settings=None, transport=None, discoverer=None):
        self.initial_url = initial_url
        self.settings = settings or EngineSettings()
        self.transport = transport
        self.discoverer = discoverer
        self.queue = FetchQueue()
        self.handlers: List = []
        self.fetch_conditions: List = []
        self.queued: List[Tuple[str, bool]] = []
        self.pages: List[Tuple[str, str, str]] = []
        self.extra_events: List = []
        self.fail_with: Optional[BaseException] = None
        self.started = False
        self.states_seen: List = []
        self.spider = None

    def subscribe(self, handler) -> None:
        self.handlers.append(handler)

    def add_fetch_condition(self, condition) -> None:
        self.fetch_conditions.append(condition)

    def queue_url(self, url, referrer=None, force=False):
        self.queued.append((url, force))
        return None

    def emit(self, event) -> None:
        for handler in self.handlers:
            handler(event)

    def start(self) -> None:
        self.started = True
        if self.spider is not None:
            self.states_seen.append(self.spider.state)
        if self.fail_with is not None:
            raise self.fail_with
        for path, content_type, html in self.pages:
            item = make_item(urljoin(SITE, path), content_type)
            body = html.encode("utf-8")
            self.emit(FetchComplete(item, body))
            resources = self.discoverer(body, item)
            self.emit(DiscoveryComplete(item, tuple(resources)))
        for event in self.extra_events:
            self.emit(event)
        self.emit(CrawlComplete())


@pytest.fixture
def fake_engine_factory():
    """Returns (factory, created) where created collects FakeEngine instances."""
    created: List[FakeEngine] = []
    pages: Dict[str, object] = {"pages": [], "extra_events": [], "fail_with": None}

    def factory(*args, **kwargs):
        engine = FakeEngine(*args, **kwargs)
        engine.pages = list(pages["pages"])
        engine.extra_events = list(pages["extra_events"])
        engine.fail_with = pages["fail_with"]
        created.append(engine)
        return engine

    factory.script = pages
    return factory, created


@pytest.fixture
def rng():
    return random.Random(0)
