"""
Messages emitted by the crawl engine.

Every engine callback is one of these dataclasses; consumers register a
single dispatch function with :meth:`linkspider.engine.Engine.subscribe`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple, Union

if TYPE_CHECKING:
    from linkspider.engine import QueueItem


@dataclass(slots=True, frozen=True)
class FetchComplete:
    item: "QueueItem"
    body: bytes


@dataclass(slots=True, frozen=True)
class FetchRedirect:
    item: "QueueItem"
    location: str


@dataclass(slots=True, frozen=True)
class Fetch404:
    """404 and 410 responses."""
    item: "QueueItem"


@dataclass(slots=True, frozen=True)
class FetchError:
    """Any other 4xx/5xx response; the status is in ``item.state_data.code``."""
    item: "QueueItem"


@dataclass(slots=True, frozen=True)
class FetchDataError:
    """The response body exceeded the configured resource size."""
    item: "QueueItem"


@dataclass(slots=True, frozen=True)
class GzipError:
    item: "QueueItem"
    error: BaseException


@dataclass(slots=True, frozen=True)
class FetchTimeout:
    item: "QueueItem"


@dataclass(slots=True, frozen=True)
class FetchClientError:
    item: "QueueItem"
    error: BaseException


@dataclass(slots=True, frozen=True)
class QueueError:
    url: str
    error: BaseException


@dataclass(slots=True, frozen=True)
class FetchDisallowed:
    item: "QueueItem"


@dataclass(slots=True, frozen=True)
class DiscoveryComplete:
    item: "QueueItem"
    resources: Tuple[str, ...]


@dataclass(slots=True, frozen=True)
class CrawlComplete:
    pass


EngineEvent = Union[
    FetchComplete,
    FetchRedirect,
    Fetch404,
    FetchError,
    FetchDataError,
    GzipError,
    FetchTimeout,
    FetchClientError,
    QueueError,
    FetchDisallowed,
    DiscoveryComplete,
    CrawlComplete,
]
