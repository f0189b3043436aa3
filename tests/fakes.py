"""In-memory stand-ins for the remote listing endpoints."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Hashable, Optional

from scripts.inventory.models import Event, Resource
from scripts.inventory.paging import Page


class PagedEndpoint:
    """Serve pre-built pages per key, with injectable errors per page.

    The cursor handed out for page ``i`` is ``"p<i>"``. ``errors`` maps
    ``(key, page_index)`` to a list of exceptions raised, one per call,
    before that page is served.
    """

    def __init__(
        self,
        pages: dict[Hashable, list[list[Any]]],
        errors: Optional[dict[tuple[Hashable, int], list[BaseException]]] = None,
    ) -> None:
        self.pages = pages
        self.errors = {k: list(v) for k, v in (errors or {}).items()}
        self.calls: list[tuple[Hashable, Optional[str]]] = []
        self._lock = threading.Lock()

    def fetch(self, key: Hashable, cursor: Optional[str]) -> Page:
        index = int(cursor[1:]) if cursor else 0
        with self._lock:
            self.calls.append((key, cursor))
            pending = self.errors.get((key, index))
            if pending:
                raise pending.pop(0)
        pages = self.pages[key]
        next_cursor = f"p{index + 1}" if index + 1 < len(pages) else None
        return Page(list(pages[index]), next_cursor)

    def calls_for(self, key: Hashable) -> list[Optional[str]]:
        return [cursor for k, cursor in self.calls if k == key]


def ts(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def create_event(actor: str, seconds: int, name: str = "CreateVpc") -> Event:
    return Event(name=name, username=actor, event_time=ts(seconds))


def other_event(name: str = "ModifyVpcAttribute", actor: str = "someone") -> Event:
    return Event(name=name, username=actor, event_time=ts(1))


def resources(partition: str, *ids: str) -> list[Resource]:
    return [Resource(resource_id=i, partition=partition) for i in ids]


def listing(endpoint: PagedEndpoint):
    """Adapt a PagedEndpoint to the list_resources(partition, cursor) contract."""
    return lambda partition, cursor: endpoint.fetch(partition, cursor)


def lookup(endpoint: PagedEndpoint):
    """Adapt a PagedEndpoint to the lookup_events(resource, cursor) contract."""
    return lambda resource, cursor: endpoint.fetch(resource.resource_id, cursor)
