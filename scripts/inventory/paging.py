"""Lazy iteration over cursor-paginated remote listings."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterator, Optional, Sequence, TypeVar

from scripts.inventory.errors import SourceExhaustedError

logger = logging.getLogger("inventory.paging")

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: Sequence[T] = field(default_factory=tuple)
    next_cursor: Optional[str] = None


class SourceState(enum.Enum):
    AWAITING_PAGE = "awaiting_page"
    HAS_PAGE = "has_page"
    EXHAUSTED = "exhausted"


class PagedSource(Generic[T]):
    """Expose one paged listing operation as a finite iterator of items.

    ``fetch`` receives a request dict and returns a :class:`Page`. The first
    call gets ``request`` unchanged; every later call gets a copy with the
    previous page's cursor stored under ``cursor_param``. Items come out in
    the order the pages delivered them, one fetch per page boundary.

    The source is not restartable. Once it has raised StopIteration (or a
    fetch error), any further ``next()`` raises :class:`SourceExhaustedError`.
    """

    def __init__(
        self,
        fetch: Callable[[dict[str, Any]], Page[T]],
        request: Optional[dict[str, Any]] = None,
        cursor_param: str = "cursor",
    ) -> None:
        self._fetch = fetch
        self._request: dict[str, Any] = dict(request or {})
        self._cursor_param = cursor_param
        self._items: Iterator[T] = iter(())
        self._next_cursor: Optional[str] = None
        self._finished = False
        self.state = SourceState.AWAITING_PAGE
        self.pages_fetched = 0

    def __iter__(self) -> "PagedSource[T]":
        return self

    def __next__(self) -> T:
        while True:
            if self.state is SourceState.EXHAUSTED:
                if self._finished:
                    raise SourceExhaustedError("paged source polled after exhaustion")
                self._finished = True
                raise StopIteration

            if self.state is SourceState.AWAITING_PAGE:
                self._load_page()
                continue

            item = next(self._items, _END)
            if item is not _END:
                return item
            if self._next_cursor is None:
                self.state = SourceState.EXHAUSTED
                continue
            self._request = {**self._request, self._cursor_param: self._next_cursor}
            self.state = SourceState.AWAITING_PAGE

    def _load_page(self) -> None:
        try:
            page = self._fetch(dict(self._request))
        except BaseException:
            # A failed fetch terminates the sequence.
            self.state = SourceState.EXHAUSTED
            self._finished = True
            raise
        self.pages_fetched += 1
        logger.debug(
            "Fetched page %d with %d items (more=%s)",
            self.pages_fetched, len(page.items), page.next_cursor is not None,
        )
        self._items = iter(page.items)
        self._next_cursor = page.next_cursor
        self.state = SourceState.HAS_PAGE


_END: Any = object()
