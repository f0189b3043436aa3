"""Exception hierarchy for the inventory engine."""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for every error raised by the inventory engine."""


class ThrottledError(InventoryError):
    """A remote call was rejected by a rate limit. Retried, never surfaced."""


class FetchError(InventoryError):
    """A page fetch failed in a way that must not be retried."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ListResourcesFailed(FetchError):
    """Listing the resources of a partition failed."""


class LookupEventsFailed(FetchError):
    """Looking up the event history of a resource failed."""


class ThrottlingExhaustedError(FetchError):
    """A call stayed throttled past the configured attempt limit."""


class ChannelClosedError(InventoryError):
    """The record channel is closed and can no longer send or receive."""


class SourceExhaustedError(InventoryError, RuntimeError):
    """next() was called on a paged source that already reported its end."""
