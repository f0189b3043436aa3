"""Resolve the provenance of one resource from its event history."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from scripts.inventory.errors import LookupEventsFailed
from scripts.inventory.models import Event, ProvenanceRecord, Resource
from scripts.inventory.paging import Page, PagedSource
from scripts.inventory.retry import RetryPolicy, retrying

logger = logging.getLogger("inventory.resolver")

LookupEvents = Callable[[Resource, Optional[str]], Page[Event]]


class ProvenanceResolver:
    """Scan a resource's events for its creation event.

    By default every page is consumed: the lookup endpoint gives no ordering
    guarantee that puts the creation event first. The first matching event
    wins.
    """

    def __init__(
        self,
        lookup_events: LookupEvents,
        creation_events: dict[str, str],
        retry_policy: Optional[RetryPolicy] = None,
        stop_on_first_match: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._lookup_events = lookup_events
        self._creation_events = creation_events
        self._retry_policy = retry_policy or RetryPolicy()
        self._stop_on_first_match = stop_on_first_match
        self._sleep = sleep

    def creation_event_for(self, resource: Resource) -> str:
        try:
            return self._creation_events[resource.kind]
        except KeyError:
            raise ValueError(f"No creation event known for kind {resource.kind!r}") from None

    def events(self, resource: Resource) -> PagedSource[Event]:
        fetch = retrying(
            lambda request: self._lookup_events(resource, request.get("cursor")),
            self._retry_policy,
            sleep=self._sleep,
            error_cls=LookupEventsFailed,
            label=f"lookup_events {resource.resource_id}",
        )
        return PagedSource(fetch, {"resource_id": resource.resource_id})

    def resolve(self, resource: Resource) -> ProvenanceRecord:
        """Return exactly one record for ``resource``.

        Raises LookupEventsFailed if the event history cannot be read.
        """
        creation_event = self.creation_event_for(resource)
        logger.debug("Resolving %s", resource.resource_id,
                     extra={"resource_id": resource.resource_id, "partition": resource.partition})

        match: Optional[Event] = None
        scanned = 0
        for event in self.events(resource):
            scanned += 1
            if match is None and event.name == creation_event:
                match = event
                if self._stop_on_first_match:
                    break

        if match is None:
            logger.info("%s: no %s event in %d events", resource.resource_id, creation_event, scanned)
            return ProvenanceRecord.unknown(resource)
        return ProvenanceRecord.from_event(resource, match)
