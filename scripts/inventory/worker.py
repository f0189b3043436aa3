"""Per-region worker: list resources and fan out one resolution per resource."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, Future, wait
from typing import Callable, Optional

from scripts.inventory.channel import RecordChannel
from scripts.inventory.errors import ChannelClosedError, FetchError, ListResourcesFailed
from scripts.inventory.models import (
    ChannelMessage,
    PartitionFailure,
    Resource,
    ResolutionFailure,
)
from scripts.inventory.paging import Page, PagedSource
from scripts.inventory.resolver import ProvenanceResolver
from scripts.inventory.retry import RetryPolicy, retrying

logger = logging.getLogger("inventory.worker")

ListResources = Callable[[str, Optional[str]], Page[Resource]]


class PartitionWorker:
    """Enumerate one partition and resolve every resource it holds.

    Resolution tasks run on ``executor`` as soon as each resource is listed.
    The worker counts as one producer on ``channel`` and calls ``done()``
    only after every task it submitted has reported.
    """

    def __init__(
        self,
        partition: str,
        list_resources: ListResources,
        resolver: ProvenanceResolver,
        channel: RecordChannel[ChannelMessage],
        executor: Executor,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.partition = partition
        self._list_resources = list_resources
        self._resolver = resolver
        self._channel = channel
        self._executor = executor
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    def resources(self) -> PagedSource[Resource]:
        fetch = retrying(
            lambda request: self._list_resources(request["partition"], request.get("cursor")),
            self._retry_policy,
            sleep=self._sleep,
            error_cls=ListResourcesFailed,
            label=f"list_resources {self.partition}",
        )
        return PagedSource(fetch, {"partition": self.partition})

    def run(self) -> int:
        """Returns the number of resources discovered."""
        started = time.monotonic()
        tasks: list[Future] = []
        try:
            for resource in self.resources():
                tasks.append(self._executor.submit(self._resolve_and_send, resource))
        except Exception as exc:
            # Anything escaping the listing, malformed pages included, ends
            # this partition only.
            logger.error(
                "Listing failed in %s after %d resources: %s",
                self.partition, len(tasks), exc,
                extra={"partition": self.partition},
            )
            error = str(exc) if isinstance(exc, FetchError) else f"{type(exc).__name__}: {exc}"
            self._send(PartitionFailure(partition=self.partition, error=error))
        finally:
            # done() must follow every record this worker spawned.
            try:
                wait(tasks)
            finally:
                self._channel.done()

        logger.info(
            "Partition %s finished", self.partition,
            extra={
                "partition": self.partition,
                "records": len(tasks),
                "duration_s": round(time.monotonic() - started, 3),
            },
        )
        return len(tasks)

    def _resolve_and_send(self, resource: Resource) -> None:
        message: ChannelMessage
        try:
            message = self._resolver.resolve(resource)
        except Exception as exc:
            logger.error(
                "Resolution failed for %s: %s", resource.resource_id, exc,
                extra={"partition": resource.partition, "resource_id": resource.resource_id},
            )
            message = ResolutionFailure(
                resource_id=resource.resource_id,
                partition=resource.partition,
                error=str(exc),
            )
        self._send(message)

    def _send(self, message: ChannelMessage) -> None:
        try:
            self._channel.send(message)
        except ChannelClosedError as exc:
            logger.error("Dropping %r: %s", message, exc, extra={"partition": self.partition})
