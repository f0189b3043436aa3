"""Fan out one worker per partition and fan the results back into a report."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Sequence

from scripts.inventory.channel import RecordChannel
from scripts.inventory.models import ChannelMessage, Report
from scripts.inventory.resolver import LookupEvents, ProvenanceResolver
from scripts.inventory.retry import RetryPolicy
from scripts.inventory.worker import ListResources, PartitionWorker

logger = logging.getLogger("inventory.aggregator")

DEFAULT_CHANNEL_CAPACITY = 100
DEFAULT_MAX_RESOLVERS = 16
DEFAULT_CREATION_EVENTS = {"vpc": "CreateVpc"}


class Aggregator:
    """Run every partition concurrently and group the drained records.

    All workers are registered on the channel before any of them starts, so
    the stream cannot close early. The drain stops when the last worker (and
    every resolution task it spawned) has reported.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CHANNEL_CAPACITY,
        max_resolvers: int = DEFAULT_MAX_RESOLVERS,
        retry_policy: Optional[RetryPolicy] = None,
        creation_events: Optional[dict[str, str]] = None,
        stop_on_first_match: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_resolvers < 1:
            raise ValueError("max_resolvers must be at least 1")
        self.capacity = capacity
        self.max_resolvers = max_resolvers
        self.retry_policy = retry_policy or RetryPolicy()
        self.creation_events = dict(creation_events or DEFAULT_CREATION_EVENTS)
        self.stop_on_first_match = stop_on_first_match
        self._sleep = sleep

    def run(
        self,
        partitions: Sequence[str],
        list_resources: ListResources,
        lookup_events: LookupEvents,
    ) -> Report:
        started = time.monotonic()
        partitions = list(dict.fromkeys(partitions))
        if not partitions:
            logger.warning("No partitions to inventory")
            return Report()

        channel: RecordChannel[ChannelMessage] = RecordChannel(self.capacity)
        resolver = ProvenanceResolver(
            lookup_events,
            self.creation_events,
            retry_policy=self.retry_policy,
            stop_on_first_match=self.stop_on_first_match,
            sleep=self._sleep,
        )

        for _ in partitions:
            channel.register()

        messages: list[ChannelMessage] = []
        with ThreadPoolExecutor(
            max_workers=self.max_resolvers, thread_name_prefix="resolver"
        ) as resolver_pool, ThreadPoolExecutor(
            max_workers=len(partitions), thread_name_prefix="partition"
        ) as partition_pool:
            futures = {}
            try:
                for partition in partitions:
                    worker = PartitionWorker(
                        partition,
                        list_resources,
                        resolver,
                        channel,
                        resolver_pool,
                        retry_policy=self.retry_policy,
                        sleep=self._sleep,
                    )
                    futures[partition] = partition_pool.submit(worker.run)
                messages.extend(channel)
            except BaseException:
                channel.close()
                raise

            discovered = {p: f.result() for p, f in futures.items()}

        report = Report.from_messages(messages)
        logger.info(
            "Inventory complete: %d resources across %d partitions",
            report.total_resources, len(partitions),
            extra={
                "records": report.total_resources,
                "failures": len(report.resolution_failures) + len(report.partition_failures),
                "duration_s": round(time.monotonic() - started, 3),
            },
        )
        logger.debug("Resources discovered per partition: %s", discovered)
        return report


def run(
    partitions: Sequence[str],
    list_resources: ListResources,
    lookup_events: LookupEvents,
    **options: Any,
) -> Report:
    """Inventory ``partitions`` and return the grouped report.

    ``options`` are passed to :class:`Aggregator`.
    """
    return Aggregator(**options).run(partitions, list_resources, lookup_events)
