"""Tests for PartitionWorker."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from scripts.inventory.channel import RecordChannel
from scripts.inventory.errors import ThrottledError
from scripts.inventory.models import PartitionFailure, ProvenanceRecord, ResolutionFailure
from scripts.inventory.paging import Page
from scripts.inventory.resolver import ProvenanceResolver
from scripts.inventory.retry import RetryPolicy
from scripts.inventory.worker import PartitionWorker

from tests.fakes import PagedEndpoint, create_event, listing, lookup, other_event, resources


@pytest.fixture
def executor():
    with ThreadPoolExecutor(max_workers=4) as pool:
        yield pool


def run_worker(listing_endpoint, events_endpoint, executor, sleeps, partition="eu-west-1",
               creation_events=None):
    channel = RecordChannel(capacity=100, poll_interval=0.01)
    channel.register()
    resolver = ProvenanceResolver(
        lookup(events_endpoint),
        creation_events or {"vpc": "CreateVpc"},
        retry_policy=RetryPolicy.fixed(0.1),
        sleep=sleeps.append,
    )
    worker = PartitionWorker(
        partition,
        listing(listing_endpoint),
        resolver,
        channel,
        executor,
        retry_policy=RetryPolicy.fixed(0.1),
        sleep=sleeps.append,
    )
    count = worker.run()
    return count, list(channel)


class TestPartitionWorker:
    """List a partition, resolve each resource, report through the channel."""

    def test_one_record_per_resource(self, executor, sleeps):
        listing_endpoint = PagedEndpoint(
            {"eu-west-1": [resources("eu-west-1", "vpc-1", "vpc-2"), resources("eu-west-1", "vpc-3")]}
        )
        events = PagedEndpoint({
            "vpc-1": [[create_event("alice", 100)]],
            "vpc-2": [[other_event()]],
            "vpc-3": [[], [create_event("bob", 300)]],
        })

        count, messages = run_worker(listing_endpoint, events, executor, sleeps)

        assert count == 3
        assert all(isinstance(m, ProvenanceRecord) for m in messages)
        by_id = {m.resource_id: m for m in messages}
        assert sorted(by_id) == ["vpc-1", "vpc-2", "vpc-3"]
        assert by_id["vpc-1"].created_by == "alice"
        assert by_id["vpc-2"].created_by is None
        assert by_id["vpc-3"].created_by == "bob"

    def test_empty_partition_still_completes(self, executor, sleeps):
        count, messages = run_worker(PagedEndpoint({"eu-west-1": [[]]}), PagedEndpoint({}), executor, sleeps)
        assert count == 0
        assert messages == []

    def test_listing_failure_keeps_spawned_tasks(self, executor, sleeps):
        """Resources listed before the failure are still resolved."""
        listing_endpoint = PagedEndpoint(
            {"eu-west-1": [resources("eu-west-1", "vpc-1", "vpc-2"), resources("eu-west-1", "vpc-3")]},
            errors={("eu-west-1", 1): [PermissionError("UnauthorizedOperation")]},
        )
        events = PagedEndpoint({"vpc-1": [[create_event("alice", 100)]], "vpc-2": [[]]})

        count, messages = run_worker(listing_endpoint, events, executor, sleeps)

        assert count == 2
        failures = [m for m in messages if isinstance(m, PartitionFailure)]
        records = [m for m in messages if isinstance(m, ProvenanceRecord)]
        assert len(failures) == 1
        assert failures[0].partition == "eu-west-1"
        assert "UnauthorizedOperation" in failures[0].error
        assert sorted(r.resource_id for r in records) == ["vpc-1", "vpc-2"]

    def test_resolution_failure_is_isolated(self, executor, sleeps):
        listing_endpoint = PagedEndpoint({"eu-west-1": [resources("eu-west-1", "vpc-1", "vpc-2")]})
        events = PagedEndpoint(
            {"vpc-1": [[create_event("alice", 100)]], "vpc-2": [[]]},
            errors={("vpc-2", 0): [ConnectionError("reset by peer")]},
        )

        count, messages = run_worker(listing_endpoint, events, executor, sleeps)

        assert count == 2
        failures = [m for m in messages if isinstance(m, ResolutionFailure)]
        records = [m for m in messages if isinstance(m, ProvenanceRecord)]
        assert [(f.resource_id, f.partition) for f in failures] == [("vpc-2", "eu-west-1")]
        assert "reset by peer" in failures[0].error
        assert [r.resource_id for r in records] == ["vpc-1"]

    def test_unexpected_resolver_error_becomes_failure(self, executor, sleeps):
        listing_endpoint = PagedEndpoint({"eu-west-1": [resources("eu-west-1", "vpc-1")]})
        count, messages = run_worker(
            listing_endpoint, PagedEndpoint({}), executor, sleeps, creation_events={"subnet": "CreateSubnet"},
        )
        assert count == 1
        assert len(messages) == 1
        assert isinstance(messages[0], ResolutionFailure)

    def test_throttled_listing_is_transparent(self, executor, sleeps):
        listing_endpoint = PagedEndpoint(
            {"eu-west-1": [resources("eu-west-1", "vpc-1"), resources("eu-west-1", "vpc-2")]},
            errors={("eu-west-1", 1): [ThrottledError("t")]},
        )
        events = PagedEndpoint({"vpc-1": [[]], "vpc-2": [[]]})
        count, messages = run_worker(listing_endpoint, events, executor, sleeps)
        assert count == 2
        assert sorted(m.resource_id for m in messages) == ["vpc-1", "vpc-2"]
        assert listing_endpoint.calls_for("eu-west-1") == [None, "p1", "p1"]

    def test_resolutions_run_concurrently(self, executor, sleeps):
        """Resolution of one resource does not wait for the previous one."""
        barrier = threading.Barrier(2, timeout=2)
        listing_endpoint = PagedEndpoint({"eu-west-1": [resources("eu-west-1", "vpc-1", "vpc-2")]})
        events = PagedEndpoint({"vpc-1": [[create_event("alice", 1)]], "vpc-2": [[create_event("bob", 2)]]})

        def rendezvous(resource, cursor):
            barrier.wait()
            return events.fetch(resource.resource_id, cursor)

        channel = RecordChannel(capacity=10, poll_interval=0.01)
        channel.register()
        resolver = ProvenanceResolver(rendezvous, {"vpc": "CreateVpc"}, sleep=sleeps.append)
        worker = PartitionWorker("eu-west-1", listing(listing_endpoint), resolver, channel, executor)

        assert worker.run() == 2
        messages = list(channel)
        assert all(isinstance(m, ProvenanceRecord) for m in messages)
        assert {m.created_by for m in messages} == {"alice", "bob"}

    def test_malformed_listing_page_fails_partition_only(self, executor, sleeps):
        """A non-FetchError from the listing still waits for spawned tasks."""
        events = PagedEndpoint({"vpc-1": [[create_event("alice", 100)]]})

        def list_resources(partition, cursor):
            if cursor is None:
                return Page(resources(partition, "vpc-1"), "p1")
            return Page(None)

        channel = RecordChannel(capacity=100, poll_interval=0.01)
        channel.register()
        resolver = ProvenanceResolver(lookup(events), {"vpc": "CreateVpc"}, sleep=sleeps.append)
        worker = PartitionWorker("eu-west-1", list_resources, resolver, channel, executor)

        count = worker.run()
        messages = list(channel)

        assert count == 1
        failures = [m for m in messages if isinstance(m, PartitionFailure)]
        records = [m for m in messages if isinstance(m, ProvenanceRecord)]
        assert len(failures) == 1
        assert failures[0].error.startswith("TypeError")
        assert [(r.resource_id, r.created_by) for r in records] == [("vpc-1", "alice")]
