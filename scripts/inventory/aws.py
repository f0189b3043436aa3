"""boto3 adapters for the two remote listings: EC2 resources and CloudTrail events."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

import boto3
import botocore.session
from botocore.client import BaseClient
from botocore.config import Config

from scripts.inventory.config import AwsConfig
from scripts.inventory.models import Event, Resource
from scripts.inventory.paging import Page

logger = logging.getLogger("inventory.aws")

HOME_REGION = "us-east-1"


@dataclass(frozen=True)
class ResourceKind:
    name: str
    operation: str
    result_key: str
    id_key: str
    creation_event: str


RESOURCE_KINDS: dict[str, ResourceKind] = {
    "vpc": ResourceKind("vpc", "describe_vpcs", "Vpcs", "VpcId", "CreateVpc"),
    "subnet": ResourceKind("subnet", "describe_subnets", "Subnets", "SubnetId", "CreateSubnet"),
    "security-group": ResourceKind(
        "security-group", "describe_security_groups", "SecurityGroups", "GroupId",
        "CreateSecurityGroup",
    ),
}


def resolve_kind(name: str) -> ResourceKind:
    try:
        return RESOURCE_KINDS[name]
    except KeyError:
        known = ", ".join(sorted(RESOURCE_KINDS))
        raise ValueError(f"Unknown resource kind {name!r} (known: {known})") from None


def creation_events() -> dict[str, str]:
    return {name: kind.creation_event for name, kind in RESOURCE_KINDS.items()}


def build_session(config: AwsConfig) -> boto3.session.Session:
    """Session for the configured profile and shared credentials file.

    With no profile set, the default credential chain applies (env vars,
    instance or Lambda role).
    """
    core = botocore.session.Session()
    if config.credentials_file:
        core.set_config_variable("credentials_file", config.credentials_file)
    return boto3.session.Session(botocore_session=core, profile_name=config.profile)


def client_config(config: AwsConfig, max_pool_connections: int = 10) -> Config:
    # Throttling is retried by the engine, not by botocore.
    return Config(
        retries={"mode": "standard", "max_attempts": 1},
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
        max_pool_connections=max_pool_connections,
    )


class AwsEndpoints:
    """Per-region EC2 and CloudTrail clients behind the engine's fetch contracts."""

    def __init__(
        self,
        session: boto3.session.Session,
        kind: ResourceKind,
        config: Optional[Config] = None,
        page_size: Optional[int] = None,
    ) -> None:
        self._session = session
        self.kind = kind
        self._config = config
        self._page_size = page_size
        self._clients: dict[tuple[str, str], BaseClient] = {}
        self._lock = threading.Lock()

    def client(self, service: str, region: str) -> BaseClient:
        # Session.client() is not thread-safe; the clients themselves are.
        with self._lock:
            key = (service, region)
            if key not in self._clients:
                self._clients[key] = self._session.client(
                    service, region_name=region, config=self._config
                )
            return self._clients[key]

    def list_resources(self, partition: str, cursor: Optional[str]) -> Page[Resource]:
        kwargs: dict[str, Any] = {}
        if cursor is not None:
            kwargs["NextToken"] = cursor
        if self._page_size:
            kwargs["MaxResults"] = self._page_size
        client = self.client("ec2", partition)
        resp = getattr(client, self.kind.operation)(**kwargs)
        items = [
            Resource(resource_id=r[self.kind.id_key], partition=partition, kind=self.kind.name)
            for r in resp.get(self.kind.result_key, [])
        ]
        logger.debug("%s: %s returned %d items", partition, self.kind.operation, len(items))
        return Page(items, resp.get("NextToken") or None)

    def lookup_events(self, resource: Resource, cursor: Optional[str]) -> Page[Event]:
        kwargs: dict[str, Any] = {
            "LookupAttributes": [
                {"AttributeKey": "ResourceName", "AttributeValue": resource.resource_id},
            ],
        }
        if cursor is not None:
            kwargs["NextToken"] = cursor
        client = self.client("cloudtrail", resource.partition)
        resp = client.lookup_events(**kwargs)
        events = [_to_event(e) for e in resp.get("Events", [])]
        return Page(events, resp.get("NextToken") or None)

    def enabled_regions(self) -> list[str]:
        """Regions enabled for the account, via EC2 DescribeRegions."""
        client = self.client("ec2", HOME_REGION)
        resp = client.describe_regions(
            Filters=[{"Name": "opt-in-status", "Values": ["opt-in-not-required", "opted-in"]}],
        )
        return sorted(r["RegionName"] for r in resp.get("Regions", []))


def _to_event(item: dict[str, Any]) -> Event:
    raw = json.loads(item.get("CloudTrailEvent") or "{}")
    username = item.get("Username")
    if not username:
        username = raw.get("userIdentity", {}).get("arn")
    return Event(
        name=item.get("EventName"),
        username=username,
        event_time=item.get("EventTime"),
        raw=raw,
    )
