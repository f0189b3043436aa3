"""Data model: resources, events, provenance records and the final report."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional, Union


@dataclass(frozen=True)
class Resource:
    resource_id: str
    partition: str
    kind: str = "vpc"


@dataclass(frozen=True)
class Event:
    name: Optional[str]
    username: Optional[str] = None
    event_time: Optional[datetime] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ProvenanceRecord:
    """Who created a resource and when.

    ``created_at`` / ``created_by`` are None when no creation event was
    found in the retrieved history. That is a final answer, not a failure.
    """

    resource_id: str
    partition: str
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    kind: str = "vpc"

    @classmethod
    def unknown(cls, resource: Resource) -> "ProvenanceRecord":
        return cls(
            resource_id=resource.resource_id,
            partition=resource.partition,
            kind=resource.kind,
        )

    @classmethod
    def from_event(cls, resource: Resource, event: Event) -> "ProvenanceRecord":
        return cls(
            resource_id=resource.resource_id,
            partition=resource.partition,
            created_at=event.event_time,
            created_by=event.username,
            kind=resource.kind,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "kind": self.kind,
            "partition": self.partition,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "created_by": self.created_by,
        }


@dataclass(frozen=True)
class ResolutionFailure:
    resource_id: str
    partition: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "partition": self.partition,
            "error": self.error,
        }


@dataclass(frozen=True)
class PartitionFailure:
    partition: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"partition": self.partition, "error": self.error}


ChannelMessage = Union[ProvenanceRecord, ResolutionFailure, PartitionFailure]


@dataclass
class Report:
    """Records grouped by creator, plus unknowns and failures.

    Built once from the drained channel and never shared between threads.
    """

    by_creator: dict[str, list[ProvenanceRecord]] = field(default_factory=dict)
    unknown: list[ProvenanceRecord] = field(default_factory=list)
    resolution_failures: list[ResolutionFailure] = field(default_factory=list)
    partition_failures: list[PartitionFailure] = field(default_factory=list)

    @classmethod
    def from_messages(cls, messages: Iterable[ChannelMessage]) -> "Report":
        report = cls()
        for message in messages:
            if isinstance(message, ProvenanceRecord):
                if message.created_by is None:
                    report.unknown.append(message)
                else:
                    report.by_creator.setdefault(message.created_by, []).append(message)
            elif isinstance(message, ResolutionFailure):
                report.resolution_failures.append(message)
            elif isinstance(message, PartitionFailure):
                report.partition_failures.append(message)
            else:
                raise TypeError(f"Unexpected channel message: {message!r}")
        return report

    @property
    def records(self) -> list[ProvenanceRecord]:
        known = [r for records in self.by_creator.values() for r in records]
        return known + self.unknown

    @property
    def total_resources(self) -> int:
        """Every enumerated resource: resolved or failed."""
        return len(self.records) + len(self.resolution_failures)

    @property
    def has_failures(self) -> bool:
        return bool(self.resolution_failures or self.partition_failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "by_creator": {
                creator: [r.to_dict() for r in records]
                for creator, records in self.by_creator.items()
            },
            "unknown": [r.to_dict() for r in self.unknown],
            "resolution_failures": [f.to_dict() for f in self.resolution_failures],
            "partition_failures": [f.to_dict() for f in self.partition_failures],
            "total_resources": self.total_resources,
        }
