"""Human-readable and JSON rendering of a Report."""

from __future__ import annotations

import json

from scripts.inventory.models import ProvenanceRecord, Report

SEPARATOR = "#" * 60


def describe(record: ProvenanceRecord) -> str:
    created_at = (
        record.created_at.strftime("%Y-%m-%d %H:%M:%S") if record.created_at else "Unknown"
    )
    created_by = record.created_by or "Unknown"
    return (
        f"{record.kind}: {record.resource_id} ({record.partition}), "
        f"created by {created_by} on {created_at}"
    )


def format_text(report: Report) -> str:
    lines = [
        f"knowns length= {len(report.by_creator)}, unknowns length = {len(report.unknown)}",
    ]
    for user, records in report.by_creator.items():
        lines.append(f"user: {user}")
        lines.extend(f"\t{describe(r)}" for r in records)
    lines.append(SEPARATOR)
    lines.append("unknowns:")
    lines.extend(f"\t{describe(r)}" for r in report.unknown)

    if report.has_failures:
        lines.append(SEPARATOR)
        lines.append("failures:")
        for p in report.partition_failures:
            lines.append(f"\tpartition {p.partition}: {p.error}")
        for f in report.resolution_failures:
            lines.append(f"\t{f.resource_id} ({f.partition}): {f.error}")
    return "\n".join(lines) + "\n"


def format_json(report: Report) -> str:
    return json.dumps(report.to_dict(), indent=2) + "\n"


FORMATTERS = {"text": format_text, "json": format_json}
