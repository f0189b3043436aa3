"""CLI entry point: run, regions."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Optional, Sequence

from scripts.inventory.aggregator import Aggregator
from scripts.inventory.aws import (
    RESOURCE_KINDS,
    AwsEndpoints,
    build_session,
    client_config,
    creation_events,
    resolve_kind,
)
from scripts.inventory.config import InventoryConfig, load_config
from scripts.inventory.logging_config import configure_logging
from scripts.inventory.models import Report
from scripts.inventory.report import FORMATTERS

logger = logging.getLogger("inventory.cli")


def build_endpoints(config: InventoryConfig) -> AwsEndpoints:
    kind = resolve_kind(config.resource_kind)
    session = build_session(config.aws)
    # One pooled connection per resolver thread plus the listing threads
    pool = config.max_resolvers + len(config.regions)
    return AwsEndpoints(session, kind, client_config(config.aws, max_pool_connections=pool))


def resolve_regions(
    config: InventoryConfig,
    endpoints: AwsEndpoints,
    all_regions: bool = False,
) -> list[str]:
    if all_regions:
        regions = endpoints.enabled_regions()
        logger.info("Discovered %d enabled regions", len(regions))
        return regions
    return list(config.regions)


def run_inventory(config: InventoryConfig, all_regions: bool = False) -> Report:
    """Inventory every configured region and return the grouped report."""
    endpoints = build_endpoints(config)
    regions = resolve_regions(config, endpoints, all_regions)
    aggregator = Aggregator(
        capacity=config.channel_capacity,
        max_resolvers=config.max_resolvers,
        retry_policy=config.throttle.policy(),
        creation_events=creation_events(),
        stop_on_first_match=config.stop_on_first_match,
    )
    logger.info("Starting inventory of %s in %d regions", endpoints.kind.name, len(regions))
    return aggregator.run(regions, endpoints.list_resources, endpoints.lookup_events)


def _apply_overrides(config: InventoryConfig, args: argparse.Namespace) -> InventoryConfig:
    overrides = {}
    if getattr(args, "regions", None):
        overrides["regions"] = tuple(args.regions)
    if getattr(args, "kind", None):
        overrides["resource_kind"] = args.kind
    if getattr(args, "capacity", None):
        overrides["channel_capacity"] = args.capacity
    if getattr(args, "stop_on_first_match", False):
        overrides["stop_on_first_match"] = True
    return replace(config, **overrides) if overrides else config


def cmd_run(args: argparse.Namespace, config: InventoryConfig) -> int:
    """Run the inventory and print the report."""
    config = _apply_overrides(config, args)
    report = run_inventory(config, all_regions=args.all_regions)
    sys.stdout.write(FORMATTERS[args.format](report))
    if report.partition_failures:
        logger.error(
            "%d partitions failed", len(report.partition_failures),
            extra={"failures": len(report.partition_failures)},
        )
        return 1
    return 0


def cmd_regions(args: argparse.Namespace, config: InventoryConfig) -> int:
    """Print the regions a run would cover."""
    endpoints = build_endpoints(config)
    for region in resolve_regions(config, endpoints, args.all_regions):
        print(region)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="inventory",
        description="Find who created each resource in an AWS account",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: LOG_LEVEL env var or WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # run command
    run_parser = subparsers.add_parser("run", help="Inventory resources and print the report")
    run_parser.add_argument(
        "--regions", "-r",
        nargs="+",
        help="Regions to inventory (default: INVENTORY_REGIONS or the built-in list)",
    )
    run_parser.add_argument(
        "--all-regions",
        action="store_true",
        help="Discover enabled regions with DescribeRegions",
    )
    run_parser.add_argument(
        "--kind", "-k",
        choices=sorted(RESOURCE_KINDS),
        help="Resource kind (default: vpc)",
    )
    run_parser.add_argument(
        "--format", "-f",
        choices=sorted(FORMATTERS),
        default="text",
        help="Report format (default: text)",
    )
    run_parser.add_argument(
        "--capacity",
        type=int,
        help="Records buffered ahead of the report builder (default: 100)",
    )
    run_parser.add_argument(
        "--stop-on-first-match",
        action="store_true",
        help="Stop paging events once the creation event is found",
    )
    run_parser.set_defaults(func=cmd_run)

    # regions command
    regions_parser = subparsers.add_parser("regions", help="List the regions a run covers")
    regions_parser.add_argument("--all-regions", action="store_true")
    regions_parser.set_defaults(func=cmd_regions)

    args = parser.parse_args(argv)
    config = load_config()
    configure_logging(args.log_level or config.log_level)
    sys.exit(args.func(args, config))
