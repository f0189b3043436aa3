"""AWS Lambda handler for the provenance inventory.

Deployed as a Lambda function triggered by an EventBridge rule.
Each invocation runs one inventory and returns the report as JSON.

Event format (all keys optional):
  {}
  {"regions": ["eu-west-1", "us-east-1"]}
  {"kind": "subnet", "all_regions": true}
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import replace

from scripts.inventory.aws import resolve_kind
from scripts.inventory.config import load_config
from scripts.inventory.logging_config import configure_logging

logger = logging.getLogger("inventory.lambda")


def handler(event: dict, context) -> dict:
    """Lambda entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    try:
        config = load_config()
        if event.get("regions"):
            config = replace(config, regions=tuple(event["regions"]))
        if event.get("kind"):
            config = replace(config, resource_kind=event["kind"])
        resolve_kind(config.resource_kind)
    except ValueError as exc:
        return {"statusCode": 400, "body": json.dumps({"error": str(exc)})}

    logger.info("Lambda invoked for kind=%s", config.resource_kind)

    try:
        from scripts.inventory.cli import run_inventory
        report = run_inventory(config, all_regions=bool(event.get("all_regions")))
    except Exception as exc:
        logger.error("Inventory failed: %s", exc, exc_info=True)
        return {
            "statusCode": 500,
            "body": json.dumps({"error": str(exc)}),
        }

    logger.info(
        "Inventory complete",
        extra={"records": report.total_resources},
    )
    return {
        "statusCode": 200,
        "body": json.dumps(report.to_dict()),
    }
