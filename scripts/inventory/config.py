"""Configuration via environment variables (and an optional .env file).

Supports:
  - AWS_PROFILE / AWS_CREDENTIALS for a named profile in a shared credentials file
  - The default credential chain (IAM role in Lambda/ECS) when no profile is set
  - Throttle back-off and fan-out tuning
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from scripts.inventory.retry import RetryPolicy

DEFAULT_REGIONS: tuple[str, ...] = (
    "ap-northeast-1",
    "ap-northeast-2",
    "ap-south-1",
    "ap-southeast-1",
    "ap-southeast-2",
    "ca-central-1",
    "eu-central-1",
    "eu-west-1",
    "eu-west-2",
    "eu-west-3",
    "sa-east-1",
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
)


@dataclass(frozen=True)
class AwsConfig:
    profile: Optional[str] = None  # None = default credential chain
    credentials_file: Optional[str] = None  # None = ~/.aws/credentials
    connect_timeout: int = 10
    read_timeout: int = 60


@dataclass(frozen=True)
class ThrottleConfig:
    base_delay_ms: int = 100
    multiplier: float = 2.0
    max_delay_ms: int = 5000
    max_attempts: Optional[int] = None  # None = retry while throttled

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            base_delay=self.base_delay_ms / 1000.0,
            multiplier=self.multiplier,
            max_delay=self.max_delay_ms / 1000.0,
            max_attempts=self.max_attempts,
        )


@dataclass(frozen=True)
class InventoryConfig:
    aws: AwsConfig = field(default_factory=AwsConfig)
    throttle: ThrottleConfig = field(default_factory=ThrottleConfig)
    regions: tuple[str, ...] = DEFAULT_REGIONS
    resource_kind: str = "vpc"
    channel_capacity: int = 100
    max_resolvers: int = 16
    stop_on_first_match: bool = False
    log_level: str = "WARNING"


def _int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> InventoryConfig:
    """Load configuration from environment variables. Everything has a default."""
    # .env is looked up from the working directory, not the install location
    load_dotenv(find_dotenv(usecwd=True))

    aws = AwsConfig(
        profile=os.environ.get("AWS_PROFILE") or None,
        credentials_file=os.environ.get("AWS_CREDENTIALS") or None,
        connect_timeout=_int("AWS_CONNECT_TIMEOUT", 10, minimum=1),
        read_timeout=_int("AWS_READ_TIMEOUT", 60, minimum=1),
    )

    max_attempts = _int("THROTTLE_MAX_ATTEMPTS", 0)
    multiplier_raw = os.environ.get("THROTTLE_BACKOFF_MULTIPLIER") or "2.0"
    try:
        multiplier = float(multiplier_raw)
    except ValueError:
        raise ValueError(
            f"THROTTLE_BACKOFF_MULTIPLIER must be a number, got {multiplier_raw!r}"
        ) from None
    if multiplier < 1.0:
        raise ValueError("THROTTLE_BACKOFF_MULTIPLIER must be >= 1.0")

    throttle = ThrottleConfig(
        base_delay_ms=_int("THROTTLE_BASE_DELAY_MS", 100),
        multiplier=multiplier,
        max_delay_ms=_int("THROTTLE_MAX_DELAY_MS", 5000),
        max_attempts=max_attempts or None,  # 0 / unset = unlimited
    )

    regions_raw = os.environ.get("INVENTORY_REGIONS", "")
    regions = tuple(r.strip() for r in regions_raw.split(",") if r.strip())

    return InventoryConfig(
        aws=aws,
        throttle=throttle,
        regions=regions or DEFAULT_REGIONS,
        resource_kind=os.environ.get("INVENTORY_RESOURCE_KIND", "vpc"),
        channel_capacity=_int("INVENTORY_CHANNEL_CAPACITY", 100, minimum=1),
        max_resolvers=_int("INVENTORY_MAX_RESOLVERS", 16, minimum=1),
        stop_on_first_match=_bool("INVENTORY_STOP_ON_FIRST_MATCH"),
        log_level=os.environ.get("LOG_LEVEL", "WARNING"),
    )
