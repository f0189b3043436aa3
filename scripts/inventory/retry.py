"""Rate-limit aware retry around a single remote read call."""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from botocore.exceptions import ClientError

from scripts.inventory.errors import (
    FetchError,
    InventoryError,
    ThrottledError,
    ThrottlingExhaustedError,
)

logger = logging.getLogger("inventory.retry")

R = TypeVar("R")

THROTTLE_ERROR_CODES = frozenset([
    "ThrottlingException",
    "Throttling",
    "RequestLimitExceeded",
    "TooManyRequestsException",
])


class FailureKind(enum.Enum):
    THROTTLED = "throttled"
    FATAL = "fatal"


def error_code(exc: ClientError) -> str:
    """Machine-readable error type of a botocore ClientError.

    JSON protocols (CloudTrail) carry it in ``__type``; botocore normally
    copies that into ``Error.Code`` but some shapes only keep the raw field.
    """
    response = exc.response or {}
    code = response.get("Error", {}).get("Code") or response.get("__type") or ""
    # "com.amazonaws...#ThrottlingException" -> "ThrottlingException"
    return code.rsplit("#", 1)[-1]


def classify_failure(exc: BaseException) -> FailureKind:
    if isinstance(exc, ThrottledError):
        return FailureKind.THROTTLED
    if isinstance(exc, ClientError) and error_code(exc) in THROTTLE_ERROR_CODES:
        return FailureKind.THROTTLED
    return FailureKind.FATAL


@dataclass(frozen=True)
class RetryPolicy:
    """Delay schedule for throttled calls.

    ``max_attempts=None`` retries for as long as the endpoint keeps
    throttling.
    """

    base_delay: float = 0.1
    multiplier: float = 2.0
    max_delay: float = 5.0
    max_attempts: Optional[int] = None

    @classmethod
    def fixed(cls, delay: float = 0.1, max_attempts: Optional[int] = None) -> "RetryPolicy":
        return cls(base_delay=delay, multiplier=1.0, max_delay=delay, max_attempts=max_attempts)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the ``attempt``-th throttled call (0-based)."""
        delay = self.base_delay * (self.multiplier ** attempt)
        return min(delay, self.max_delay)

    def allows(self, attempts: int) -> bool:
        return self.max_attempts is None or attempts < self.max_attempts


def retrying(
    fetch: Callable[[Any], R],
    policy: RetryPolicy,
    classify: Callable[[BaseException], FailureKind] = classify_failure,
    sleep: Callable[[float], None] = time.sleep,
    error_cls: type[FetchError] = FetchError,
    label: str = "",
) -> Callable[[Any], R]:
    """Wrap ``fetch`` so throttled calls are retried with the same request.

    Must only wrap idempotent reads. Fatal failures are raised as
    ``error_cls`` chained to the original exception.
    """

    def wrapped(request: Any) -> R:
        attempts = 0
        while True:
            attempts += 1
            try:
                return fetch(request)
            except Exception as exc:
                if classify(exc) is FailureKind.FATAL:
                    if isinstance(exc, FetchError):
                        raise
                    logger.debug("%s: fatal error: %s", label or "fetch", exc)
                    raise error_cls(_describe(exc)) from exc
                if not policy.allows(attempts):
                    raise ThrottlingExhaustedError(
                        f"{label or 'fetch'} still throttled after {attempts} attempts"
                    ) from exc
                delay = policy.delay_for(attempts - 1)
                logger.warning(
                    "%s: throttled, sleeping %.2fs (attempt %d)",
                    label or "fetch", delay, attempts,
                    extra={"attempt": attempts, "delay_s": delay},
                )
                sleep(delay)

    return wrapped


def _describe(exc: BaseException) -> str:
    if isinstance(exc, InventoryError):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"
