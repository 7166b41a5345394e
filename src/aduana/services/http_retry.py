from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import requests

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryableHTTPError(requests.exceptions.HTTPError):
    """Gateway or rate-limit status that usually clears on a later attempt."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to call, and how long to wait in between.

    Waits grow geometrically from ``first_delay`` by ``multiplier``, are capped
    at ``delay_cap`` and spread by ``jitter`` (a fraction of the wait).
    """

    attempts: int = 3
    first_delay: float = 1.0
    delay_cap: float = 8.0
    multiplier: float = 2.0
    jitter: float = 0.25
    retry_on: tuple[type[Exception], ...] = (
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        RetryableHTTPError,
    )
    retry_statuses: frozenset[int] = frozenset({429, 502, 503, 504})

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("RetryPolicy.attempts deve ser pelo menos 1")

    def delay(self, failures: int) -> float:
        """Seconds to wait after ``failures`` consecutive failed calls (1-based)."""
        wait = min(self.first_delay * self.multiplier ** (failures - 1), self.delay_cap)
        spread = wait * self.jitter
        return max(0.0, wait + random.uniform(-spread, spread))


PTAX_READ = RetryPolicy()


def raise_for_status(resp: requests.Response, policy: RetryPolicy, action: str) -> None:
    """Map a failed response to RetryableHTTPError or a plain RuntimeError."""
    if resp.ok:
        return
    message = f"Erro ao consultar {action} (HTTP {resp.status_code}): {(resp.text or '')[:300]}"
    if resp.status_code in policy.retry_statuses:
        raise RetryableHTTPError(message, resp.status_code)
    raise RuntimeError(message)


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    action: str = "request",
    sleep_func: Callable[[float], object] | None = None,
) -> T:
    """Call ``func()`` up to ``policy.attempts`` times.

    Only exceptions in ``policy.retry_on`` trigger another attempt; the last
    attempt's outcome is returned or raised unchanged.
    """
    sleep = sleep_func or time.sleep
    for failures in range(1, policy.attempts):
        try:
            return func()
        except policy.retry_on as exc:
            wait = policy.delay(failures)
            logger.warning(
                "%s failed (%s), attempt %d/%d; retrying in %.1fs",
                action,
                type(exc).__name__,
                failures,
                policy.attempts,
                wait,
            )
            sleep(wait)
    return func()
