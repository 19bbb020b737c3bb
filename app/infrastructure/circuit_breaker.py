"""
Circuit Breaker configuration for external service calls.

Each outbound adapter (payment gateway, tour supplier) owns its own breaker,
built here and injected at construction time, so one failing upstream never
opens the circuit of another and tests never share breaker state.

Circuit Breaker Pattern:
- CLOSED: Normal operation, requests pass through
- OPEN: Too many failures, requests fail immediately
- HALF_OPEN: Testing if service recovered, limited requests allowed

pybreaker only tracks synchronous callables, so the guarded call is a plain
function run with asyncio.to_thread; an exception raised inside it counts as
a failure.
"""

import asyncio
import logging
from typing import Callable, TypeVar

import httpx
from pybreaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerListener

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FAIL_MAX = 5
DEFAULT_RESET_TIMEOUT = 60


class UpstreamServerError(Exception):
    """Raised inside a guarded call when the upstream answered 5xx/408/429."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"Upstream answered HTTP {response.status_code}")


def log_circuit_state_change(breaker_name: str, old_state: str, new_state: str) -> None:
    """
    Log circuit breaker state changes for monitoring and alerting.
    """
    logger.warning(
        "Circuit breaker state changed",
        extra={
            "breaker_name": breaker_name,
            "old_state": old_state,
            "new_state": new_state,
        },
    )


class StateChangeListener(CircuitBreakerListener):
    """Listener for circuit breaker state changes."""

    def __init__(self, name: str):
        self.name = name

    def state_change(self, cb, old_state, new_state):
        log_circuit_state_change(
            self.name,
            old_state.name if old_state else "none",
            new_state.name,
        )


def build_breaker(
    name: str,
    fail_max: int = DEFAULT_FAIL_MAX,
    reset_timeout: int = DEFAULT_RESET_TIMEOUT,
) -> CircuitBreaker:
    return CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name=f"{name}_circuit_breaker",
        listeners=[StateChangeListener(name)],
    )


async def call_with_breaker(breaker: CircuitBreaker, func: Callable[..., T], *args, **kwargs) -> T:
    """Runs func in a worker thread under the breaker."""
    return await asyncio.to_thread(breaker.call, func, *args, **kwargs)


__all__ = [
    "CircuitBreakerError",
    "UpstreamServerError",
    "build_breaker",
    "call_with_breaker",
]
