"""
Backoff for the gateway HTTP transport and LLM provider calls.

Only GETs (file reads, branch lookups) go through ``retry_sync``; branch
creation, commits, pull requests, issues and mail are sent once, and the
workflow engine decides what a failure means. ``calculate_backoff`` is also
used by the LLM providers between rate-limited completions.
"""

import random
import functools
import logging
import time
from typing import TypeVar, Callable, Tuple, Type
from dataclasses import dataclass

import requests

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryableError(Exception):
    """A gateway response that may succeed on a second GET, e.g. GitHub returning 502."""
    pass


@dataclass
class RetryConfig:
    """
    How hard the transport tries a GET before raising ``TransportFailure``.

    ``max_attempts`` counts the first request. Waits double from ``min_wait``
    up to ``max_wait``; with ``jitter`` each wait is cut to a random 50-100%
    so gateways restarted together do not retry in lockstep.
    """
    max_attempts: int = 3
    backoff_factor: float = 1.0
    min_wait: float = 1.0
    max_wait: float = 30.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)

    def wrap(self, func: Callable[..., T]) -> Callable[..., T]:
        """Apply ``retry_sync`` with these settings."""
        return retry_sync(
            max_attempts=self.max_attempts,
            backoff_factor=self.backoff_factor,
            min_wait=self.min_wait,
            max_wait=self.max_wait,
            jitter=self.jitter,
            retryable_exceptions=self.retryable_exceptions,
        )(func)


def calculate_backoff(
    attempt: int,
    backoff_factor: float,
    min_wait: float,
    max_wait: float,
    jitter: bool
) -> float:
    """Seconds to sleep before retry number ``attempt + 1`` (``attempt`` is 0-based)."""
    wait = min(max_wait, min_wait * (2 ** attempt) * backoff_factor)
    if jitter:
        wait = wait * (0.5 + random.random() * 0.5)
    return wait


def retry_sync(
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)
) -> Callable:
    """
    Retry a blocking gateway read on ``retryable_exceptions``.

    The last exception is re-raised once ``max_attempts`` is spent, so the
    caller still maps it to a ``TransportFailure`` outcome.

    Example:
        @retry_sync(max_attempts=3, retryable_exceptions=(requests.ConnectionError,))
        def fetch_ref(session, url):
            return session.get(url, timeout=30)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt + 1 >= max_attempts:
                        logger.error(f"{func.__name__} gave up after {max_attempts} attempt(s): {e}")
                        raise

                    wait_time = calculate_backoff(
                        attempt, backoff_factor, min_wait, max_wait, jitter
                    )
                    logger.warning(
                        f"{func.__name__} attempt {attempt + 1}/{max_attempts} failed, "
                        f"retrying in {wait_time:.2f}s: {e}"
                    )
                    time.sleep(wait_time)

            raise RuntimeError(f"{func.__name__} called with max_attempts={max_attempts}")

        return wrapper
    return decorator


# 5xx from GitHub or Jira is usually a deploy or a load balancer hiccup
RETRYABLE_STATUS = frozenset({500, 502, 503, 504})

HTTP_RETRY = RetryConfig(
    max_attempts=3,
    backoff_factor=1.0,
    min_wait=1.0,
    max_wait=10.0,
    jitter=True,
    retryable_exceptions=(requests.ConnectionError, requests.Timeout, RetryableError)
)
