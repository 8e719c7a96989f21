"""Bounded exponential backoff around a single extraction attempt."""

import random
import time
from collections.abc import Callable
from typing import TypeVar

from ..config import DEFAULT_BASE_DELAY_SECONDS, DEFAULT_MAX_ATTEMPTS
from ..logger import logger
from .classifier import ErrorKind, classify_error

T = TypeVar("T")


class RetryPolicy:
    """Retries transient failures with exponential backoff.

    The delay before retry k (1-indexed) is ``base_delay * 2**(k - 1)``,
    i.e. 1s, 2s, 4s with the default base delay. Permanent failures are
    raised on the first occurrence. When attempts run out, the last
    transient error is raised.

    Sleeping happens on the calling thread only, so other page workers keep
    running while one of them backs off.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        jitter: float = 0.0,
        classifier: Callable[[BaseException], ErrorKind] = classify_error,
        sleep: Callable[[float], None] | None = None,
    ):
        """Initialize the retry policy.

        Args:
            max_attempts: Total attempts including the first one (>= 1).
            base_delay: Delay in seconds before the first retry.
            jitter: Upper bound in seconds of random delay added to each backoff.
            classifier: Function labelling an error transient or permanent.
            sleep: Sleep function. Defaults to time.sleep.

        Raises:
            ValueError: If max_attempts < 1 or a delay is negative.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if base_delay < 0 or jitter < 0:
            raise ValueError("base_delay and jitter must be non-negative")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.jitter = jitter
        self._classifier = classifier
        self._sleep = sleep

    def delay_for(self, retry_number: int) -> float:
        """Return the backoff delay before the given retry (1-indexed)."""
        delay = self.base_delay * (2 ** (retry_number - 1))
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay

    def execute(self, attempt_fn: Callable[[], T], operation: str = "inference") -> T:
        """Call attempt_fn until it succeeds, fails permanently, or attempts run out.

        Args:
            attempt_fn: Zero-argument callable performing one attempt.
            operation: Name used in log lines.

        Returns:
            Whatever attempt_fn returns on its first success.

        Raises:
            Exception: The permanent error, or the last transient error once
                all attempts are used.
        """
        sleep = self._sleep or time.sleep

        for attempt in range(1, self.max_attempts + 1):
            try:
                return attempt_fn()
            except Exception as e:
                kind = self._classifier(e)
                if kind is ErrorKind.PERMANENT:
                    logger.warning(
                        "permanent error, not retrying",
                        operation=operation,
                        attempt=attempt,
                        error=str(e),
                    )
                    raise

                if attempt >= self.max_attempts:
                    logger.error(
                        "retries exhausted",
                        operation=operation,
                        max_attempts=self.max_attempts,
                        error=str(e),
                    )
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    "transient error, retrying",
                    operation=operation,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_seconds=round(delay, 3),
                    error=str(e),
                )
                sleep(delay)

        # Unreachable: the loop either returns or raises
        raise RuntimeError("retry loop exited without a result")
