"""
Bounded retry for calls to remote providers.

The policy is a plain object (attempts, backoff, retryable predicate, sleep)
so tests can inject a fake sleep and run without real delays.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class RetryExhaustedError(Exception):
    """Raised when every attempt of a retried call failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Call failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def fixed_delay(seconds: float) -> Callable[[int], float]:
    """Backoff returning the same delay for every attempt."""
    return lambda attempt: seconds


def exponential_backoff(base: float, factor: float = 2.0, cap: float = 60.0):
    """Backoff of base * factor^(attempt-1), capped."""
    return lambda attempt: min(cap, base * factor ** (attempt - 1))


def retry_everything(error: BaseException) -> bool:
    return True


@dataclass
class RetryPolicy:
    """
    Retry a call up to max_attempts times with a delay between attempts.

    The delay after failed attempt n (1-based) is backoff(n); by default a
    fixed `delay` seconds. There is no sleep after the final attempt. Errors
    for which `retryable` returns False are raised immediately.

    Usage:
        policy = RetryPolicy(max_attempts=3, delay=5.0)
        response = policy.call(client.embed, texts, model)
    """

    max_attempts: int = 3
    delay: float = 5.0
    backoff: Optional[Callable[[int], float]] = None
    retryable: Callable[[BaseException], bool] = retry_everything
    sleep: Callable[[float], Any] = time.sleep

    # Delays actually waited during the last call
    waits: List[float] = field(default_factory=list)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.backoff is None:
            self.backoff = fixed_delay(self.delay)

    def call(self, fn: Callable, *args, **kwargs) -> Any:
        """
        Execute a function under the retry policy.

        Returns:
            Function result

        Raises:
            RetryExhaustedError: If all attempts failed
            Exception: A non-retryable error, unchanged
        """
        self.waits = []
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                if not self.retryable(e):
                    logger.error(f"Non-retryable error on attempt {attempt}: {e}")
                    raise
                last_error = e
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed: {e}"
                )

            if attempt < self.max_attempts:
                wait = self.backoff(attempt)
                self.waits.append(wait)
                self.sleep(wait)

        raise RetryExhaustedError(self.max_attempts, last_error)
