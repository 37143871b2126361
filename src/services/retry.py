"""
Retry-with-backoff helpers shared by the document verifier and downloader.

Wraps tenacity so both callers describe their schedule with a BackoffPolicy
instead of hand-rolled sleep loops.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)

logger = logging.getLogger(__name__)

EXPONENTIAL = 'exponential'
LINEAR = 'linear'


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Attempt budget and delay schedule.

    Attributes:
        max_attempts: Total attempts, including the first
        base_delay: Delay unit in seconds
        multiplier: Growth factor between exponential delays
        strategy: "exponential" waits base * multiplier^(k-1) after failed
            attempt k; "linear" waits n * base before attempt n
    """
    max_attempts: int
    base_delay: float = 1.0
    multiplier: float = 1.5
    strategy: str = EXPONENTIAL

    def delay_after(self, attempt: int) -> float:
        """
        Seconds to wait after the given failed attempt (1-based).

        Example:
            >>> BackoffPolicy(15, 1.0, 1.5).delay_after(3)
            2.25
            >>> BackoffPolicy(3, 1.0, strategy='linear').delay_after(1)
            2.0
        """
        if self.strategy == LINEAR:
            return (attempt + 1) * self.base_delay
        return self.base_delay * (self.multiplier ** (attempt - 1))

    def wait_strategy(self):
        """Build the equivalent tenacity wait strategy."""
        if self.strategy == LINEAR:
            return wait_incrementing(start=2 * self.base_delay, increment=self.base_delay)
        if self.strategy == EXPONENTIAL:
            return wait_exponential(multiplier=self.base_delay, exp_base=self.multiplier)
        raise ValueError(f"Unknown backoff strategy: {self.strategy}")


def _sleep(seconds: float) -> None:
    time.sleep(seconds)


def _log_before_sleep(label: str) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.info(
            f"{label}: attempt {retry_state.attempt_number} not successful, "
            f"waiting {delay:.2f}s before retry..."
        )
    return log


def build_retrying(
    policy: BackoffPolicy,
    retry: Any,
    label: str,
    on_give_up: Optional[Callable[[RetryCallState], Any]] = None,
) -> Retrying:
    """
    Create a tenacity Retrying object for the given policy.

    Args:
        policy: Attempt budget and delay schedule
        retry: tenacity retry condition (exception type or result predicate)
        label: Name used in log messages
        on_give_up: Called with the final retry state when attempts run out;
            its return value becomes the call's result. When None, tenacity
            raises RetryError.

    Returns:
        Retrying: Call it with the function to run under the policy
    """
    return Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait_strategy(),
        retry=retry,
        sleep=_sleep,
        before_sleep=_log_before_sleep(label),
        retry_error_callback=on_give_up,
    )
