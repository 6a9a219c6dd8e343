# src/fusebatch/ingestion/retry.py
"""RetryManager: retry with exponential backoff, via tenacity.

Provides the delivery engine's retry behavior:
- Exponential backoff without jitter: the wait before retry i (1-based) is
  base_delay * 2 ** (i - 1)
- Configurable attempt limit (max_retries + 1 total attempts)
- Retryable error filtering
- Cancellable backoff: the sleep callable may raise to abort the wait

Errors the predicate rejects propagate unchanged. Exhaustion raises
RetriesExhaustedError carrying the attempt count and the last error.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from fusebatch.contracts.config import RuntimeIngestionConfig

T = TypeVar("T")


class RetriesExhaustedError(Exception):
    """Raised when every allowed attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries exhausted after {attempts} attempts: {last_error}")


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Configuration for retry behavior.

    max_attempts is the TOTAL number of tries, not the number of retries.
    So max_attempts=3 means: try, retry, retry (3 total).
    """

    max_attempts: int = 4
    base_delay: float = 1.0  # seconds
    exponential_base: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    @classmethod
    def no_retry(cls) -> RetryConfig:
        """Factory for no-retry configuration (single attempt)."""
        return cls(max_attempts=1)

    @classmethod
    def from_runtime(cls, config: RuntimeIngestionConfig) -> RetryConfig:
        """Factory from the pipeline's runtime configuration.

        Field Mapping:
            config.max_retries + 1 -> max_attempts
            config.retry_delay -> base_delay
        """
        return cls(max_attempts=config.max_retries + 1, base_delay=config.retry_delay)

    def delay_before_retry(self, retry_number: int) -> float:
        """Backoff before the given retry (1 = first retry)."""
        return self.base_delay * self.exponential_base ** (retry_number - 1)


class RetryManager:
    """Runs an operation until it succeeds, fails terminally, or runs out of attempts.

    Example:
        manager = RetryManager(RetryConfig(max_attempts=3, base_delay=0.1))

        result = manager.execute_with_retry(
            lambda: transport.send(context, envelope),
            is_retryable=lambda e: isinstance(e, IngestionError) and e.retryable,
            sleep=context.sleep,
        )
    """

    def __init__(self, config: RetryConfig) -> None:
        self._config = config

    @property
    def config(self) -> RetryConfig:
        return self._config

    def execute_with_retry(
        self,
        operation: Callable[[], T],
        *,
        is_retryable: Callable[[BaseException], bool],
        on_retry: Callable[[int, BaseException, float], None] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> T:
        """Execute operation with retry logic.

        Args:
            operation: Operation to execute
            is_retryable: Function to check if error is retryable
            on_retry: Optional callback before each backoff wait
                (failed attempt number, error, seconds until next attempt)
            sleep: Backoff wait. Exceptions it raises abort the loop and
                propagate unchanged. Defaults to time.sleep.

        Returns:
            Result of operation

        Raises:
            RetriesExhaustedError: If every attempt failed with a retryable error
            Exception: If a non-retryable error occurs
        """

        def before_sleep(retry_state: RetryCallState) -> None:
            if on_retry is None or retry_state.outcome is None or retry_state.next_action is None:
                return
            error = retry_state.outcome.exception()
            assert error is not None, "tenacity only sleeps after a failed attempt"
            on_retry(retry_state.attempt_number, error, retry_state.next_action.sleep)

        attempt = 0
        last_error: BaseException | None = None

        try:
            for attempt_state in Retrying(
                stop=stop_after_attempt(self._config.max_attempts),
                wait=wait_exponential(
                    multiplier=self._config.base_delay,
                    exp_base=self._config.exponential_base,
                    min=0,
                ),
                retry=retry_if_exception(is_retryable),
                before_sleep=before_sleep,
                reraise=False,  # We catch RetryError and convert to RetriesExhaustedError
                sleep=sleep if sleep is not None else time.sleep,
            ):
                with attempt_state:
                    attempt = attempt_state.retry_state.attempt_number
                    try:
                        return operation()
                    except Exception as e:
                        last_error = e
                        raise

        except RetryError as e:
            final_error = last_error or e.last_attempt.exception()
            assert final_error is not None, "RetryError without exception is impossible"
            raise RetriesExhaustedError(attempt, final_error) from final_error

        # Should not reach here - Retrying always returns or raises
        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover
