"""Step retry policy with exponential backoff.

Usage:
    policy = RetryPolicy(max_attempts=3, initial_delay_ms=1000)
    result = await with_retry(lambda: call_api(payload), policy, context={"node_id": "n1"})

Errors are classified on every failed attempt. Non-retryable errors
(authentication, validation, ...) are re-raised at once; the rest wait
``compute_delay(attempt)`` and try again until attempts run out.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from workflow.errors import classify_error

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000
DEFAULT_BACKOFF_MULTIPLIER = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff parameters. Delays are in milliseconds."""
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        """Build the engine default from application settings."""
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            initial_delay_ms=settings.RETRY_INITIAL_DELAY_MS,
            max_delay_ms=settings.RETRY_MAX_DELAY_MS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        )

    @classmethod
    def from_dict(cls, config: Optional[dict], base: Optional["RetryPolicy"] = None) -> "RetryPolicy":
        """Create a policy from a node's ``config.retry`` block.

        Accepts camelCase (``maxAttempts``, ``initialDelay``, ``maxDelay``,
        ``backoffMultiplier``) or snake_case keys. Missing keys come from
        ``base`` (or the defaults).
        """
        base = base or cls()
        config = config or {}

        def pick(*keys, default):
            for key in keys:
                value = config.get(key)
                if value is not None:
                    return value
            return default

        return cls(
            max_attempts=max(1, int(pick("maxAttempts", "max_attempts", default=base.max_attempts))),
            initial_delay_ms=int(pick(
                "initialDelay", "initialDelayMs", "initial_delay_ms", default=base.initial_delay_ms,
            )),
            max_delay_ms=int(pick("maxDelay", "maxDelayMs", "max_delay_ms", default=base.max_delay_ms)),
            backoff_multiplier=float(pick(
                "backoffMultiplier", "backoff_multiplier", default=base.backoff_multiplier,
            )),
        )

    def to_dict(self) -> dict:
        """Serialize in the camelCase shape used by node configs."""
        return {
            "maxAttempts": self.max_attempts,
            "initialDelay": self.initial_delay_ms,
            "maxDelay": self.max_delay_ms,
            "backoffMultiplier": self.backoff_multiplier,
        }

    def compute_delay(self, attempt: int) -> int:
        """Delay in ms after the given failed attempt (1-based)."""
        delay = self.initial_delay_ms * (self.backoff_multiplier ** (attempt - 1))
        return int(min(delay, self.max_delay_ms))

    def delays(self) -> list[int]:
        """Waits between consecutive attempts, in order."""
        return [self.compute_delay(attempt) for attempt in range(1, self.max_attempts)]


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    context: Optional[dict[str, Any]] = None,
    on_retry: Optional[Callable] = None,
) -> T:
    """Await ``operation()`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument async callable, invoked once per attempt.
        policy: RetryPolicy to apply (defaults when omitted).
        context: Extra fields attached to retry log lines.
        on_retry: Optional callback(attempt, error, delay_ms) called before each wait.

    Returns:
        The operation's result.

    Raises:
        The first non-retryable error, or the last error once attempts are exhausted.
    """
    policy = policy or RetryPolicy()
    log_context = context or {}
    attempt = 0

    while True:
        try:
            return await operation()
        except Exception as e:
            attempt += 1
            classification = classify_error(e)

            if not classification.retryable:
                logger.info(
                    "Error is not retryable",
                    attempt=attempt,
                    error_type=classification.type.value,
                    error=classification.message,
                    **log_context,
                )
                raise

            if attempt >= policy.max_attempts:
                logger.error(
                    "Max retry attempts reached",
                    attempt=attempt,
                    error_type=classification.type.value,
                    error=classification.message,
                    **log_context,
                )
                raise

            delay_ms = policy.compute_delay(attempt)
            logger.warning(
                f"Attempt {attempt} failed, retrying in {delay_ms}ms",
                attempt=attempt,
                delay_ms=delay_ms,
                error_type=classification.type.value,
                error=classification.message,
                **log_context,
            )

            if on_retry:
                if asyncio.iscoroutinefunction(on_retry):
                    await on_retry(attempt, e, delay_ms)
                else:
                    on_retry(attempt, e, delay_ms)

            await asyncio.sleep(delay_ms / 1000)
