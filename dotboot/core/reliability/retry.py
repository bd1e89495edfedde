"""
Network retrier — bounded exponential backoff around remote commands.

Wraps a zero-argument callable returning a ``CommandResult``.  Each
failure is classified against the policy's non-retryable signatures
(auth / permission errors) before deciding to retry; those return
immediately because repeating them cannot succeed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from dotboot.core.models.command import CommandResult
from dotboot.core.models.retry import RetryPolicy

logger = logging.getLogger(__name__)


def with_retry(
    cmd_fn: Callable[[], CommandResult],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "",
) -> CommandResult:
    """Run ``cmd_fn`` until it succeeds, fails non-retryably, or runs out.

    Args:
        cmd_fn: Performs one attempt.
        policy: Attempt count, delays and non-retryable signatures.
        sleep: Delay function (injected in tests).
        label: Operation name for log lines.

    Returns:
        The successful result, or the last failure.  ``attempts`` on
        the returned result is the number of attempts made.
    """
    label = label or "network operation"
    result: CommandResult | None = None

    for attempt in range(1, policy.max_attempts + 1):
        logger.info("Attempting %s (attempt %d/%d)", label, attempt, policy.max_attempts)
        result = cmd_fn()

        if result.ok:
            if attempt > 1:
                logger.info("%s succeeded on attempt %d", label, attempt)
            return result.model_copy(update={"attempts": attempt})

        logger.warning(
            "%s failed (attempt %d/%d) with exit code %d",
            label,
            attempt,
            policy.max_attempts,
            result.returncode,
        )
        logger.debug("Error output: %s", result.output or "No error output available")

        if not policy.is_retryable(result.returncode, result.output):
            logger.error("Non-retryable error detected for %s, aborting retries", label)
            return result.model_copy(update={"attempts": attempt})

        if attempt < policy.max_attempts:
            delay = policy.delay_for(attempt)
            logger.info("Waiting %.1fs before retry...", delay)
            sleep(delay)

    assert result is not None
    logger.error("%s failed after %d attempts", label, policy.max_attempts)
    return result.model_copy(update={"attempts": policy.max_attempts})
