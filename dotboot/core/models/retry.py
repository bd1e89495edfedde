"""
Retry policy — configuration for the network retrier.

Pure configuration: attempt counters live in the retrier call, never
here.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_NON_RETRYABLE = (
    "permission denied",
    "authentication failed",
    "access denied",
    "could not read username",
    "repository not found",
)


class RetryPolicy(BaseModel):
    """Bounded exponential backoff.

    The delay before attempt ``n + 1`` is
    ``min(initial_delay * multiplier ** (n - 1), delay_cap)``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=2.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    delay_cap: float = Field(default=30.0, ge=0)
    non_retryable_patterns: tuple[str, ...] = DEFAULT_NON_RETRYABLE
    non_retryable_exit_codes: tuple[int, ...] = ()

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return min(self.initial_delay * self.multiplier ** (attempt - 1), self.delay_cap)

    def is_retryable(self, returncode: int, output: str) -> bool:
        """False when the failure matches an auth/permission signature."""
        if returncode in self.non_retryable_exit_codes:
            return False
        lowered = output.lower()
        return not any(pattern.lower() in lowered for pattern in self.non_retryable_patterns)

    @classmethod
    def for_context(cls, unattended: bool) -> RetryPolicy:
        """Default profile: freshly booted unattended hosts get more patience."""
        if unattended:
            return cls(max_attempts=5, initial_delay=5.0)
        return cls()


class RetrySettings(BaseModel):
    """Manifest overrides for the two retry profiles."""

    attended: RetryPolicy = Field(default_factory=lambda: RetryPolicy.for_context(False))
    unattended: RetryPolicy = Field(default_factory=lambda: RetryPolicy.for_context(True))

    def policy(self, unattended: bool) -> RetryPolicy:
        return self.unattended if unattended else self.attended
