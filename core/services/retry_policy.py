"""
Declarative retry policy for outbound calls.
"""
from dataclasses import dataclass, field
from typing import Dict

from core.domain.errors import ErrorKind

DEFAULT_RETRIES: Dict[ErrorKind, int] = {
    ErrorKind.RATE_LIMITED: 1,
    ErrorKind.UPSTREAM_ERROR: 1,
}


@dataclass(frozen=True)
class RetryPolicy:
    """Number of retries per error kind, with a fixed backoff between attempts.

    Kinds absent from the table are never retried: auth, permission and
    validation failures cannot succeed without caller intervention.
    """
    backoff_seconds: float = 1.0
    retries: Dict[ErrorKind, int] = field(default_factory=lambda: dict(DEFAULT_RETRIES))

    def __post_init__(self):
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds cannot be negative")
        for kind, count in self.retries.items():
            if count < 0:
                raise ValueError(f"Retry count for {kind.value} cannot be negative")

    def retries_for(self, kind: ErrorKind) -> int:
        return self.retries.get(kind, 0)

    def should_retry(self, kind: ErrorKind, attempt: int) -> bool:
        """True if a failure of ``kind`` on retry number ``attempt`` (0-based) may be retried."""
        return attempt < self.retries_for(kind)
