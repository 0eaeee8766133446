"""Retry policy for registry requests.

The retry loop is modelled as a small state machine: every attempt outcome
(a status code or a transport error) is fed into ``RetryState`` which
answers with a ``RetryDecision``. The fetcher only executes decisions, so
the policy can be tested without any network.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

# RFC 9110 idempotent methods
IDEMPOTENT_METHODS = frozenset(["GET", "HEAD", "OPTIONS", "PUT", "DELETE"])
# Only safe reads may receive a stale conditional response
READ_METHODS = frozenset(["GET", "HEAD"])

NOT_MODIFIED = 304


class RetryDecision(str, Enum):
    RETURN = "return"  # hand the response to the caller
    RETRY = "retry"  # retry immediately
    RETRY_AFTER_DELAY = "retry_after_delay"
    RAISE = "raise"  # give up on the transport error
    EXHAUSTED = "exhausted"  # give up on repeated 304s
    DEADLINE = "deadline"


@dataclass(frozen=True)
class RetryPolicy:
    """What may be retried, how often and how long to wait.

    Attributes:
        max_retries: Retries allowed past the first attempt
        retry_transport_errors: Retry connection errors and timeouts
        retry_not_modified: Retry 304 responses after ``not_modified_delay``
        not_modified_delay: Seconds to wait before a 304 retry
        deadline: Wall-clock ceiling in seconds for the whole sequence
    """

    max_retries: int = 3
    retry_transport_errors: bool = True
    retry_not_modified: bool = False
    not_modified_delay: float = 1.0
    deadline: Optional[float] = None

    @classmethod
    def for_method(
        cls,
        method: str,
        max_retries: int = 3,
        not_modified_delay: float = 1.0,
        deadline: Optional[float] = None,
    ) -> "RetryPolicy":
        """Default policy for an HTTP method.

        Transport errors are retried for idempotent methods only; the
        304 retry path is reserved for reads.
        """
        method = method.upper()
        return cls(
            max_retries=max_retries,
            retry_transport_errors=method in IDEMPOTENT_METHODS,
            retry_not_modified=method in READ_METHODS,
            not_modified_delay=not_modified_delay,
            deadline=deadline,
        )

    @classmethod
    def single_attempt(cls, deadline: Optional[float] = None) -> "RetryPolicy":
        return cls(
            max_retries=0,
            retry_transport_errors=False,
            retry_not_modified=False,
            deadline=deadline,
        )


@dataclass
class RetryState:
    policy: RetryPolicy
    clock: Callable[[], float] = time.monotonic
    attempts: int = 0
    last_status: Optional[int] = None
    last_error: Optional[BaseException] = None
    started_at: float = field(init=False)

    def __post_init__(self):
        self.started_at = self.clock()

    @property
    def retries_left(self) -> int:
        return max(self.policy.max_retries - (self.attempts - 1), 0)

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def deadline_reached(self, upcoming_delay: float = 0.0) -> bool:
        if self.policy.deadline is None:
            return False
        return self.elapsed() + upcoming_delay >= self.policy.deadline

    def start_attempt(self) -> int:
        self.attempts += 1
        return self.attempts

    def record_response(self, status_code: int) -> RetryDecision:
        self.last_status = status_code
        self.last_error = None

        if status_code != NOT_MODIFIED or not self.policy.retry_not_modified:
            return RetryDecision.RETURN
        if self.retries_left <= 0:
            return RetryDecision.EXHAUSTED
        if self.deadline_reached(self.policy.not_modified_delay):
            return RetryDecision.DEADLINE
        return RetryDecision.RETRY_AFTER_DELAY

    def record_error(self, error: BaseException) -> RetryDecision:
        self.last_status = None
        self.last_error = error

        if not self.policy.retry_transport_errors or self.retries_left <= 0:
            return RetryDecision.RAISE
        if self.deadline_reached():
            return RetryDecision.DEADLINE
        return RetryDecision.RETRY
