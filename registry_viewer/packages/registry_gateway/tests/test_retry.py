import httpx
import pytest

from ..retry import RetryDecision, RetryPolicy, RetryState


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _state(policy: RetryPolicy, clock=None) -> RetryState:
    if clock is None:
        return RetryState(policy=policy)
    return RetryState(policy=policy, clock=clock)


@pytest.mark.parametrize(
    "method, transport, not_modified",
    [
        ("GET", True, True),
        ("HEAD", True, True),
        ("PUT", True, False),
        ("DELETE", True, False),
        ("POST", False, False),
        ("patch", False, False),
    ],
)
def test_policy_for_method(method, transport, not_modified):
    policy = RetryPolicy.for_method(method)
    assert policy.retry_transport_errors is transport
    assert policy.retry_not_modified is not_modified


class TestRetryState:
    def test_success_is_returned(self):
        state = _state(RetryPolicy.for_method("GET"))
        state.start_attempt()
        assert state.record_response(200) == RetryDecision.RETURN

    def test_error_status_is_returned_not_retried(self):
        state = _state(RetryPolicy.for_method("GET"))
        state.start_attempt()
        assert state.record_response(500) == RetryDecision.RETURN

    def test_not_modified_retries_until_bound(self):
        state = _state(RetryPolicy.for_method("GET", max_retries=3))
        decisions = []
        for _ in range(4):
            state.start_attempt()
            decisions.append(state.record_response(304))

        assert decisions == [
            RetryDecision.RETRY_AFTER_DELAY,
            RetryDecision.RETRY_AFTER_DELAY,
            RetryDecision.RETRY_AFTER_DELAY,
            RetryDecision.EXHAUSTED,
        ]
        assert state.attempts == 4

    def test_not_modified_on_mutation_is_returned(self):
        state = _state(RetryPolicy.for_method("PUT"))
        state.start_attempt()
        assert state.record_response(304) == RetryDecision.RETURN

    def test_transport_errors_retry_without_delay_then_raise(self):
        state = _state(RetryPolicy.for_method("GET", max_retries=3))
        error = httpx.ConnectError("Connection refused")
        decisions = []
        for _ in range(4):
            state.start_attempt()
            decisions.append(state.record_error(error))

        assert decisions == [
            RetryDecision.RETRY,
            RetryDecision.RETRY,
            RetryDecision.RETRY,
            RetryDecision.RAISE,
        ]
        assert state.last_error is error

    def test_single_attempt_never_retries(self):
        state = _state(RetryPolicy.single_attempt())
        state.start_attempt()
        assert state.record_error(httpx.ConnectError("boom")) == RetryDecision.RAISE

    def test_deadline_stops_retries(self):
        clock = FakeClock()
        policy = RetryPolicy.for_method("GET", not_modified_delay=1.0, deadline=2.5)
        state = _state(policy, clock)

        state.start_attempt()
        assert state.record_response(304) == RetryDecision.RETRY_AFTER_DELAY

        clock.now += 1.7
        state.start_attempt()
        assert state.record_response(304) == RetryDecision.DEADLINE

    def test_deadline_stops_transport_retries(self):
        clock = FakeClock()
        state = _state(RetryPolicy.for_method("GET", deadline=5.0), clock)

        state.start_attempt()
        clock.now += 6
        assert state.record_error(httpx.ReadTimeout("slow")) == RetryDecision.DEADLINE
