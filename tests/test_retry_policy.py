import threading

from orderflow.services.retry_policy import RetryPolicy


def test_backoff_schedule_is_linear():
    policy = RetryPolicy(max_attempts=3, base_delay_seconds=0.5, attempt_timeout_seconds=5)

    assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 1.5]


def test_returns_value_on_first_success():
    policy = RetryPolicy(max_attempts=3, base_delay_seconds=0, attempt_timeout_seconds=0)

    outcome = policy.run(lambda value: value * 2, 21, label="double")

    assert outcome.ok is True
    assert outcome.value == 42
    assert outcome.attempts == 1


def test_exhausted_retries_return_typed_failure_and_sleep_between_attempts():
    sleeps = []
    calls = []

    def always_fails():
        calls.append(1)
        raise ConnectionError("boom")

    policy = RetryPolicy(max_attempts=3, base_delay_seconds=0.5, attempt_timeout_seconds=0, sleep=sleeps.append)
    outcome = policy.run(always_fails, label="rpc")

    assert outcome.ok is False
    assert outcome.attempts == 3
    assert isinstance(outcome.last_error, ConnectionError)
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]


def test_attempt_exceeding_timeout_is_abandoned():
    gate = threading.Event()

    def hangs():
        gate.wait(timeout=2)
        return "late"

    policy = RetryPolicy(max_attempts=2, base_delay_seconds=0, attempt_timeout_seconds=0.05, sleep=lambda _: None)
    try:
        outcome = policy.run(hangs, label="slow")
    finally:
        gate.set()

    assert outcome.ok is False
    assert outcome.timed_out is True
    assert outcome.attempts == 2


def test_zero_attempts_still_tries_once():
    policy = RetryPolicy(max_attempts=0, base_delay_seconds=0, attempt_timeout_seconds=0)

    outcome = policy.run(lambda: "ok")

    assert outcome.ok is True
    assert outcome.attempts == 1
