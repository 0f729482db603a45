import pytest

from backend.services.retry import RetryBudgetExhausted, RetryPolicy, retry_async


class Flaky:
    def __init__(self, failures: int, error: Exception = RuntimeError("not yet")):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestRetryPolicy:
    def test_delays_double_from_base(self):
        policy = RetryPolicy(max_attempts=5, base_delay=2.0, multiplier=2.0)
        assert [policy.delay_before(k) for k in range(5)] == [0.0, 4.0, 8.0, 16.0, 32.0]

    def test_from_settings_reads_yaml_block(self, test_settings):
        test_settings.yaml_config = {
            "reconciliation": {"max_attempts": 3, "base_delay_seconds": 0.5, "backoff_multiplier": 3},
        }
        policy = RetryPolicy.from_settings(test_settings)
        assert policy == RetryPolicy(max_attempts=3, base_delay=0.5, multiplier=3.0)

    def test_from_settings_defaults(self, test_settings):
        test_settings.yaml_config = {}
        assert RetryPolicy.from_settings(test_settings) == RetryPolicy()


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_first_attempt_does_not_sleep(self, recorded_sleep):
        op = Flaky(failures=0)
        assert await retry_async(op, RetryPolicy(), sleep=recorded_sleep) == "ok"
        assert op.calls == 1
        assert recorded_sleep.delays == []

    @pytest.mark.asyncio
    async def test_succeeds_after_retries(self, recorded_sleep):
        op = Flaky(failures=2)
        assert await retry_async(op, RetryPolicy(), sleep=recorded_sleep) == "ok"
        assert op.calls == 3
        assert recorded_sleep.delays == [4.0, 8.0]

    @pytest.mark.asyncio
    async def test_exhaustion_is_bounded(self, recorded_sleep):
        op = Flaky(failures=100)
        with pytest.raises(RetryBudgetExhausted) as exc_info:
            await retry_async(op, RetryPolicy(max_attempts=5), sleep=recorded_sleep)
        assert op.calls == 5
        assert exc_info.value.attempts == 5
        assert isinstance(exc_info.value.last_error, RuntimeError)
        assert recorded_sleep.delays == [4.0, 8.0, 16.0, 32.0]

    @pytest.mark.asyncio
    async def test_unlisted_errors_propagate_immediately(self, recorded_sleep):
        op = Flaky(failures=1, error=KeyError("boom"))
        with pytest.raises(KeyError):
            await retry_async(op, RetryPolicy(), retry_on=(RuntimeError,), sleep=recorded_sleep)
        assert op.calls == 1
        assert recorded_sleep.delays == []
