from unittest import mock

import pytest

from cadpager.retry import with_retries, with_retries_configurable


class _Flaky:
    def __init__(self, failures, result="done"):
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ValueError(f"failure {self.calls}")
        return self.result


@mock.patch("cadpager.retry.time.sleep")
def test_success_first_time_does_not_sleep(sleep):
    fn = _Flaky(0)
    assert with_retries_configurable(5, 1.0, fn) == "done"
    assert fn.calls == 1
    sleep.assert_not_called()


@mock.patch("cadpager.retry.time.sleep")
def test_succeeds_after_failures(sleep):
    fn = _Flaky(2, result=42)
    assert with_retries_configurable(5, 0.5, fn) == 42
    assert fn.calls == 3
    assert sleep.call_count == 2


@mock.patch("cadpager.retry.time.sleep")
def test_backoff_doubles(sleep):
    fn = _Flaky(100)
    with pytest.raises(RuntimeError):
        with_retries_configurable(5, 0.25, fn)
    waits = [c.args[0] for c in sleep.call_args_list]
    assert waits[0] == 0.25
    assert all(later == earlier * 2 for earlier, later in zip(waits, waits[1:]))
    assert len(waits) == 4


@mock.patch("cadpager.retry.time.sleep")
def test_exhausted_raises_chained_error(sleep):
    fn = _Flaky(100)
    with pytest.raises(RuntimeError) as info:
        with_retries_configurable(3, 1.0, fn)
    assert fn.calls == 3
    assert str(info.value) == "failed after 3 retries: failure 3"
    assert isinstance(info.value.__cause__, ValueError)


@mock.patch("cadpager.retry.time.sleep")
def test_default_retries(sleep):
    fn = _Flaky(100)
    with pytest.raises(RuntimeError) as info:
        with_retries(fn)
    assert fn.calls == 10
    assert sleep.call_args_list[0].args[0] == 2.0
    assert "failed after 10 retries" in str(info.value)


@mock.patch("cadpager.retry.time.sleep")
def test_default_retries_returns_value(sleep):
    fn = _Flaky(1, result="ok")
    assert with_retries(fn) == "ok"
    assert fn.calls == 2