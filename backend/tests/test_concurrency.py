import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from invconsole.services.concurrency import ConcurrentWriteConflict, run_with_retry


def _flaky(failures, exc_factory, result="done"):
    calls = []

    def func():
        calls.append(1)
        if len(calls) <= failures:
            raise exc_factory()
        return result

    func.calls = calls
    return func


@pytest.mark.parametrize("exc_factory", [
    lambda: OperationalError("UPDATE stock_records", {}, Exception("database is locked")),
    lambda: StaleDataError("version mismatch"),
    lambda: ConcurrentWriteConflict("row inserted concurrently"),
])
def test_retries_then_succeeds(db_session, exc_factory):
    func = _flaky(2, exc_factory)
    assert run_with_retry(func, attempts=3, backoff_base=0) == "done"
    assert len(func.calls) == 3


def test_gives_up_after_attempt_limit(db_session):
    func = _flaky(5, lambda: StaleDataError("version mismatch"))
    with pytest.raises(StaleDataError):
        run_with_retry(func, attempts=3, backoff_base=0)
    assert len(func.calls) == 3


def test_other_errors_are_not_retried(db_session):
    func = _flaky(1, lambda: ValueError("bad input"))
    with pytest.raises(ValueError):
        run_with_retry(func, attempts=3, backoff_base=0)
    assert len(func.calls) == 1


def test_policy_defaults_come_from_config(app, db_session):
    func = _flaky(10, lambda: ConcurrentWriteConflict("again"))
    with pytest.raises(ConcurrentWriteConflict):
        run_with_retry(func)
    assert len(func.calls) == app.config["RETRY_ATTEMPTS"]


def test_zero_attempts_still_runs_once(app, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "RETRY_ATTEMPTS", 0)
    func = _flaky(0, lambda: StaleDataError("unused"))
    assert run_with_retry(func) == "done"
    assert len(func.calls) == 1
