import logging

from mediaflow.page_timing import (
    has_active_timing,
    page_load_timing,
    record_sql_time,
    storage_call_timing,
    timed_page_load,
)


def test_timing_is_scoped_to_the_callback() -> None:
    assert has_active_timing() is False
    with page_load_timing("dashboard", "load") as timing:
        assert has_active_timing() is True
        record_sql_time(0.25)
        with storage_call_timing("signed_url", "7/1.png"):
            pass
    assert has_active_timing() is False
    assert timing.sql_seconds == 0.25
    assert timing.storage_calls == 1


def test_recording_outside_a_callback_is_ignored() -> None:
    record_sql_time(1.0)
    assert has_active_timing() is False


def test_wrapped_callback_logs_summary(caplog) -> None:
    log = logging.getLogger("tests.page_timing")

    def _load(value):
        return value * 2

    wrapped = timed_page_load("dashboard", _load, log=log)
    with caplog.at_level(logging.INFO, logger="tests.page_timing"):
        assert wrapped(21) == 42

    assert wrapped.__name__ == "_load"
    assert "page=dashboard callback=_load" in caplog.text
