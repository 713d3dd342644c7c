import logging

from ledger_import.logging_setup import format_event, log_event


def test_format_event_renders_key_values():
    line = format_event(
        "import_statement", "done", batch_id=7, filename="jan 2025.csv", note=None, period="2025-01"
    )

    assert line == "import_statement:done batch_id=7 filename='jan 2025.csv' period=2025-01"


def test_log_event_respects_level(caplog):
    logger = logging.getLogger("tests.events")

    with caplog.at_level(logging.WARNING, logger="tests.events"):
        log_event(logger, "ledgers", "lock", user_id="u1")
        log_event(logger, "ledgers", "auto_lock_skipped", level=logging.WARNING, reason="mismatch")

    assert [r.getMessage() for r in caplog.records] == ["ledgers:auto_lock_skipped reason=mismatch"]
