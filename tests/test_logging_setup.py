import io
import json
import logging
import sys

from orderbot.core import logging_setup
from orderbot.core.request_context import clear_request_context, set_request_context


def test_configure_logging_writes_one_json_line_per_record(monkeypatch):
    root_logger = logging.getLogger()
    previous_handlers = list(root_logger.handlers)
    previous_level = root_logger.level
    try:
        logging_setup.configure_logging()
        stream = io.StringIO()
        monkeypatch.setattr(root_logger.handlers[0], "stream", stream)
        set_request_context(sender_id="psid-1", event_id="m_9")

        logging.getLogger("orderbot.test").warning(
            "order created total=%s access_token=%s",
            30000,
            "EAAGsecret",
            extra={"order_id": 7, "duration_ms": 12.5},
        )
    finally:
        clear_request_context()
        root_logger.handlers[:] = previous_handlers
        root_logger.setLevel(previous_level)

    [line] = stream.getvalue().splitlines()
    record = json.loads(line)
    assert record["message"] == "order created total=30000 access_token=***"
    assert record["level"] == "WARNING"
    assert record["module"] == "orderbot.test"
    assert record["order_id"] == 7
    assert record["duration_ms"] == 12.5
    assert record["sender_id"] == "psid-1"
    assert record["event_id"] == "m_9"


def test_json_formatter_includes_exception_text():
    formatter = logging_setup.JsonFormatter("%(message)s")
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("orderbot.test", logging.ERROR, __file__, 1, "failed %s", ("sync",), None)
        record.exc_info = sys.exc_info()

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "failed sync"
    assert "ValueError: boom" in payload["exception"]
