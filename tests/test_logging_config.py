import logging

from shopqueue.core import logging_config
from shopqueue.core.logging_config import SensitiveDataFilter, setup_logging


def _record(msg):
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="test.py", lineno=1,
        msg=msg, args=(), exc_info=None
    )


def test_sensitive_data_filter():
    filter_ = SensitiveDataFilter()

    record = _record("Customer joined: phone='0812345678', email=jane@example.com")
    filter_.filter(record)
    assert "phone=***MASKED***" in record.msg
    assert "email=***MASKED***" in record.msg
    assert "0812345678" not in record.msg

    record = _record("Notification sent to jane@example.com")
    filter_.filter(record)
    assert record.msg == "Notification sent to ***EMAIL***"

    record = _record("refresh token=abc123")
    filter_.filter(record)
    assert "abc123" not in record.msg

    record = _record("Queue Q004 joined by customer_name=Somchai, phone=0899999999")
    filter_.filter(record)
    assert record.msg == "Queue Q004 joined by customer_name=***MASKED***, phone=***MASKED***"

    # Non-string msg
    record.msg = 123
    assert filter_.filter(record) is True


def test_setup_logging(tmp_path, monkeypatch):
    monkeypatch.setattr(logging_config.settings, "LOG_DIR", str(tmp_path))
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level

    try:
        log_file = setup_logging()
        assert log_file.name == "shopqueue.log"
        assert log_file.exists()
        assert len(root_logger.handlers) == 2
        assert all(
            any(isinstance(f, SensitiveDataFilter) for f in handler.filters)
            for handler in root_logger.handlers
        )

        # Repeated setup does not stack handlers
        setup_logging()
        assert len(root_logger.handlers) == 2
    finally:
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers = original_handlers
        root_logger.setLevel(original_level)
