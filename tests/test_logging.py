import logging

import orjson
import pytest

from scroll_export.extractor.progress import LoggingProgressReporter
from scroll_export.utils.logging import JsonFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("scroll_export.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extras():
    line = JsonFormatter().format(_record("Export written", records=3, file_path="/tmp/data.json"))
    payload = orjson.loads(line)

    assert payload["message"] == "Export written"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "scroll_export.test"
    assert payload["records"] == 3
    assert payload["file_path"] == "/tmp/data.json"
    assert "lineno" not in payload


def test_json_formatter_serializes_unknown_types():
    payload = orjson.loads(JsonFormatter().format(_record("x", ids={7})))
    assert payload["ids"] == "{7}"


def test_setup_logging_installs_one_stdout_handler(restore_root_logger):
    setup_logging("debug", "text")
    setup_logging("warning", "json")

    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)
    assert restore_root_logger.level == logging.WARNING


def test_setup_logging_rejects_unknown_format(restore_root_logger):
    with pytest.raises(ValueError):
        setup_logging("INFO", "xml")


def test_progress_logs_checkpoints(caplog):
    caplog.set_level(logging.INFO, logger="scroll_export.extractor.progress")
    progress = LoggingProgressReporter(every=2, name="partner")

    progress.start(5)
    for _ in range(5):
        progress.increment()
    progress.finish("Done")

    checkpoints = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Progress: ")]
    assert checkpoints == ["Progress: partner 2/5 (40.0%)", "Progress: partner 4/5 (80.0%)"]
    assert caplog.records[-1].getMessage().startswith("Done: partner 5/5")


def test_progress_percent_of_empty_run():
    progress = LoggingProgressReporter()
    progress.start(0)
    assert progress.percent == 100.0
