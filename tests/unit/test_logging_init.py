from __future__ import annotations

import logging
import threading
from io import StringIO

import demoverify.logging.init as log_init
from demoverify.logging.init import (
    APP_LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    enable_debug,
    get_logger,
    log_summary,
    setup_logging,
)


def _capture(logger: logging.Logger) -> StringIO:
    buf = StringIO()
    for h in logger.handlers:
        h.setStream(buf)
    return buf


def test_setup_logging_creates_logger_with_labeled_formatter():
    """setup_logging configures the application logger once, stdout, labeled."""
    logger = setup_logging()
    assert logger.name == APP_LOGGER_NAME
    assert logger.level == logging.INFO
    assert logger.propagate is False
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)


def test_logging_labeled_prefixes():
    """Labels INFO|WARN|ERROR|SUMMARY prefix each line."""
    logger = setup_logging()
    buf = _capture(logger)
    logger.info("info message")
    logger.warning("warning message")
    logger.error("error message")
    logger.log(SUMMARY_LEVEL, "summary message")
    assert buf.getvalue().splitlines() == [
        "INFO info message",
        "WARN warning message",
        "ERROR error message",
        "SUMMARY summary message",
    ]


def test_module_loggers_share_application_handler():
    logger = setup_logging()
    buf = _capture(logger)
    logging.getLogger("demoverify.reference.loader").warning("child message")
    assert buf.getvalue() == "WARN child message\n"


def test_setup_logging_idempotent():
    logger1 = setup_logging()
    logger2 = setup_logging()
    assert logger1 is logger2
    assert len(logger1.handlers) == 1


def test_get_logger_configures_on_first_use():
    log_init.reset_logging()
    logger = get_logger()
    assert logger is setup_logging()
    assert logging.getLevelName(SUMMARY_LEVEL) == "SUMMARY"


def test_debug_hidden_until_enabled():
    logger = setup_logging()
    buf = _capture(logger)
    logger.debug("hidden")
    enable_debug(logger)
    logger.debug("shown")
    assert buf.getvalue() == "DEBUG shown\n"


def test_log_summary_convenience_function():
    logger = setup_logging()
    buf = _capture(logger)
    log_summary("file=a.csv variant=enrollment rows=1 verified=1 mismatch=0 not_found=0 rate=100")
    assert buf.getvalue().strip() == (
        "SUMMARY file=a.csv variant=enrollment rows=1 verified=1 mismatch=0 not_found=0 rate=100"
    )


def test_debug_tags_worker_threads():
    logger = setup_logging()
    buf = _capture(logger)
    enable_debug(logger)
    worker = threading.Thread(
        target=lambda: logging.getLogger("demoverify.services.engine").debug("variant loaded"),
        name="reference-load_0",
    )
    worker.start()
    worker.join()
    assert buf.getvalue() == "DEBUG [reference-load_0] variant loaded\n"


def test_setup_logging_custom_stream():
    buf = StringIO()
    logger = setup_logging(stream=buf)
    logger.error("upload: failed to parse x.csv")
    assert buf.getvalue() == "ERROR upload: failed to parse x.csv\n"
