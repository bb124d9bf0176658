"""Tests for structured logging configuration.

Run with: pytest backend/tests/test_logging_config.py -v --noconftest
"""

import io
import logging

import structlog


def test_configure_logging_runs_without_error():
    from gallery.core.logging_config import configure_logging

    configure_logging()


def test_stdlib_logger_works_after_configuration():
    from gallery.core.logging_config import configure_logging

    configure_logging()
    logger = logging.getLogger("test.stdlib")
    logger.info("test message from stdlib")


def test_noisy_libraries_are_quieted():
    from gallery.core.logging_config import configure_logging

    configure_logging()
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_json_format_renders_json(monkeypatch):
    from gallery.core import logging_config
    from gallery.core.config import settings

    monkeypatch.setattr(settings, "log_format", "json")
    logging_config.configure_logging()

    root = logging.getLogger()
    formatter = root.handlers[0].formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    monkeypatch.setattr(settings, "log_format", "auto")
    logging_config.configure_logging()


def test_structlog_contextvars_propagate():
    from gallery.core.logging_config import configure_logging

    configure_logging()

    # Capture log output
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        )
    )

    test_logger = logging.getLogger("test.contextvars")
    test_logger.handlers = [handler]
    test_logger.setLevel(logging.INFO)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id="template-req-7")

    test_logger.info("hello with context")

    output = stream.getvalue()
    assert "request_id" in output
    assert "template-req-7" in output

    structlog.contextvars.clear_contextvars()
