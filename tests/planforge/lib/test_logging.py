"""
Tests for logging setup and secret masking.
"""

import io
import json
import logging

import pytest
import structlog

from planforge.lib.logging import mask_secret, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestMaskSecret:
    def test_missing(self) -> None:
        assert mask_secret(None) == "missing"
        assert mask_secret("") == "missing"

    def test_never_contains_value(self) -> None:
        masked = mask_secret("sk-very-secret")
        assert "sk-" not in masked
        assert masked == "present (length: 14)"


class TestSetupLogging:
    def test_configures_root_handler(self) -> None:
        setup_logging(dev_mode=True, log_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_quiets_http_loggers(self) -> None:
        setup_logging(dev_mode=False, log_level="INFO")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("keyring").level == logging.WARNING

    def test_extra_fields_rendered(self) -> None:
        stream = io.StringIO()
        setup_logging(dev_mode=False, log_level="INFO", stream=stream)

        logging.getLogger("planforge.services").info(
            "Plan created", extra={"plan_id": "abc-123"}
        )

        record = json.loads(stream.getvalue().splitlines()[-1])
        assert record["event"] == "Plan created"
        assert record["plan_id"] == "abc-123"
        assert record["logger"] == "planforge.services"
        assert record["level"] == "info"

    def test_exception_rendered_as_text(self) -> None:
        stream = io.StringIO()
        setup_logging(dev_mode=False, log_level="INFO", stream=stream)

        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            logging.getLogger("planforge.services").error("Write failed", exc_info=True)

        record = json.loads(stream.getvalue().splitlines()[-1])
        assert "RuntimeError: disk full" in record["exception"]
