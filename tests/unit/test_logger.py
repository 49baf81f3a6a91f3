"""
Unit tests for structured logging and credential redaction.
"""
import io
import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from core.services.logger import REDACTED, configure_logging, redact
from infrastructure.ado.http_client import basic_auth_header

PAT = "pat-that-must-not-appear"


@pytest.fixture
def captured():
    stream = io.StringIO()
    logger = configure_logging(level="DEBUG", fmt="json", logger_name="tests.redaction", stream=stream)
    logger.propagate = False
    yield logger, stream
    logger.handlers = []


def _records(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestRedact:
    """Test the text redaction helper."""

    def test_basic_credentials(self):
        """Test encoded Basic credentials are masked."""
        text = f"header {basic_auth_header(PAT)}"
        assert redact(text) == f"header Basic {REDACTED}"

    def test_authorization_header(self):
        """Test Authorization values are masked in dict-like text."""
        text = "{'Authorization': 'Basic OnNlY3JldHZhbHVl', 'Accept': 'application/json'}"
        result = redact(text)
        assert "OnNlY3JldHZhbHVl" not in result
        assert "application/json" in result


class TestStructuredLogging:
    """Test JSON output and the redacting filter."""

    def test_json_fields(self, captured):
        """Test events and extra fields are emitted as JSON."""
        logger, stream = captured
        logger.info("test_case_created", extra={"test_case_id": 1001, "project": "Fabrikam"})
        record = _records(stream)[0]
        assert record["event"] == "test_case_created"
        assert record["test_case_id"] == 1001
        assert record["level"] == "INFO"

    def test_secret_extra_keys_masked(self, captured):
        """Test fields named like secrets are masked."""
        logger, stream = captured
        logger.warning("request", extra={"pat": PAT, "headers": {"Authorization": basic_auth_header(PAT)}})
        output = stream.getvalue()
        assert PAT not in output
        assert basic_auth_header(PAT) not in output
        record = _records(stream)[0]
        assert record["pat"] == REDACTED
        assert record["headers"]["Authorization"] == REDACTED

    def test_message_args_masked(self, captured):
        """Test secrets passed as format args are masked."""
        logger, stream = captured
        logger.error("sending %s", {"Authorization": basic_auth_header(PAT)})
        assert basic_auth_header(PAT) not in stream.getvalue()

    def test_text_format(self):
        """Test the plain text format."""
        stream = io.StringIO()
        logger = configure_logging(level="INFO", fmt="text", logger_name="tests.text", stream=stream)
        logger.propagate = False
        logger.info("hello")
        assert "INFO tests.text: hello" in stream.getvalue()
        logger.handlers = []

    def test_level_filtering(self):
        """Test records below the level are dropped."""
        stream = io.StringIO()
        logger = configure_logging(level="WARNING", logger_name="tests.level", stream=stream)
        logger.propagate = False
        logger.info("ignored")
        assert stream.getvalue() == ""
        assert logger.level == logging.WARNING
        logger.handlers = []
