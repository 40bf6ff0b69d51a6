"""Tests for the structlog setup helpers."""

from unittest.mock import patch

import pytest
from asgi_correlation_id.context import correlation_id

from vision_builder.core.config import Settings
from vision_builder.core.logging import add_correlation_id, configure_logging_from_settings

pytestmark = pytest.mark.unit


def test_add_correlation_id_copies_context_value():
    token = correlation_id.set("req-42")
    try:
        event = add_correlation_id(None, "info", {"event": "x"})
    finally:
        correlation_id.reset(token)

    assert event["correlation_id"] == "req-42"


def test_add_correlation_id_skips_when_unset():
    event = add_correlation_id(None, "info", {"event": "x"})

    assert "correlation_id" not in event


def test_debug_forces_console_output_at_debug_level():
    settings = Settings(debug=True, log_level="WARNING", json_logs=True)

    with patch("vision_builder.core.logging.configure_structlog") as configure:
        configure_logging_from_settings(settings)

    configure.assert_called_once_with(log_level="DEBUG", json_logs=False)


def test_production_uses_configured_level_and_renderer():
    settings = Settings(debug=False, log_level="warning", json_logs=True)

    with patch("vision_builder.core.logging.configure_structlog") as configure:
        configure_logging_from_settings(settings)

    configure.assert_called_once_with(log_level="WARNING", json_logs=True)
