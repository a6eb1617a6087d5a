"""Unit tests for the logging setup and its pipeline context fields."""

import json
import logging
import sys

import pytest

from src.utils.logger import JSONFormatter, RichTextFormatter, get_logger, logger


def make_record(message="Recipe ready", level=logging.INFO, exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="culinary_canvas",
        level=level,
        pathname="orchestrator.py",
        lineno=1,
        msg=message,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Structured output carries the pipeline context."""

    def test_stage_and_recipe_extras(self):
        data = json.loads(JSONFormatter().format(make_record(stage="generating", recipe="Shakshuka")))

        assert data["message"] == "Recipe ready"
        assert data["level"] == "INFO"
        assert data["logger"] == "culinary_canvas"
        assert data["stage"] == "generating"
        assert data["recipe"] == "Shakshuka"

    def test_absent_extras_omitted(self):
        data = json.loads(JSONFormatter().format(make_record()))
        assert "stage" not in data
        assert "recipe" not in data

    def test_exception_included(self):
        try:
            raise ValueError("bad JSON from model")
        except ValueError:
            record = make_record("Error generating recipe", level=logging.ERROR, exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad JSON from model" in data["exception"]


class TestRichTextFormatter:
    def test_stage_prefix(self):
        output = RichTextFormatter().format(make_record("Stage entered", stage="suggesting"))
        assert "[suggesting] Stage entered" in output

    @pytest.mark.parametrize(
        "level,icon",
        [(logging.DEBUG, "🔍"), (logging.INFO, "ℹ️"), (logging.WARNING, "⚠️"), (logging.ERROR, "❌")],
    )
    def test_level_icon(self, level, icon):
        output = RichTextFormatter().format(make_record(level=level))
        assert icon in output
        assert logging.getLevelName(level) in output


class TestGetLogger:
    def test_module_logger(self):
        assert logger.name == "culinary_canvas"
        assert logger.handlers
        assert get_logger("culinary_canvas") is logger

    @pytest.mark.parametrize("log_type,formatter", [("json", JSONFormatter), ("text", RichTextFormatter)])
    def test_log_type_selects_formatter(self, monkeypatch, log_type, formatter):
        monkeypatch.setenv("LOG_TYPE", log_type)
        name = f"culinary_canvas.test_{log_type}"
        logging.getLogger(name).handlers.clear()

        configured = get_logger(name)

        assert isinstance(configured.handlers[0].formatter, formatter)

    @pytest.mark.parametrize("level,expected", [("DEBUG", logging.DEBUG), ("NOT_A_LEVEL", logging.INFO)])
    def test_log_level_from_env(self, monkeypatch, level, expected):
        monkeypatch.setenv("LOG_LEVEL", level)
        name = f"culinary_canvas.test_level_{level.lower()}"
        logging.getLogger(name).handlers.clear()

        assert get_logger(name).level == expected

    def test_library_loggers_quieted(self):
        assert logging.getLogger("google.genai").level == logging.WARNING
