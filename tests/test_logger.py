"""Unit tests for structured logging and configuration checks."""
import sys
sys.path.insert(0, 'backend')

import json
import logging
import pytest
from unittest.mock import patch
import config
from logger import JSONFormatter


def make_record(**extra):
    record = logging.LogRecord("services.pipeline", logging.INFO, __file__, 1, "Stage %s completed", ("retrieve",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "services.pipeline"
        assert data["message"] == "Stage retrieve completed"
        assert data["timestamp"].endswith("Z")

    def test_request_extras_included(self):
        data = json.loads(JSONFormatter().format(make_record(session_id="s1", stage="retrieve", duration_ms=42)))

        assert data["session_id"] == "s1"
        assert data["stage"] == "retrieve"
        assert data["duration_ms"] == 42
        assert "error_code" not in data


class TestValidateConfig:

    def test_missing_settings_listed(self):
        with patch.object(config, "GROQ_API_KEY", None), patch.object(config, "SUPABASE_KEY", ""):
            with pytest.raises(ValueError) as exc_info:
                config.validate_config()

        assert "GROQ_API_KEY" in str(exc_info.value)
        assert "SUPABASE_KEY" in str(exc_info.value)

    def test_all_present(self):
        with patch.object(config, "GROQ_API_KEY", "g"), patch.object(config, "HUGGINGFACE_API_KEY", "h"), \
                patch.object(config, "SUPABASE_URL", "u"), patch.object(config, "SUPABASE_KEY", "k"):
            config.validate_config()
