#!/usr/bin/env python3
"""
Basic test script for the Tag Interrogator.
This script tests the core functionality without requiring a tagger or Ollama server.
"""

import os
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add the project root to the Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))


def test_imports():
    """Test that all modules can be imported."""
    print("Testing imports...")

    from tag_interrogator import config, logging, models, processor, pipeline  # noqa: F401
    from tag_interrogator import classify_tag, merge_tags, run_pipeline  # noqa: F401
    print("✓ Core modules imported successfully")


def test_config(monkeypatch):
    """Test configuration loading."""
    print("\nTesting configuration...")

    from tag_interrogator.config import Settings
    from tag_interrogator.models import BackendType

    monkeypatch.setenv("BACKEND_TYPE", "GEMINI")
    monkeypatch.setenv("GEMINI_API_KEY", "test-api-key")
    monkeypatch.setenv("OLLAMA_ENDPOINT", "http://gpu-box:11434/")
    monkeypatch.setenv("ENABLE_NATURAL_LANGUAGE", "false")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.backend_type == "gemini"
    assert settings.gemini_api_key == "test-api-key"
    assert settings.ollama_endpoint == "http://gpu-box:11434"
    assert settings.enable_natural_language is False
    assert settings.log_level == "DEBUG"
    assert settings.request_timeout is None

    backend = settings.to_backend_config(ollama_model="llava:13b", tagger_endpoint=None)
    assert backend.type == BackendType.GEMINI
    assert backend.ollama_model == "llava:13b"
    assert backend.tagger_endpoint == settings.tagger_endpoint

    print("✓ Configuration loaded successfully")


def test_config_rejects_bad_values(monkeypatch):
    """Invalid settings fail validation."""
    from tag_interrogator.config import Settings

    monkeypatch.setenv("BACKEND_TYPE", "openai")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)

    monkeypatch.setenv("BACKEND_TYPE", "local_hybrid")
    monkeypatch.setenv("TAGGER_ENDPOINT", "ftp://tagger")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)

    monkeypatch.setenv("TAGGER_ENDPOINT", "")
    assert Settings(_env_file=None).tagger_endpoint == ""


def test_models():
    """Test data models."""
    print("\nTesting data models...")

    from tag_interrogator.errors import ConfigurationError
    from tag_interrogator.models import (
        BackendConfig, BackendType, InterrogationResult, StageReport, StageStatus,
        Tag, TagCategory, TagSource,
    )

    tag = Tag(name="1girl", score=0.8)
    assert tag.category == TagCategory.GENERAL
    assert tag.source == TagSource.LOCAL

    with pytest.raises(ValidationError):
        Tag(name="1girl", score=1.5)

    result = InterrogationResult(
        tags=[tag],
        stages=[
            StageReport(stage="fetch-local", status=StageStatus.OK),
            StageReport(stage="fetch-reasoning", status=StageStatus.FAILED, detail="boom"),
        ],
    )
    assert result.natural_description is None
    assert [report.stage for report in result.degraded_stages()] == ["fetch-reasoning"]

    # Stored results cannot be changed in place
    with pytest.raises(AttributeError):
        result.tags.append(tag)
    with pytest.raises(ValidationError):
        result.tags = ()

    with pytest.raises(ConfigurationError, match="Ollama endpoint"):
        BackendConfig(tagger_endpoint="http://tagger").validate_for_interrogation()
    with pytest.raises(ConfigurationError, match="tagger endpoint"):
        BackendConfig(ollama_endpoint="http://ollama").validate_for_interrogation()
    with pytest.raises(ConfigurationError, match="Gemini API key"):
        BackendConfig(type=BackendType.GEMINI).validate_for_interrogation()

    BackendConfig(type=BackendType.GEMINI, gemini_api_key="key").validate_for_interrogation()

    print("✓ Data models work correctly")


def test_logging():
    """Test logging setup."""
    print("\nTesting logging...")

    from tag_interrogator.logging import setup_logging, get_logger, MetricsLogger

    # Setup logging
    setup_logging("INFO")

    # Test logger
    logger = get_logger("test")
    logger.info("Test log message")

    # Test metrics logger
    metrics = MetricsLogger()
    metrics.log_interrogation(5, 1.0)
    metrics.log_interrogation(3, 0.5)
    metrics.log_stage_failure("fetch-local", "connection refused")

    current_metrics = metrics.get_metrics()
    assert current_metrics["interrogations"] == 2
    assert current_metrics["tags_returned"] == 8
    assert current_metrics["stage_failures"] == 1
    assert current_metrics["processing_time"] == pytest.approx(1.5)

    print("✓ Logging setup works correctly")


def main():
    """Run all tests."""
    return pytest.main([__file__, "-v"])


if __name__ == "__main__":
    sys.exit(main())
