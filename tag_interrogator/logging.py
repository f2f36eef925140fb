"""
Logging configuration for the tag interrogator.
"""

import logging
from typing import Any, Dict
from rich.console import Console
from rich.logging import RichHandler
from .config import settings


def setup_logging(level: str = None) -> None:
    """Configure clean, simple logging output."""

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level or settings.log_level),
        handlers=[RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
            show_level=False,
            markup=True
        )],
        force=True  # Override any existing configuration
    )

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def get_logger(name: str):
    """Get a standard logger instance."""
    return logging.getLogger(name)


class MetricsLogger:
    """Logger for tracking interrogation metrics."""

    def __init__(self):
        self.logger = get_logger("metrics")
        self.metrics: Dict[str, Any] = {
            "interrogations": 0,
            "tags_returned": 0,
            "stage_failures": 0,
            "processing_time": 0.0,
        }

    def log_interrogation(self, tags_count: int, processing_time: float) -> None:
        """Log a completed interrogation."""
        self.metrics["interrogations"] += 1
        self.metrics["tags_returned"] += tags_count
        self.metrics["processing_time"] += processing_time

        self.logger.debug(
            f"Interrogation done | Tags: {tags_count} | Time: {processing_time:.3f}s | "
            f"Total: {self.metrics['interrogations']} images, {self.metrics['tags_returned']} tags"
        )

    def log_stage_failure(self, stage: str, error: str) -> None:
        """Log a stage that degraded to empty output."""
        self.metrics["stage_failures"] += 1
        self.logger.warning(f"⚠️  Stage '{stage}' failed, continuing without it | Error: {error}")

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics."""
        return self.metrics.copy()
