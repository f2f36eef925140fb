"""
Display-side view of an interrogation result.

Filtering works on a copy; the stored InterrogationResult is never changed.
"""

import random
from typing import List, Optional
from .models import InterrogationResult, Tag, TaggingSettings


DEFAULT_THRESHOLD = 0.5


def apply_display_settings(
    result: InterrogationResult,
    settings: TaggingSettings,
    rng: Optional[random.Random] = None,
) -> List[Tag]:
    """Tags to show: thresholded per category, top-k, optionally shuffled."""
    tags = [
        tag for tag in result.tags
        if tag.score >= settings.thresholds.get(tag.category, DEFAULT_THRESHOLD)
    ]
    tags.sort(key=lambda tag: tag.score, reverse=True)
    tags = tags[:settings.top_k]

    if settings.randomize:
        (rng or random).shuffle(tags)

    return tags


def format_tag_name(name: str, remove_underscores: bool = False) -> str:
    return name.replace("_", " ") if remove_underscores else name


def format_tag_string(tags: List[Tag], remove_underscores: bool = False) -> str:
    """Comma separated prompt string."""
    return ", ".join(format_tag_name(tag.name, remove_underscores) for tag in tags)
