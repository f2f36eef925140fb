"""
Reconciliation of local-tagger and reasoning-model tags.

The local tagger is ground truth. Reasoning-model tags only confirm tags the
tagger already found, unless the tagger produced nothing at all, in which case
they stand in for it.
"""

from typing import Dict, List, Sequence
from .models import Tag, TagSource
from .vocabulary import normalize_tag_name


def merge_tags(local_tags: Sequence[Tag], reasoning_tags: Sequence[Tag]) -> List[Tag]:
    """Merge both tag sets into one deduplicated, provenance-marked list.

    - Local tags seed the result with source ``local``.
    - A reasoning tag with the same normalized name raises the score to the
      max of the two and marks the tag ``both``.
    - Reasoning-only tags are admitted only when ``local_tags`` is empty.

    Sorted by score, highest first; equal scores keep first-seen order.
    """
    merged: Dict[str, Tag] = {}

    for tag in local_tags:
        key = normalize_tag_name(tag.name)
        existing = merged.get(key)
        if existing is None:
            merged[key] = tag.model_copy(update={"source": TagSource.LOCAL})
        elif tag.score > existing.score:
            merged[key] = existing.model_copy(update={"score": tag.score})

    admit_new = not local_tags
    for tag in reasoning_tags:
        key = normalize_tag_name(tag.name)
        existing = merged.get(key)
        if existing is not None:
            if existing.source == TagSource.REASONING_MODEL:
                # Duplicate within the reasoning fallback set
                if tag.score > existing.score:
                    merged[key] = existing.model_copy(update={"score": tag.score})
                continue
            merged[key] = existing.model_copy(update={
                "score": max(existing.score, tag.score),
                "source": TagSource.BOTH,
            })
        elif admit_new:
            merged[key] = tag.model_copy(update={"source": TagSource.REASONING_MODEL})

    return sorted(merged.values(), key=lambda tag: tag.score, reverse=True)
