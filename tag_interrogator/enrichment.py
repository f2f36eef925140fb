"""
Copyright (series) enrichment for tagged images.

Danbooru disambiguates many character tags with the series in parentheses,
e.g. ``tohsaka_rin_(fate)``. When that series is a known copyright tag it is
added directly; otherwise the character is sent to the reasoning model in a
single batched lookup.
"""

import re
from typing import List, Optional, Sequence
import httpx
from .logging import get_logger
from .models import BackendConfig, Tag, TagCategory
from .ollama_client import ReasoningModelClient
from .vocabulary import TagVocabulary, normalize_tag_name, vocabulary as default_vocabulary


SERIES_SUFFIX_PATTERN = re.compile(r"^(?P<base>.+?)_\((?P<series>[^()]+)\)$")

# Copyright and artist tags are never queued for a series lookup: their
# parenthetical is name disambiguation, e.g. ask_(askzy), not a series
NON_CHARACTER_CATEGORIES = frozenset({TagCategory.COPYRIGHT, TagCategory.ARTIST})

logger = get_logger("enrichment")


def series_from_tag(name: str) -> Optional[str]:
    """The normalized ``(series)`` suffix of a tag name, if any."""
    match = SERIES_SUFFIX_PATTERN.match(name)
    if match is None:
        return None
    return normalize_tag_name(match.group("series"))


def sort_by_score(tags: Sequence[Tag]) -> List[Tag]:
    """Stable sort, highest score first."""
    return sorted(tags, key=lambda tag: tag.score, reverse=True)


async def enrich_copyrights(
    tags: Sequence[Tag],
    config: BackendConfig,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    vocabulary: Optional[TagVocabulary] = None,
) -> List[Tag]:
    """Add copyright tags derived from character tags.

    Lookup failures are logged and contribute nothing; this never raises
    for backend errors.
    """
    vocabulary = vocabulary if vocabulary is not None else default_vocabulary
    enriched = list(tags)
    present = {normalize_tag_name(tag.name) for tag in enriched}
    pending: List[str] = []

    for tag in tags:
        if tag.category in NON_CHARACTER_CATEGORIES:
            continue
        series = series_from_tag(tag.name)
        if series is not None and vocabulary.is_in_category(series, TagCategory.COPYRIGHT):
            if series not in present:
                enriched.append(Tag(
                    name=series,
                    score=tag.score,
                    category=TagCategory.COPYRIGHT,
                    source=tag.source,
                ))
                present.add(series)
                logger.debug(f"Derived copyright '{series}' from '{tag.name}'")
        elif series is not None or tag.category == TagCategory.CHARACTER:
            if tag.name not in pending:
                pending.append(tag.name)

    if pending:
        discovered: List[Tag] = []
        try:
            async with ReasoningModelClient(config, http_client, vocabulary) as client:
                discovered = await client.resolve_copyrights(pending)
        except Exception as e:
            logger.warning(f"⚠️  Copyright lookup for {len(pending)} tags failed: {e}")

        for tag in discovered:
            key = normalize_tag_name(tag.name)
            if key not in present:
                enriched.append(tag)
                present.add(key)

    return sort_by_score(enriched)
