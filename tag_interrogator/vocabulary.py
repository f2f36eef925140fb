"""
Reference tag vocabulary and category classification.

The vocabulary is a Danbooru-style ``selected_tags.csv`` table
(``tag_id,name,category,count``) loaded once per process. Until the load
finishes, or if it fails, classification falls back to heuristics.
"""

import asyncio
import csv
import io
import re
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional
import httpx
from .models import TagCategory
from .config import settings
from .logging import get_logger


CATEGORY_MAPPING: Dict[int, TagCategory] = {
    0: TagCategory.GENERAL,
    1: TagCategory.ARTIST,
    3: TagCategory.COPYRIGHT,
    4: TagCategory.CHARACTER,
    5: TagCategory.META,
    9: TagCategory.RATING,
}

RATING_PREFIX = "rating:"
RATING_WORDS = frozenset({"general", "safe", "questionable", "explicit", "sensitive", "nsfw"})
META_WORDS = frozenset({
    "highres", "absurdres", "4k", "8k", "masterpiece", "comic", "monochrome",
    "greyscale", "lowres", "best quality", "best_quality", "bad quality",
    "bad_quality", "worst quality", "worst_quality",
})
MULTI_SUBJECT_PATTERN = re.compile(r"^(?:\d+\+?|multiple)[ _]?(?:girls?|boys?|others?)$")

BUNDLED_TABLE = "selected_tags.csv"


def normalize_tag_name(name: str) -> str:
    """Lowercase and underscore-delimit a tag name."""
    return "_".join(name.strip().lower().split())


def parse_vocabulary_csv(text: str) -> Dict[str, TagCategory]:
    """Parse a selected_tags.csv body into a name -> category table."""
    table: Dict[str, TagCategory] = {}
    reader = csv.reader(io.StringIO(text))
    next(reader, None)  # header
    for row in reader:
        if len(row) < 3 or not row[1].strip():
            continue
        try:
            category_id = int(row[2])
        except ValueError:
            continue
        table[row[1].strip()] = CATEGORY_MAPPING.get(category_id, TagCategory.GENERAL)
    return table


def classify_heuristic(name: str) -> TagCategory:
    """Category for a tag that is not in the reference table."""
    if name.startswith(RATING_PREFIX) or name in RATING_WORDS:
        return TagCategory.RATING
    if name in META_WORDS:
        return TagCategory.META
    if MULTI_SUBJECT_PATTERN.match(name):
        # Danbooru files subject counts under general
        return TagCategory.GENERAL
    return TagCategory.GENERAL


class TagVocabulary:
    """Process-scoped reference table with an explicit load lifecycle."""

    def __init__(self, source: Optional[str] = None):
        self.source = source or ""
        self.logger = get_logger("vocabulary")
        self._table: Mapping[str, TagCategory] = MappingProxyType({})
        self._load_task: Optional[asyncio.Task] = None
        self._ready = False

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, TagCategory]) -> "TagVocabulary":
        """Build an already-loaded vocabulary from an in-memory table."""
        vocabulary = cls()
        vocabulary._table = MappingProxyType(dict(mapping))
        vocabulary._ready = True
        return vocabulary

    @property
    def ready(self) -> bool:
        """True once a load attempt has finished, successfully or not."""
        return self._ready

    def __len__(self) -> int:
        return len(self._table)

    async def load(self) -> None:
        """Load the table once; concurrent callers share the same load."""
        if self._ready:
            return
        if self._load_task is None or self._load_task.get_loop() is not asyncio.get_running_loop():
            self._load_task = asyncio.ensure_future(self._load())
        await asyncio.shield(self._load_task)

    async def wait_ready(self) -> None:
        """Await the table, triggering the load if nobody has yet."""
        await self.load()

    async def _load(self) -> None:
        try:
            text = await self._read_source()
            table = parse_vocabulary_csv(text)
            self._table = MappingProxyType(table)
            self.logger.info(f"📚 Loaded {len(table)} reference tags")
        except Exception as e:
            self.logger.warning(f"⚠️  Failed to load tag vocabulary, using heuristics only: {e}")
        finally:
            self._ready = True

    async def _read_source(self) -> str:
        if self.source.startswith(("http://", "https://")):
            async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
                response = await client.get(self.source)
                response.raise_for_status()
                return response.text
        if self.source:
            return await asyncio.to_thread(Path(self.source).read_text, encoding="utf-8")
        bundled = resources.files("tag_interrogator").joinpath("data", BUNDLED_TABLE)
        return await asyncio.to_thread(bundled.read_text, encoding="utf-8")

    def lookup(self, name: str) -> Optional[TagCategory]:
        """Table-only lookup, trying the raw then the normalized name."""
        category = self._table.get(name)
        if category is None:
            category = self._table.get(normalize_tag_name(name))
        return category

    def classify(self, name: str) -> TagCategory:
        """Category for a raw tag name. Never raises; unknown tags are general."""
        if not isinstance(name, str):
            return TagCategory.GENERAL
        category = self.lookup(name)
        if category is not None:
            return category
        return classify_heuristic(name.strip().lower())

    def is_in_category(self, name: str, category: TagCategory) -> bool:
        """True when the reference table lists ``name`` under ``category``."""
        if not isinstance(name, str) or not name:
            return False
        return self.lookup(name) == category


# Process-global vocabulary, read-only after load
vocabulary = TagVocabulary(settings.vocabulary_source)


def classify_tag(name: str) -> TagCategory:
    """Classify with the process-global vocabulary."""
    return vocabulary.classify(name)
