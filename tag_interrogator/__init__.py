"""
Tag Interrogator

Tags anime-style images with Danbooru tags, either through a cloud
vision-language model or through a local hybrid pipeline that reconciles a
local image tagger with a reasoning model, and optionally writes a
natural-language description.
"""

__version__ = "1.0.0"
__author__ = "Tag Interrogator Team"

from .enrichment import enrich_copyrights
from .errors import ConfigurationError, InterrogatorError, NetworkError, ParseError
from .merge import merge_tags
from .models import BackendConfig, BackendType, InterrogationResult, Tag, TagCategory, TagSource
from .ollama_client import fetch_reasoning_copyrights, fetch_reasoning_tags_and_summary
from .pipeline import run_pipeline
from .processor import ImageInterrogator
from .tagger_client import fetch_local_tags
from .vocabulary import classify_tag

__all__ = [
    "BackendConfig",
    "BackendType",
    "ConfigurationError",
    "ImageInterrogator",
    "InterrogationResult",
    "InterrogatorError",
    "NetworkError",
    "ParseError",
    "Tag",
    "TagCategory",
    "TagSource",
    "classify_tag",
    "enrich_copyrights",
    "fetch_local_tags",
    "fetch_reasoning_copyrights",
    "fetch_reasoning_tags_and_summary",
    "merge_tags",
    "run_pipeline",
]
