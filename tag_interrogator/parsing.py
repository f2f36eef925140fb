"""
Parsers for free-text reasoning-model output.

Generative responses follow the prompt only loosely, so everything here is
tolerant: it extracts what it can and never raises on malformed text.
"""

import json
import re
import unicodedata
from dataclasses import dataclass, field
from typing import List, Optional
from .vocabulary import normalize_tag_name


THINK_BLOCK_PATTERN = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
TAGS_SECTION_PATTERN = re.compile(r"\btags\s*:\s*(.*?)(?=\bsummary\s*:|$)", re.IGNORECASE | re.DOTALL)
SUMMARY_SECTION_PATTERN = re.compile(r"\bsummary\s*:\s*(.*)", re.IGNORECASE | re.DOTALL)
META_PREFIX_PATTERN = re.compile(
    r"^(Here is a description|Sure, here is|Based on the tags|The image shows|I can see that).{0,20}:\s*",
    re.IGNORECASE,
)
TAG_SPLIT_PATTERN = re.compile(r"[,\n]")

# Punctuation kept by sanitize_description besides letters, digits and whitespace
DESCRIPTION_PUNCTUATION = frozenset(",.<>?!@()")
TAG_TRIM_CHARS = " \t-*•\"'`."


@dataclass
class ParsedResponse:
    """Tag names and summary extracted from a Tags:/Summary: response."""
    tags: List[str] = field(default_factory=list)
    summary: str = ""
    found_tags_section: bool = False


def strip_reasoning_artifacts(text: str) -> str:
    """Remove <think> blocks and leading meta-commentary."""
    text = THINK_BLOCK_PATTERN.sub("", text or "")
    return META_PREFIX_PATTERN.sub("", text.strip()).strip()


def sanitize_description(text: str) -> str:
    """Keep Unicode letters, digits, whitespace and a small punctuation set."""
    kept = []
    for char in text or "":
        if char.isspace() or char in DESCRIPTION_PUNCTUATION:
            kept.append(char)
        elif unicodedata.category(char)[0] in ("L", "N"):
            kept.append(char)
    return "".join(kept).strip()


def split_tag_list(raw: str) -> List[str]:
    """Split a comma separated tag list into unique normalized names."""
    names = []
    seen = set()
    for piece in TAG_SPLIT_PATTERN.split(raw or ""):
        name = normalize_tag_name(piece.strip(TAG_TRIM_CHARS))
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def parse_tags_and_summary(text: str) -> ParsedResponse:
    """Split a ``Tags: ... Summary: ...`` response into its two sections.

    Without a Summary marker the text left after removing the tags section
    becomes the summary. Without either marker the whole text is the summary.
    """
    text = THINK_BLOCK_PATTERN.sub("", text or "").strip()
    if not text:
        return ParsedResponse()

    tags_match = TAGS_SECTION_PATTERN.search(text)
    summary_match = SUMMARY_SECTION_PATTERN.search(text)

    if tags_match is None:
        summary = summary_match.group(1) if summary_match else text
        return ParsedResponse(summary=summary.strip())

    tags = split_tag_list(tags_match.group(1))
    if summary_match is None:
        summary = text[:tags_match.start()] + text[tags_match.end():]
    elif summary_match.start() >= tags_match.end():
        summary = summary_match.group(1)
    else:
        # Summary came first and runs up to the Tags: marker
        summary = text[summary_match.start(1):tags_match.start()]
    return ParsedResponse(tags=tags, summary=summary.strip(), found_tags_section=True)


def extract_json_array(text: str) -> Optional[list]:
    """Decode the first JSON array embedded in ``text``, or None."""
    decoder = json.JSONDecoder()
    text = THINK_BLOCK_PATTERN.sub("", text or "")
    start = text.find("[")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("[", start + 1)
            continue
        if isinstance(value, list):
            return value
        start = text.find("[", start + 1)
    return None
