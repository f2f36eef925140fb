"""
Client for the local image tagger service.

The tagger's JSON has no fixed schema. Responses are decoded by trying each
known payload shape in priority order and normalizing the first match.
"""

import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence
import httpx
from .base_client import BaseBackendClient, is_local_endpoint
from .errors import ConfigurationError, ParseError
from .imaging import detect_mime_type
from .models import BackendConfig, Tag, TagSource
from .vocabulary import TagVocabulary, normalize_tag_name, vocabulary as default_vocabulary


NAME_KEYS = ("name", "tag")
SCORE_KEYS = ("score", "confidence", "probability")

# Skin-colour tags the tagger reports for tinted lighting
HALLUCINATION_PRONE_TAGS = frozenset({"blue_skin", "colored_skin"})
HALLUCINATION_MIN_SCORE = 0.85


@dataclass(frozen=True)
class RawTag:
    """Name/score pair as reported by the tagger, before normalization."""
    name: str
    score: float


def coerce_score(value: Any) -> Optional[float]:
    """Float score from a JSON value, or None if it is not a usable number."""
    if isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(score):
        return None
    return score


def normalize_score(score: float) -> float:
    """Rescale 0-100 percentages to 0-1 and clamp."""
    if score > 1.0:
        score = score / 100.0
    return min(max(score, 0.0), 1.0)


class ScoreMapShape:
    """``{"1girl": 0.99, ...}``"""
    name = "score_map"

    def matches(self, payload: Any) -> bool:
        return isinstance(payload, dict) and all(
            coerce_score(value) is not None for value in payload.values()
        )

    def decode(self, payload: dict) -> List[RawTag]:
        return [RawTag(str(name), coerce_score(score)) for name, score in payload.items()]


class WrapperListShape:
    """``[{"tags": <any other shape>, ...}, ...]``, one wrapper per image."""
    name = "wrapper_list"

    def matches(self, payload: Any) -> bool:
        return isinstance(payload, list) and bool(payload) and isinstance(payload[0], dict) and "tags" in payload[0]

    def decode(self, payload: list) -> List[RawTag]:
        return decode_tag_payload(payload[0]["tags"], shapes=LEAF_SHAPES)


class PairListShape:
    """``[["1girl", 0.99], ...]``"""
    name = "pair_list"

    def matches(self, payload: Any) -> bool:
        return isinstance(payload, list) and all(
            isinstance(item, (list, tuple)) and len(item) >= 2 for item in payload
        )

    def decode(self, payload: list) -> List[RawTag]:
        tags = []
        for item in payload:
            score = coerce_score(item[1])
            if isinstance(item[0], str) and score is not None:
                tags.append(RawTag(item[0], score))
        return tags


class ObjectListShape:
    """``[{"name"|"tag": "1girl", "score"|"confidence"|"probability": 0.99}, ...]``"""
    name = "object_list"

    def matches(self, payload: Any) -> bool:
        return isinstance(payload, list) and all(
            isinstance(item, dict) and any(key in item for key in NAME_KEYS) for item in payload
        )

    def decode(self, payload: list) -> List[RawTag]:
        tags = []
        for item in payload:
            name = next((item[key] for key in NAME_KEYS if item.get(key)), None)
            # First usable score wins; null or non-numeric values fall through
            score = next((s for s in (coerce_score(item.get(key)) for key in SCORE_KEYS) if s is not None), None)
            if isinstance(name, str) and score is not None:
                tags.append(RawTag(name, score))
        return tags


LEAF_SHAPES = (ScoreMapShape(), PairListShape(), ObjectListShape())
ALL_SHAPES = (ScoreMapShape(), WrapperListShape(), PairListShape(), ObjectListShape())


def decode_tag_payload(payload: Any, shapes: Sequence = ALL_SHAPES) -> List[RawTag]:
    """Decode a tag payload with the first shape that matches it."""
    for shape in shapes:
        if shape.matches(payload):
            return shape.decode(payload)
    raise ParseError(f"Unrecognised tag payload of type {type(payload).__name__}")


def decode_tagger_response(body: Any) -> List[RawTag]:
    """Decode a full tagger response body.

    The body is either ``{"tags": <payload>, ...}`` or a bare payload.
    """
    if isinstance(body, dict) and "tags" in body:
        return decode_tag_payload(body["tags"])
    return decode_tag_payload(body)


def is_suppressed(tag: Tag) -> bool:
    """Known false positives below the trust threshold."""
    return tag.name in HALLUCINATION_PRONE_TAGS and tag.score < HALLUCINATION_MIN_SCORE


class LocalTaggerClient(BaseBackendClient):
    """Client for the deterministic local tagger."""

    service_name = "Local Tagger"

    def __init__(
        self,
        config: BackendConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        vocabulary: Optional[TagVocabulary] = None,
    ):
        super().__init__(http_client)
        self.endpoint = config.tagger_endpoint.strip()
        self.vocabulary = vocabulary if vocabulary is not None else default_vocabulary

    def _describe_request_error(self, url: str, error: httpx.RequestError) -> str:
        message = super()._describe_request_error(url, error)
        if not is_local_endpoint(url) and isinstance(error, httpx.ConnectError):
            message += (
                f". The tagger at {url} refused or blocked the connection. If it only accepts"
                " same-origin traffic, route it through a reverse proxy or allow this host."
            )
        return message

    def _describe_status_error(self, url: str, response: httpx.Response) -> str:
        message = super()._describe_status_error(url, response)
        if not is_local_endpoint(url) and response.status_code == 403:
            message += (
                f". {url} rejected the request as cross-origin. Put the tagger behind a reverse"
                " proxy on the same origin, or allow this origin on the server."
            )
        return message

    def normalize(self, raw_tags: List[RawTag]) -> List[Tag]:
        """Rescale, categorize, filter and sort raw tagger output."""
        tags = []
        for raw in raw_tags:
            name = normalize_tag_name(raw.name)
            if not name:
                continue
            tag = Tag(
                name=name,
                score=normalize_score(raw.score),
                category=self.vocabulary.classify(name),
                source=TagSource.LOCAL,
            )
            if is_suppressed(tag):
                self.logger.debug(f"Dropping likely false positive '{tag.name}' ({tag.score:.2f})")
                continue
            tags.append(tag)
        tags.sort(key=lambda t: t.score, reverse=True)
        return tags

    async def fetch_tags(self, image_data: bytes) -> List[Tag]:
        """Upload an image and return its normalized tags."""
        if not self.endpoint:
            raise ConfigurationError("Local Tagger endpoint is invalid or missing.")

        files = {"file": ("image.png", image_data, detect_mime_type(image_data))}
        response = await self._request("POST", self.endpoint, files=files)

        try:
            raw_tags = decode_tagger_response(response.json())
        except (ValueError, ParseError) as e:
            self.logger.warning(f"⚠️  Could not parse tagger response, treating as no tags: {e}")
            return []

        tags = self.normalize(raw_tags)
        self.logger.debug(f"Local tagger returned {len(tags)} tags")
        return tags


async def fetch_local_tags(
    image_data: bytes,
    config: BackendConfig,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    vocabulary: Optional[TagVocabulary] = None,
) -> List[Tag]:
    """Tag an image with the local tagger.

    Raises ConfigurationError for a missing endpoint and NetworkError for
    transport failures; unparseable responses yield an empty list.
    """
    async with LocalTaggerClient(config, http_client, vocabulary) as client:
        return await client.fetch_tags(image_data)
