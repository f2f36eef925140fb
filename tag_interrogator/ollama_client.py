"""
Client for the reasoning model, an Ollama-compatible ``/api/generate`` endpoint.

Two operations feed the hybrid pipeline: joint tag verification and
captioning, and copyright lookup for character tags. Both have module
level wrappers that never raise.
"""

from typing import Any, Dict, List, Optional, Sequence
import httpx
from pydantic import BaseModel
from .base_client import BaseBackendClient
from .errors import ConfigurationError, ParseError
from .imaging import encode_base64
from .logging import get_logger
from .models import BackendConfig, Tag, TagCategory, TagSource
from .parsing import (
    extract_json_array,
    parse_tags_and_summary,
    sanitize_description,
    strip_reasoning_artifacts,
)
from .vocabulary import TagVocabulary, normalize_tag_name, vocabulary as default_vocabulary


REASONING_TAG_SCORE = 0.7
CONFIRMED_COPYRIGHT_SCORE = 0.9
UNCONFIRMED_COPYRIGHT_SCORE = 0.5

logger = get_logger("ollama")

TAGGER_SYSTEM_PROMPT = "You are an expert Danbooru tagger."

COPYRIGHT_PROMPT = """For each of these Danbooru character tags, give the Danbooru copyright tag of the series the character comes from.

CHARACTERS: {characters}

RULES:
- Answer with a JSON array of copyright tag strings and nothing else, e.g. ["fate/grand_order", "touhou"].
- Use lowercase Danbooru tag names with underscores.
- Leave out any character you are not sure about. Answer [] if you know none of them.
"""

CAPTION_PROMPT = "Describe this image in detail for an image generation prompt."

CAPTION_WITH_TAGS_PROMPT = """You are a visual analysis AI.

I have analyzed this image with a tagger and found these features: {tag_list}.

Using your vision capabilities, verify these features in the image and write a detailed, natural language description.
- Incorporate the provided tags into a cohesive narrative.
- If a tag seems visually wrong based on your view of the image, ignore it.
- Focus on composition, colors, lighting, and mood.
- Do not just list the tags; write in full sentences.
- IMPORTANT: Output ONLY the description. Do not include any thinking process, reasoning, or meta-commentary.
"""


class ReasoningOutput(BaseModel):
    """Verified tags plus natural-language summary."""
    tags: List[Tag] = []
    summary: str = ""


def build_verification_prompt(existing_tags: Sequence[Tag]) -> str:
    """Prompt for tag verification and captioning."""
    if not existing_tags:
        return (
            "Tag this image using Danbooru tags and write a short summary of it.\n\n"
            "Respond in exactly this format:\n"
            "Tags: tag_one, tag_two, tag_three\n"
            "Summary: one or two sentences describing the image."
        )

    tag_list = ", ".join(tag.name for tag in existing_tags)
    series = [tag.name for tag in existing_tags if tag.category == TagCategory.COPYRIGHT]
    series_line = f"\nThe image is from: {', '.join(series)}. Use this as context.\n" if series else ""

    return (
        "You are a visual analysis AI working alongside an image tagger.\n\n"
        f"The tagger reported these Danbooru tags: {tag_list}.\n"
        f"{series_line}\n"
        "1. Verify each tag against the image. Keep only the tags you can see.\n"
        "2. Add any clearly visible features the tagger missed, as lowercase Danbooru tags with underscores.\n"
        "3. Write a natural-language description of the image in full sentences. Do not just list the tags.\n\n"
        "Respond in exactly this format and nothing else:\n"
        "Tags: tag_one, tag_two, tag_three\n"
        "Summary: your description"
    )


class ReasoningModelClient(BaseBackendClient):
    """Client for the generative vision-language backend."""

    service_name = "Ollama"

    def __init__(
        self,
        config: BackendConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        vocabulary: Optional[TagVocabulary] = None,
    ):
        super().__init__(http_client)
        self.endpoint = config.ollama_endpoint.strip().rstrip("/")
        self.model = config.ollama_model
        self.vocabulary = vocabulary if vocabulary is not None else default_vocabulary

    def _require_endpoint(self) -> None:
        if not self.endpoint:
            raise ConfigurationError("Ollama endpoint is invalid or missing.")

    async def generate(
        self,
        prompt: str,
        image_data: Optional[bytes] = None,
        system: Optional[str] = None,
        json_format: bool = False,
    ) -> str:
        """Run one non-streaming generation and return the response text."""
        self._require_endpoint()

        body: Dict[str, Any] = {"model": self.model, "prompt": prompt, "stream": False}
        if image_data is not None:
            body["images"] = [encode_base64(image_data)]
        if system:
            body["system"] = system
        if json_format:
            body["format"] = "json"

        response = await self._request("POST", f"{self.endpoint}/api/generate", json_data=body)
        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"Ollama returned invalid JSON: {e}") from e
        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise ParseError("Ollama response has no 'response' text")
        return text

    async def tags_and_summary(self, image_data: bytes, existing_tags: Sequence[Tag] = ()) -> ReasoningOutput:
        """Verify existing tags, add missing ones and describe the image."""
        text = await self.generate(build_verification_prompt(existing_tags), image_data)
        parsed = parse_tags_and_summary(text)

        tags = [
            Tag(
                name=name,
                score=REASONING_TAG_SCORE,
                category=self.vocabulary.classify(name),
                source=TagSource.REASONING_MODEL,
            )
            for name in parsed.tags
        ]
        summary = sanitize_description(strip_reasoning_artifacts(parsed.summary))
        self.logger.debug(f"Reasoning model returned {len(tags)} tags and a {len(summary)} char summary")
        return ReasoningOutput(tags=tags, summary=summary)

    async def resolve_copyrights(self, character_names: Sequence[str]) -> List[Tag]:
        """Ask the model which series the given characters belong to."""
        if not character_names:
            return []

        prompt = COPYRIGHT_PROMPT.format(characters=", ".join(character_names))
        text = await self.generate(prompt, system=TAGGER_SYSTEM_PROMPT)

        names = extract_json_array(text)
        if names is None:
            raise ParseError("No JSON array in copyright response")

        tags: List[Tag] = []
        seen = set()
        for value in names:
            if not isinstance(value, str):
                continue
            name = normalize_tag_name(value)
            if not name or name in seen:
                continue
            seen.add(name)
            confirmed = self.vocabulary.is_in_category(name, TagCategory.COPYRIGHT)
            tags.append(Tag(
                name=name,
                score=CONFIRMED_COPYRIGHT_SCORE if confirmed else UNCONFIRMED_COPYRIGHT_SCORE,
                category=TagCategory.COPYRIGHT,
                source=TagSource.REASONING_MODEL,
            ))
            if not confirmed:
                self.logger.debug(f"Copyright '{name}' not in reference vocabulary, keeping at reduced score")
        return tags

    async def generate_caption(self, image_data: bytes, existing_tags: Sequence[Tag] = ()) -> str:
        """On-demand description, grounded on existing tags when given."""
        if existing_tags:
            tag_list = ", ".join(tag.name.replace("_", " ") for tag in existing_tags)
            prompt = CAPTION_WITH_TAGS_PROMPT.format(tag_list=tag_list)
        else:
            prompt = CAPTION_PROMPT
        text = await self.generate(prompt, image_data)
        return strip_reasoning_artifacts(text)

    async def list_models(self) -> List[str]:
        """Names of the models the server has pulled. Empty on any failure."""
        if not self.endpoint:
            return []
        try:
            response = await self._request("GET", f"{self.endpoint}/api/tags")
            data = response.json()
            return [model["name"] for model in data.get("models", []) if isinstance(model, dict) and "name" in model]
        except Exception as e:
            self.logger.warning(f"⚠️  Failed to fetch Ollama models: {e}")
            return []


async def fetch_reasoning_tags_and_summary(
    image_data: bytes,
    config: BackendConfig,
    existing_tags: Sequence[Tag] = (),
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    vocabulary: Optional[TagVocabulary] = None,
) -> ReasoningOutput:
    """Best-effort verification and captioning; never raises."""
    try:
        async with ReasoningModelClient(config, http_client, vocabulary) as client:
            return await client.tags_and_summary(image_data, existing_tags)
    except Exception as e:
        logger.warning(f"⚠️  Reasoning model tagging failed, continuing without it: {e}")
        return ReasoningOutput()


async def fetch_reasoning_copyrights(
    character_names: Sequence[str],
    config: BackendConfig,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    vocabulary: Optional[TagVocabulary] = None,
) -> List[Tag]:
    """Best-effort copyright lookup; never raises."""
    try:
        async with ReasoningModelClient(config, http_client, vocabulary) as client:
            return await client.resolve_copyrights(character_names)
    except Exception as e:
        logger.warning(f"⚠️  Copyright lookup failed: {e}")
        return []
