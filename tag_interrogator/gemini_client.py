"""
Cloud backend: a single Gemini ``generateContent`` call with a JSON schema.

Unlike the hybrid pipeline this path is strict. A missing key or a failed
request aborts the interrogation.
"""

import json
from typing import Any, Dict, List, Optional
import httpx
from .base_client import BaseBackendClient
from .errors import ConfigurationError, ParseError
from .imaging import detect_mime_type, encode_base64
from .models import BackendConfig, InterrogationResult, Tag, TagCategory, TagSource
from .tagger_client import coerce_score, normalize_score
from .vocabulary import TagVocabulary, normalize_tag_name, vocabulary as default_vocabulary


GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

SYSTEM_INSTRUCTION = "You are an expert Danbooru tagger."

INTERROGATION_PROMPT = """Analyze this image for Stable Diffusion tagging using strict Danbooru standards.

CRITICAL RULES:
1. **REAL TAGS ONLY**: Use ONLY tags that exist in the Danbooru/Gelbooru wiki.
2. **Format**: Lowercase, underscores for spaces.
3. **Categorize**: 'general', 'character', 'copyright', 'artist', 'meta', 'rating'.

DEEP CHARACTER SCAN:
- Hair: Color, Length, Style.
- Eyes: Color, Shape, Pupils.
- Features: ears, horns, wings.
- Body: clothing, legwear, pose.

MANDATORY TAGS:
- **Rating**: One of ['rating:general', 'rating:safe', 'rating:sensitive', 'rating:questionable', 'rating:explicit'].
- **Count**: 1girl, 1boy, etc.
"""

CAPTION_PROMPT = (
    "Generate a detailed, natural language description of this image suitable for use as a "
    "prompt for an image generation model (like Stable Diffusion)."
)


def build_response_schema() -> Dict[str, Any]:
    """Structured-output schema; the category enum mirrors TagCategory."""
    return {
        "type": "OBJECT",
        "properties": {
            "tags": {
                "type": "ARRAY",
                "description": "A list of strict Danbooru-wiki tags describing the image.",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "name": {"type": "STRING"},
                        "score": {"type": "NUMBER"},
                        "category": {
                            "type": "STRING",
                            "enum": [category.value for category in TagCategory],
                        },
                    },
                    "required": ["name", "score", "category"],
                },
            },
        },
        "required": ["tags"],
    }


def extract_candidate_text(body: Any) -> str:
    """Concatenated text parts of the first candidate."""
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        raise ParseError(f"Gemini response has no candidate content: {e}") from e
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiClient(BaseBackendClient):
    """Client for the Gemini REST API."""

    service_name = "Gemini"

    def __init__(
        self,
        config: BackendConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        vocabulary: Optional[TagVocabulary] = None,
        api_base: str = GEMINI_API_BASE,
    ):
        if not config.gemini_api_key.strip():
            raise ConfigurationError(
                "Gemini API Key is missing. Please enter it in the configuration panel."
            )
        super().__init__(http_client)
        self.api_key = config.gemini_api_key.strip()
        self.model = config.gemini_model
        self.caption_model = config.gemini_caption_model
        self.api_base = api_base.rstrip("/")
        self.vocabulary = vocabulary if vocabulary is not None else default_vocabulary

    def _describe_status_error(self, url: str, response: httpx.Response) -> str:
        if response.status_code in (401, 403):
            return "Gemini rejected the API key. Check GEMINI_API_KEY and that the Generative Language API is enabled."
        if response.status_code == 429:
            return "Gemini quota exceeded. Wait a moment or check your plan limits."
        return f"Gemini request failed: HTTP {response.status_code} {response.reason_phrase}"

    def _describe_request_error(self, url: str, error: httpx.RequestError) -> str:
        return f"Could not reach Gemini ({type(error).__name__}). Check your network connection."

    async def _generate_content(
        self,
        model: str,
        image_data: bytes,
        prompt: str,
        generation_config: Optional[Dict[str, Any]] = None,
        system_instruction: Optional[str] = None,
    ) -> Any:
        body: Dict[str, Any] = {
            "contents": [{
                "parts": [
                    {"inline_data": {"mime_type": detect_mime_type(image_data), "data": encode_base64(image_data)}},
                    {"text": prompt},
                ],
            }],
        }
        if generation_config:
            body["generationConfig"] = generation_config
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        response = await self._request(
            "POST",
            f"{self.api_base}/models/{model}:generateContent",
            json_data=body,
            headers={"x-goog-api-key": self.api_key},
        )
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Gemini returned a non-JSON body: {e}") from e

    def _to_tags(self, items: Any) -> List[Tag]:
        tags = []
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                continue
            name = normalize_tag_name(item["name"])
            score = coerce_score(item.get("score"))
            if not name or score is None:
                continue
            try:
                category = TagCategory(item.get("category"))
            except ValueError:
                category = self.vocabulary.classify(name)
            tags.append(Tag(
                name=name,
                score=normalize_score(score),
                category=category,
                source=TagSource.REASONING_MODEL,
            ))
        tags.sort(key=lambda tag: tag.score, reverse=True)
        return tags

    async def interrogate(self, image_data: bytes) -> InterrogationResult:
        """Tag an image in one structured-output call."""
        generation_config = {
            "responseMimeType": "application/json",
            "responseSchema": build_response_schema(),
        }
        try:
            body = await self._generate_content(
                self.model,
                image_data,
                INTERROGATION_PROMPT,
                generation_config=generation_config,
                system_instruction=SYSTEM_INSTRUCTION,
            )
            data = json.loads(extract_candidate_text(body))
        except (ParseError, ValueError) as e:
            self.logger.error(f"❌ Could not parse Gemini tags: {e}")
            return InterrogationResult(tags=[])

        tags = self._to_tags(data.get("tags") if isinstance(data, dict) else None)
        self.logger.info(f"🏷️  Gemini returned {len(tags)} tags")
        return InterrogationResult(tags=tags)

    async def generate_caption(self, image_data: bytes) -> str:
        """Free-form description of the image."""
        try:
            body = await self._generate_content(self.caption_model, image_data, CAPTION_PROMPT)
            return extract_candidate_text(body).strip()
        except ParseError as e:
            self.logger.error(f"❌ Could not parse Gemini caption: {e}")
            return ""
