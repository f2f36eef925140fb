"""
Shared fixtures for the tag interrogator tests.
"""

import io
import json
import httpx
import pytest
from PIL import Image
from tag_interrogator.models import BackendConfig, TagCategory
from tag_interrogator.vocabulary import TagVocabulary


TAGGER_URL = "http://tagger.test/interrogate/pixai"
OLLAMA_URL = "http://ollama.test"


@pytest.fixture
def vocabulary():
    """Small preloaded reference table."""
    return TagVocabulary.from_mapping({
        "1girl": TagCategory.GENERAL,
        "long_hair": TagCategory.GENERAL,
        "cat": TagCategory.GENERAL,
        "outdoors": TagCategory.GENERAL,
        "blue_skin": TagCategory.GENERAL,
        "colored_skin": TagCategory.GENERAL,
        "hatsune_miku": TagCategory.CHARACTER,
        "hu_tao_(genshin_impact)": TagCategory.CHARACTER,
        "artoria_pendragon_(fate)": TagCategory.CHARACTER,
        "vocaloid": TagCategory.COPYRIGHT,
        "genshin_impact": TagCategory.COPYRIGHT,
        "ask_(askzy)": TagCategory.ARTIST,
        "highres": TagCategory.META,
        "general": TagCategory.RATING,
    })


@pytest.fixture
def config():
    """Local hybrid configuration pointing at the fake services."""
    return BackendConfig(ollama_endpoint=OLLAMA_URL, tagger_endpoint=TAGGER_URL)


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def mock_client():
    """Factory for an httpx.AsyncClient backed by a request handler."""
    def factory(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return factory


@pytest.fixture
def ollama_reply():
    """Factory for an Ollama /api/generate response."""
    def factory(text):
        return httpx.Response(200, json={"model": "qwen3-vl:30b", "response": text, "done": True})
    return factory


@pytest.fixture
def request_json():
    """Decode a captured request's JSON body."""
    def decode(request):
        return json.loads(request.content)
    return decode
