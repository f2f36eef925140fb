"""
Tests for the Ollama reasoning-model client.
"""

import base64

import httpx
import pytest
from conftest import OLLAMA_URL
from tag_interrogator.errors import ConfigurationError, ParseError
from tag_interrogator.models import BackendConfig, Tag, TagCategory, TagSource
from tag_interrogator.ollama_client import (
    CONFIRMED_COPYRIGHT_SCORE,
    REASONING_TAG_SCORE,
    UNCONFIRMED_COPYRIGHT_SCORE,
    ReasoningModelClient,
    build_verification_prompt,
    fetch_reasoning_copyrights,
    fetch_reasoning_tags_and_summary,
)


def test_verification_prompt_without_tags_asks_for_list_and_summary():
    prompt = build_verification_prompt([])
    assert "Tags:" in prompt
    assert "Summary:" in prompt
    assert "Verify" not in prompt


def test_verification_prompt_grounds_on_existing_tags():
    tags = [
        Tag(name="hatsune_miku", score=0.9, category=TagCategory.CHARACTER),
        Tag(name="vocaloid", score=0.9, category=TagCategory.COPYRIGHT),
        Tag(name="long_hair", score=0.8),
    ]
    prompt = build_verification_prompt(tags)

    assert "hatsune_miku, vocaloid, long_hair" in prompt
    assert "The image is from: vocaloid." in prompt
    assert "Verify each tag" in prompt


@pytest.mark.asyncio
async def test_generate_request_body(config, vocabulary, png_bytes, mock_client, ollama_reply, request_json):
    seen = []

    def handler(request):
        seen.append(request)
        return ollama_reply("ok")

    async with mock_client(handler) as client:
        reasoning = ReasoningModelClient(config, client, vocabulary)
        text = await reasoning.generate("describe", png_bytes, system="be terse", json_format=True)

    assert text == "ok"
    assert str(seen[0].url) == f"{OLLAMA_URL}/api/generate"
    assert request_json(seen[0]) == {
        "model": "qwen3-vl:30b",
        "prompt": "describe",
        "stream": False,
        "images": [base64.b64encode(png_bytes).decode("ascii")],
        "system": "be terse",
        "format": "json",
    }


@pytest.mark.asyncio
async def test_generate_rejects_bodies_without_response(config, vocabulary, mock_client):
    def handler(request):
        return httpx.Response(200, json={"error": "model not found"})

    async with mock_client(handler) as client:
        with pytest.raises(ParseError):
            await ReasoningModelClient(config, client, vocabulary).generate("hi")


@pytest.mark.asyncio
async def test_generate_requires_endpoint(vocabulary, mock_client):
    def handler(request):
        raise AssertionError("no request expected")

    async with mock_client(handler) as client:
        reasoning = ReasoningModelClient(BackendConfig(ollama_endpoint=""), client, vocabulary)
        with pytest.raises(ConfigurationError):
            await reasoning.generate("hi")


@pytest.mark.asyncio
async def test_tags_and_summary(config, vocabulary, png_bytes, mock_client, ollama_reply):
    def handler(request):
        return ollama_reply("Tags: cat, outdoors, Hatsune Miku\nSummary: A cat — outdoors\x07 ♥")

    async with mock_client(handler) as client:
        output = await fetch_reasoning_tags_and_summary(png_bytes, config, http_client=client, vocabulary=vocabulary)

    assert [tag.name for tag in output.tags] == ["cat", "outdoors", "hatsune_miku"]
    assert all(tag.score == REASONING_TAG_SCORE for tag in output.tags)
    assert all(tag.source == TagSource.REASONING_MODEL for tag in output.tags)
    assert output.tags[2].category == TagCategory.CHARACTER
    assert output.summary == "A cat  outdoors"


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(500),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json={"done": True}),
])
async def test_tags_and_summary_never_raises(config, vocabulary, png_bytes, mock_client, response):
    def handler(request):
        return response

    async with mock_client(handler) as client:
        output = await fetch_reasoning_tags_and_summary(png_bytes, config, http_client=client, vocabulary=vocabulary)

    assert output.tags == []
    assert output.summary == ""


@pytest.mark.asyncio
async def test_tags_and_summary_without_endpoint_degrades(vocabulary, png_bytes, mock_client):
    def handler(request):
        raise AssertionError("no request expected")

    async with mock_client(handler) as client:
        output = await fetch_reasoning_tags_and_summary(
            png_bytes, BackendConfig(ollama_endpoint=""), http_client=client, vocabulary=vocabulary
        )

    assert output.tags == []


@pytest.mark.asyncio
async def test_resolve_copyrights_scores_by_vocabulary(config, vocabulary, mock_client, ollama_reply, request_json):
    seen = []

    def handler(request):
        seen.append(request_json(request))
        return ollama_reply('Here you go: ["Vocaloid", "Fate Grand Order", "vocaloid", 3, ""]')

    async with mock_client(handler) as client:
        tags = await fetch_reasoning_copyrights(
            ["hatsune_miku", "artoria_pendragon_(fate)"], config, http_client=client, vocabulary=vocabulary
        )

    assert "hatsune_miku, artoria_pendragon_(fate)" in seen[0]["prompt"]
    assert seen[0]["system"]
    assert "images" not in seen[0]

    assert [(tag.name, tag.score) for tag in tags] == [
        ("vocaloid", CONFIRMED_COPYRIGHT_SCORE),
        ("fate_grand_order", UNCONFIRMED_COPYRIGHT_SCORE),
    ]
    assert all(tag.category == TagCategory.COPYRIGHT for tag in tags)
    assert all(tag.source == TagSource.REASONING_MODEL for tag in tags)


@pytest.mark.asyncio
async def test_resolve_copyrights_with_no_names_makes_no_request(config, vocabulary, mock_client):
    def handler(request):
        raise AssertionError("no request expected")

    async with mock_client(handler) as client:
        assert await ReasoningModelClient(config, client, vocabulary).resolve_copyrights([]) == []


@pytest.mark.asyncio
async def test_resolve_copyrights_without_array_is_parse_error(config, vocabulary, mock_client, ollama_reply):
    def handler(request):
        return ollama_reply("I am not sure which series these are from.")

    async with mock_client(handler) as client:
        reasoning = ReasoningModelClient(config, client, vocabulary)
        with pytest.raises(ParseError):
            await reasoning.resolve_copyrights(["hatsune_miku"])

        assert await fetch_reasoning_copyrights(["hatsune_miku"], config, http_client=client, vocabulary=vocabulary) == []


@pytest.mark.asyncio
async def test_fetch_copyrights_swallows_network_errors(config, vocabulary, mock_client):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with mock_client(handler) as client:
        assert await fetch_reasoning_copyrights(["hatsune_miku"], config, http_client=client, vocabulary=vocabulary) == []


@pytest.mark.asyncio
async def test_generate_caption(config, vocabulary, png_bytes, mock_client, ollama_reply, request_json):
    prompts = []

    def handler(request):
        prompts.append(request_json(request)["prompt"])
        return ollama_reply("<think>let me look</think>\nThe image shows: A girl with long hair.")

    async with mock_client(handler) as client:
        reasoning = ReasoningModelClient(config, client, vocabulary)
        caption = await reasoning.generate_caption(png_bytes, [Tag(name="long_hair", score=0.9)])
        plain = await reasoning.generate_caption(png_bytes)

    assert caption == "A girl with long hair."
    assert plain == caption
    assert "long hair" in prompts[0]
    assert "long hair" not in prompts[1]


@pytest.mark.asyncio
async def test_list_models(config, vocabulary, mock_client):
    def handler(request):
        assert request.method == "GET"
        assert str(request.url) == f"{OLLAMA_URL}/api/tags"
        return httpx.Response(200, json={"models": [{"name": "qwen3-vl:30b"}, {"name": "llava:13b"}, {"size": 1}]})

    async with mock_client(handler) as client:
        assert await ReasoningModelClient(config, client, vocabulary).list_models() == ["qwen3-vl:30b", "llava:13b"]


@pytest.mark.asyncio
async def test_list_models_never_raises(config, vocabulary, mock_client):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with mock_client(handler) as client:
        assert await ReasoningModelClient(config, client, vocabulary).list_models() == []
        assert await ReasoningModelClient(BackendConfig(), client, vocabulary).list_models() == []
