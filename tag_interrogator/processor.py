"""
Main processor for the tag interrogator.
"""

import time
from typing import List, Optional, Sequence
import httpx
from .config import settings
from .errors import ConfigurationError
from .gemini_client import GeminiClient
from .logging import get_logger, MetricsLogger
from .models import BackendConfig, BackendType, InterrogationResult, Tag
from .ollama_client import ReasoningModelClient
from .pipeline import InterrogationPipeline, ProgressCallback, ProgressReporter
from .vocabulary import TagVocabulary, vocabulary as default_vocabulary


class ImageInterrogator:
    """Dispatches interrogations to the configured backend."""

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        vocabulary: Optional[TagVocabulary] = None,
    ):
        self.logger = get_logger("processor")
        self.metrics = MetricsLogger()
        self.config = config or settings.to_backend_config()
        self.vocabulary = vocabulary if vocabulary is not None else default_vocabulary
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=settings.request_timeout)

    def validate_config(self) -> None:
        """Raise ConfigurationError if the selected backend is not usable."""
        self.config.validate_for_interrogation()

    async def interrogate(
        self,
        image_data: bytes,
        on_progress: Optional[ProgressCallback] = None,
    ) -> InterrogationResult:
        """Tag one image with the configured backend.

        The Gemini path raises NetworkError on failure. The local hybrid path
        only raises ConfigurationError and degrades otherwise.
        """
        self.validate_config()
        self.logger.info(f"🔍 Interrogating image with {self.config.type.value} backend")

        if self.config.type == BackendType.GEMINI:
            start_time = time.time()
            progress = ProgressReporter(on_progress)
            gemini = GeminiClient(self.config, self.client, self.vocabulary)
            progress.report("Loading tag vocabulary", 5)
            await self.vocabulary.load()
            progress.report("Querying Gemini", 10)
            result = await gemini.interrogate(image_data)
            progress.report("Done", 100)
            self.metrics.log_interrogation(len(result.tags), time.time() - start_time)
            return result

        pipeline = InterrogationPipeline(self.config, self.client, self.vocabulary, self.metrics)
        return await pipeline.run(image_data, on_progress)

    async def generate_caption(self, image_data: bytes, existing_tags: Sequence[Tag] = ()) -> str:
        """On-demand description, for when interrogation ran without one."""
        if self.config.type == BackendType.GEMINI:
            return await GeminiClient(self.config, self.client, self.vocabulary).generate_caption(image_data)

        if not self.config.ollama_endpoint.strip():
            raise ConfigurationError("Ollama endpoint is missing.")
        reasoning = ReasoningModelClient(self.config, self.client, self.vocabulary)
        return await reasoning.generate_caption(image_data, existing_tags)

    async def list_models(self) -> List[str]:
        """Models available on the configured Ollama server."""
        return await ReasoningModelClient(self.config, self.client, self.vocabulary).list_models()

    def get_metrics(self):
        """Get current processing metrics."""
        return self.metrics.get_metrics()

    async def close(self):
        """Clean up resources."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
