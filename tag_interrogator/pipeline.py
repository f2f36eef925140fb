"""
Hybrid interrogation pipeline.

Stages run strictly in order, since the reasoning model is grounded on the
local tagger's enriched output:

    fetch-local -> enrich-copyright -> fetch-reasoning (optional) -> merge

Each stage yields a StageOutcome; a failed stage folds into the next one as
empty input. Only ConfigurationError, raised before any request, escapes.
"""

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar
import httpx
from .config import settings
from .enrichment import enrich_copyrights
from .logging import get_logger, MetricsLogger
from .merge import merge_tags
from .models import BackendConfig, BackendType, InterrogationResult, StageReport, StageStatus, Tag
from .ollama_client import ReasoningModelClient, ReasoningOutput
from .tagger_client import LocalTaggerClient
from .vocabulary import TagVocabulary, vocabulary as default_vocabulary


T = TypeVar("T")

ProgressCallback = Callable[[str, int], None]

STAGE_FETCH_LOCAL = "fetch-local"
STAGE_ENRICH = "enrich-copyright"
STAGE_FETCH_REASONING = "fetch-reasoning"
STAGE_MERGE = "merge"


@dataclass
class StageOutcome(Generic[T]):
    """Value or error produced by one stage."""
    stage: str
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def value_or(self, default: T) -> T:
        """The stage's value, or ``default`` if it failed."""
        return default if self.failed else self.value


async def run_stage(stage: str, operation: Callable[[], Awaitable[T]]) -> StageOutcome[T]:
    """Await one stage and capture its failure instead of raising it."""
    try:
        return StageOutcome(stage=stage, value=await operation())
    except Exception as e:
        return StageOutcome(stage=stage, error=e)


class ProgressReporter:
    """Forwards (label, percent) pairs, never letting percent go backwards."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.percent = 0
        self.logger = get_logger("pipeline")

    def report(self, label: str, percent: int) -> None:
        self.percent = max(self.percent, min(percent, 100))
        self.logger.debug(f"[{self.percent:3d}%] {label}")
        if self.callback is None:
            return
        try:
            self.callback(label, self.percent)
        except Exception as e:
            self.logger.warning(f"⚠️  Progress callback raised, ignoring: {e}")


class InterrogationPipeline:
    """Runs the local-hybrid interrogation for one backend configuration."""

    def __init__(
        self,
        config: BackendConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        vocabulary: Optional[TagVocabulary] = None,
        metrics: Optional[MetricsLogger] = None,
    ):
        self.config = config
        self.http_client = http_client
        self.vocabulary = vocabulary if vocabulary is not None else default_vocabulary
        self.metrics = metrics or MetricsLogger()
        self.logger = get_logger("pipeline")

    async def run(self, image_data: bytes, on_progress: Optional[ProgressCallback] = None) -> InterrogationResult:
        """Interrogate one image. Raises only ConfigurationError."""
        self.config.validate_for_interrogation(BackendType.LOCAL_HYBRID)

        if self.http_client is not None:
            return await self._run(image_data, self.http_client, ProgressReporter(on_progress))
        async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
            return await self._run(image_data, client, ProgressReporter(on_progress))

    async def _run(
        self,
        image_data: bytes,
        client: httpx.AsyncClient,
        progress: ProgressReporter,
    ) -> InterrogationResult:
        start_time = time.time()
        reports: List[StageReport] = []
        tagger = LocalTaggerClient(self.config, client, self.vocabulary)
        reasoning = ReasoningModelClient(self.config, client, self.vocabulary)

        progress.report("Loading tag vocabulary", 5)
        await self.vocabulary.load()

        # 1. Local tagger
        progress.report("Running local tagger", 10)
        local = await run_stage(STAGE_FETCH_LOCAL, lambda: tagger.fetch_tags(image_data))
        local_tags: List[Tag] = local.value_or([])
        reports.append(self._report(local, len(local_tags)))

        # 2. Copyright enrichment, before captioning so it can ground the description
        progress.report("Resolving copyrights", 35)
        enriched = await run_stage(
            STAGE_ENRICH,
            lambda: enrich_copyrights(local_tags, self.config, http_client=client, vocabulary=self.vocabulary),
        )
        enriched_tags: List[Tag] = enriched.value_or(local_tags)
        reports.append(self._report(enriched, len(enriched_tags) - len(local_tags)))

        # 3. Reasoning model verification + caption
        output = ReasoningOutput()
        if self.config.enable_natural_language:
            progress.report("Generating description", 55)
            verified = await run_stage(
                STAGE_FETCH_REASONING,
                lambda: reasoning.tags_and_summary(image_data, enriched_tags),
            )
            output = verified.value_or(ReasoningOutput())
            reports.append(self._report(verified, len(output.tags) + (1 if output.summary else 0)))
        else:
            reports.append(StageReport(
                stage=STAGE_FETCH_REASONING,
                status=StageStatus.SKIPPED,
                detail="natural language output disabled",
            ))

        # 4. Merge
        progress.report("Merging tags", 90)
        merged = await run_stage(STAGE_MERGE, self._merge(enriched_tags, output.tags))
        final_tags: List[Tag] = merged.value_or(enriched_tags)
        reports.append(self._report(merged, len(final_tags)))

        progress.report("Done", 100)

        processing_time = time.time() - start_time
        self.metrics.log_interrogation(len(final_tags), processing_time)
        self.logger.info(
            f"🏷️  Interrogation complete: {len(final_tags)} tags"
            f"{', with description' if output.summary else ''} in {processing_time:.2f}s"
        )

        return InterrogationResult(
            tags=final_tags,
            natural_description=output.summary or None,
            stages=reports,
        )

    @staticmethod
    def _merge(local_tags: List[Tag], reasoning_tags: List[Tag]) -> Callable[[], Awaitable[List[Tag]]]:
        async def operation() -> List[Tag]:
            return merge_tags(local_tags, reasoning_tags)
        return operation

    def _report(self, outcome: StageOutcome, produced: int) -> StageReport:
        if outcome.failed:
            self.metrics.log_stage_failure(outcome.stage, str(outcome.error))
            return StageReport(stage=outcome.stage, status=StageStatus.FAILED, detail=str(outcome.error))
        status = StageStatus.OK if produced > 0 else StageStatus.EMPTY
        return StageReport(stage=outcome.stage, status=status)


async def run_pipeline(
    image_data: bytes,
    config: BackendConfig,
    on_progress: Optional[ProgressCallback] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    vocabulary: Optional[TagVocabulary] = None,
) -> InterrogationResult:
    """Run the local-hybrid pipeline for one image."""
    pipeline = InterrogationPipeline(config, http_client=http_client, vocabulary=vocabulary)
    return await pipeline.run(image_data, on_progress)
