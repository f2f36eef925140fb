"""
Data models for the tag interrogator.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from .errors import ConfigurationError


class TagCategory(str, Enum):
    """Danbooru tag categories."""
    GENERAL = "general"
    CHARACTER = "character"
    COPYRIGHT = "copyright"
    ARTIST = "artist"
    META = "meta"
    RATING = "rating"


class TagSource(str, Enum):
    """Which backend(s) produced a tag."""
    LOCAL = "local"
    REASONING_MODEL = "reasoning_model"
    BOTH = "both"


class BackendType(str, Enum):
    """Interrogation backend selection."""
    GEMINI = "gemini"
    LOCAL_HYBRID = "local_hybrid"


class StageStatus(str, Enum):
    """Outcome of a single pipeline stage."""
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"
    SKIPPED = "skipped"


class Tag(BaseModel):
    """A single tag with confidence and provenance."""
    model_config = ConfigDict(frozen=True)

    name: str
    score: float = Field(ge=0.0, le=1.0)
    category: TagCategory = TagCategory.GENERAL
    source: TagSource = TagSource.LOCAL


class StageReport(BaseModel):
    """Status of one pipeline stage for a single interrogation."""
    model_config = ConfigDict(frozen=True)

    stage: str
    status: StageStatus
    detail: Optional[str] = None


class InterrogationResult(BaseModel):
    """Final output of one interrogation."""
    model_config = ConfigDict(frozen=True)

    tags: Tuple[Tag, ...] = ()
    natural_description: Optional[str] = None
    stages: Tuple[StageReport, ...] = ()

    def degraded_stages(self) -> List[StageReport]:
        """Stages that failed rather than simply producing nothing."""
        return [report for report in self.stages if report.status == StageStatus.FAILED]


class BackendConfig(BaseModel):
    """Backend selection and endpoints for one interrogation."""
    type: BackendType = BackendType.LOCAL_HYBRID

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-3-pro-preview"
    gemini_caption_model: str = "gemini-2.5-flash"

    # Local hybrid (local tagger + Ollama)
    ollama_endpoint: str = ""
    ollama_model: str = "qwen3-vl:30b"
    tagger_endpoint: str = ""
    enable_natural_language: bool = True

    def validate_for_interrogation(self, backend: Optional[BackendType] = None) -> None:
        """Fail fast when a required endpoint or key for ``backend`` is blank."""
        backend = backend or self.type
        if backend == BackendType.GEMINI:
            if not self.gemini_api_key.strip():
                raise ConfigurationError(
                    "Gemini API key is required. Set GEMINI_API_KEY or pass --gemini-api-key."
                )
        elif backend == BackendType.LOCAL_HYBRID:
            if not self.ollama_endpoint.strip():
                raise ConfigurationError("Ollama endpoint is required for local hybrid mode.")
            if not self.tagger_endpoint.strip():
                raise ConfigurationError("Local tagger endpoint is required for local hybrid mode.")


class TaggingSettings(BaseModel):
    """Display-side filtering applied to a result's tags."""
    thresholds: Dict[TagCategory, float] = Field(default_factory=lambda: {
        TagCategory.GENERAL: 0.7,
        TagCategory.CHARACTER: 0.7,
        TagCategory.COPYRIGHT: 0.7,
        TagCategory.ARTIST: 0.7,
        TagCategory.META: 0.7,
        TagCategory.RATING: 0.8,
    })
    top_k: int = Field(default=50, gt=0)
    randomize: bool = False
    remove_underscores: bool = False
