"""Configuration management for coverline using pydantic-settings.

Settings priority (highest to lowest):
1. CLI flags (applied after CoverlineConfig creation)
2. Environment variables (COVERLINE_* prefix)
3. .env file
4. coverline.yaml project config
5. Default values
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from coverline.ingest.chunker import ChunkingOptions
from coverline.validator import ConfidenceWeights

logger = logging.getLogger(__name__)

# Map coverline.yaml keys to CoverlineConfig field names
_YAML_TO_FIELD = {
    "model": "default_model",
    "database": "database_url",
    "storage": "storage_root",
    "review_threshold": "review_threshold",
}

# Nested yaml blocks: block name -> {key: field name}
_YAML_BLOCKS = {
    "chunking": {
        "target_tokens": "target_tokens",
        "max_tokens": "max_chunk_tokens",
        "overlap_tokens": "overlap_tokens",
    },
    "confidence": {
        "classification_weight": "classification_weight",
        "policy_weight": "policy_weight",
        "coverage_weight": "coverage_weight",
    },
}


class _ProjectYamlSource(PydanticBaseSettingsSource):
    """Read project config from coverline.yaml (lower priority than env vars)."""

    def get_field_value(self, field, field_name):  # type: ignore[override]
        return None, field_name, False

    def __call__(self) -> dict:
        project_file = Path("coverline.yaml")
        if not project_file.exists():
            return {}

        raw = yaml.safe_load(project_file.read_text()) or {}

        result: dict = {}
        for yaml_key, field_name in _YAML_TO_FIELD.items():
            if yaml_key in raw:
                result[field_name] = raw[yaml_key]

        for block, keys in _YAML_BLOCKS.items():
            section = raw.get(block) or {}
            if not isinstance(section, dict):
                logger.warning(f"Ignoring coverline.yaml '{block}' block: expected a mapping")
                continue
            for yaml_key, field_name in keys.items():
                if yaml_key in section:
                    result[field_name] = section[yaml_key]
        return result


class CoverlineConfig(BaseSettings):
    """Configuration settings for coverline loaded from environment variables.

    All environment variables are prefixed with COVERLINE_
    (e.g., COVERLINE_DATABASE_URL). Empty string values are treated as unset.

    Example:
        >>> config = CoverlineConfig()
        >>> config.validate_api_keys(config.default_model)
        >>> options = config.chunking_options()
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="COVERLINE_",
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _ProjectYamlSource(settings_cls),
            file_secret_settings,
        )

    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    anthropic_api_key: str | None = Field(default=None, description="Anthropic API key")
    gemini_api_key: str | None = Field(default=None, description="Google Gemini API key")

    # LLM gateway
    default_model: str = Field(
        default="anthropic/claude-sonnet-4-20250514",
        description="LLM model in format provider/model-name",
    )
    max_output_tokens: int = Field(default=4096, gt=0, description="Max tokens per completion")
    max_retries: int = Field(default=3, ge=1, description="Attempts per completion before giving up")
    llm_timeout: int = Field(default=120, gt=0, description="Per-request timeout in seconds")
    rpm: int = Field(default=40, ge=0, description="Max requests per minute (0 disables limiting)")
    extraction_timeout: float = Field(
        default=300.0, gt=0, description="Upper bound in seconds for one extractor call, retries included"
    )

    # Persistence
    database_url: str = Field(
        default="sqlite+aiosqlite:///coverline.db",
        description="SQLAlchemy async database URL",
    )
    storage_root: Path = Field(default=Path("."), description="Root directory for stored PDFs")

    # Chunking
    target_tokens: int = Field(default=500, gt=0)
    max_chunk_tokens: int = Field(default=1000, gt=0)
    overlap_tokens: int = Field(default=50, ge=0)

    # Scanned document handling
    scanned_threshold: int = Field(
        default=30, ge=0, le=100, description="Quality score below which a page counts as scanned"
    )
    block_scanned_documents: bool = Field(
        default=False, description="Fail processing for scanned documents instead of flagging them"
    )

    # Confidence blending and review
    classification_weight: float = Field(default=0.10, ge=0.0, le=1.0)
    policy_weight: float = Field(default=0.30, ge=0.0, le=1.0)
    coverage_weight: float = Field(default=0.60, ge=0.0, le=1.0)
    review_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Confidence below which human review is required"
    )

    # Pipeline
    coverage_concurrency: int = Field(default=5, ge=1, description="Concurrent coverage extractions")
    coverage_context_tokens: int = Field(
        default=12000, gt=0, description="Token budget of chunk text sent to each coverage extractor"
    )
    declarations_fallback_pages: int = Field(
        default=3, ge=1, description="Pages treated as declarations when no section is detected"
    )

    @model_validator(mode="after")
    def _export_api_keys(self) -> "CoverlineConfig":
        """Export API keys to environment so LiteLLM can find them."""
        key_map = {
            "OPENAI_API_KEY": self.openai_api_key,
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
            "GEMINI_API_KEY": self.gemini_api_key,
        }
        for env_var, value in key_map.items():
            if value and env_var not in os.environ:
                os.environ[env_var] = value
        return self

    @model_validator(mode="after")
    def _check_consistency(self) -> "CoverlineConfig":
        total = self.classification_weight + self.policy_weight + self.coverage_weight
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Confidence weights must sum to 1.0, got {total:.4f}")
        if self.max_chunk_tokens < self.target_tokens:
            raise ValueError(
                f"max_chunk_tokens ({self.max_chunk_tokens}) must be >= target_tokens ({self.target_tokens})"
            )
        return self

    def chunking_options(self) -> ChunkingOptions:
        return ChunkingOptions(
            target_tokens=self.target_tokens,
            max_tokens=self.max_chunk_tokens,
            overlap_tokens=self.overlap_tokens,
        )

    def confidence_weights(self) -> ConfidenceWeights:
        return ConfidenceWeights(
            classification=self.classification_weight,
            policy=self.policy_weight,
            coverage=self.coverage_weight,
        )

    def validate_api_keys(self, model: str) -> None:
        """Validate that required API key exists for the specified model provider.

        Args:
            model: Model string in format provider/model-name

        Raises:
            ValueError: If required API key is missing for the model provider
        """
        required = {
            "openai/": ("OPENAI_API_KEY", self.openai_api_key),
            "anthropic/": ("ANTHROPIC_API_KEY", self.anthropic_api_key),
            "gemini/": ("GEMINI_API_KEY", self.gemini_api_key),
        }
        for prefix, (env_var, value) in required.items():
            if model.startswith(prefix) and not value and not os.environ.get(env_var):
                raise ValueError(
                    f"{env_var} not found. Set COVERLINE_{env_var} or {env_var} "
                    "in the environment or .env file."
                )
        # Ollama models run locally - no API key needed
