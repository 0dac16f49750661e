"""Pipeline configuration using pydantic settings."""

import os
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import AliasChoices, BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .catalog import (
    DEFAULT_DELIVERY_FORMATS,
    DEFAULT_ENCODE_PROFILES,
    DEFAULT_SIZE_PRESETS,
    Category,
    EncodeProfile,
    OutputFormat,
    SizePreset,
    select_presets,
)
from .exceptions import ConfigurationError


class CategorySettings(BaseModel):
    """Per-category storage directory and overrides."""

    directory: str
    max_file_size: Optional[int] = Field(default=None, gt=0)
    target_size_kb: Optional[int] = Field(default=None, gt=0)


class CompressionSettings(BaseModel):
    """Bounds of the quality search used for size-budgeted outputs."""

    start_quality: int = Field(default=90, ge=1, le=100)
    quality_step: int = Field(default=10, ge=1)
    min_quality: int = Field(default=20, ge=1, le=100)
    max_attempts: int = Field(default=10, ge=1)


def _default_categories() -> Dict[str, CategorySettings]:
    # Budgets follow the upload middleware of the content site.
    return {
        Category.PROJECTS.value: CategorySettings(
            directory="projects", target_size_kb=150
        ),
        Category.TEAM.value: CategorySettings(directory="team", target_size_kb=100),
        Category.BLOG.value: CategorySettings(directory="blog"),
        Category.OPTIMIZED.value: CategorySettings(
            directory="optimized", target_size_kb=120
        ),
    }


def _default_max_workers() -> int:
    return max(1, min(4, os.cpu_count() or 1))


class PipelineConfig(BaseSettings):
    """
    Configuration for one pipeline instance.

    Every value has a default so the pipeline works unconfigured. Values can
    be overridden through ``MEDIA_*`` environment variables (nested values
    use ``__``, complex values are JSON) or constructor arguments.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEDIA_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    max_file_size: int = Field(
        default=5 * 1024 * 1024,
        gt=0,
        validation_alias=AliasChoices("MEDIA_MAX_FILE_SIZE", "MAX_FILE_UPLOAD"),
    )
    uploads_dir: Path = Path("uploads")
    url_prefix: str = "/uploads"
    temp_dir: str = "temp"
    temp_max_age_hours: float = Field(default=24, gt=0)

    categories: Dict[str, CategorySettings] = Field(
        default_factory=_default_categories
    )
    encode_profiles: Dict[OutputFormat, EncodeProfile] = Field(
        default_factory=lambda: dict(DEFAULT_ENCODE_PROFILES)
    )
    size_presets: List[SizePreset] = Field(
        default_factory=lambda: list(DEFAULT_SIZE_PRESETS)
    )
    enabled_presets: Optional[List[str]] = None
    delivery_formats: Tuple[OutputFormat, OutputFormat] = DEFAULT_DELIVERY_FORMATS
    background: Tuple[int, int, int] = (255, 255, 255)

    max_workers: int = Field(default_factory=_default_max_workers, ge=1)
    fanout: Literal["serial", "multithread"] = "multithread"
    compression: CompressionSettings = Field(default_factory=CompressionSettings)
    strict_content_type: bool = False
    max_pixels: int = Field(default=50_000_000, gt=0)

    @model_validator(mode="after")
    def _check_consistency(self) -> "PipelineConfig":
        for fmt in self.delivery_formats:
            if fmt not in self.encode_profiles:
                raise ValueError(f"No encode profile for delivery format {fmt.value}")
        names = [preset.name for preset in self.size_presets]
        if len(names) != len(set(names)):
            raise ValueError("Size preset names must be unique")
        if self.enabled_presets is not None:
            unknown = set(self.enabled_presets) - set(names)
            if unknown:
                raise ValueError(f"Unknown enabled preset(s): {sorted(unknown)}")
        return self

    @property
    def presets(self) -> List[SizePreset]:
        """Enabled presets in catalog order."""
        return select_presets(self.size_presets, self.enabled_presets)

    def category(self, name: str) -> CategorySettings:
        try:
            return self.categories[name]
        except KeyError:
            raise ConfigurationError(f"Unknown category: {name}") from None

    def max_file_size_for(self, category: str) -> int:
        override = self.category(category).max_file_size
        return override if override is not None else self.max_file_size
