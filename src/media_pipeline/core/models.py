"""Shared data models for the media pipeline."""

from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .catalog import ORIGINAL_PRESET, OutputFormat, parse_output_format


class SourceAsset(BaseModel):
    """An uploaded file as received from the HTTP layer."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    filename: str
    mime_type: str
    byte_length: int = Field(ge=0)

    @classmethod
    def from_bytes(
        cls, data: bytes, filename: str, mime_type: str
    ) -> "SourceAsset":
        return cls(
            data=data, filename=filename, mime_type=mime_type, byte_length=len(data)
        )

    @property
    def received_bytes(self) -> int:
        """Length of the buffer actually received, whatever was declared."""
        return len(self.data)

    @property
    def extension(self) -> str:
        return PurePosixPath(self.filename).suffix.lower().lstrip(".")

    @property
    def stem(self) -> str:
        return PurePosixPath(self.filename).stem


class ManifestOptions(BaseModel):
    """Per-call knobs for manifest generation."""

    presets: Optional[List[str]] = None
    formats: Optional[Tuple[OutputFormat, OutputFormat]] = None
    include_original: bool = True
    # Setting a byte budget switches to the compression-search mode.
    target_size_kb: Optional[int] = Field(default=None, gt=0)
    compress: bool = False
    budget_presets: List[str] = Field(default_factory=lambda: ["thumbnail"])
    budget_format: Optional[OutputFormat] = None

    def target_bytes(self, category_budget_kb: Optional[int] = None) -> Optional[int]:
        if self.target_size_kb is not None:
            return self.target_size_kb * 1024
        if self.compress and category_budget_kb is not None:
            return category_budget_kb * 1024
        return None


class DecodedMetadata(BaseModel):
    """Header-level facts about a source image."""

    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    format: str
    has_alpha: bool = False
    orientation: int = 1
    color_space: str = "RGB"
    density: Optional[Tuple[float, float]] = None


class EncodedImage(BaseModel):
    """Output of a single transcode; lives in memory only."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    format: OutputFormat
    width: int
    height: int
    byte_length: int
    compression_ratio: float
    quality: Optional[int] = None


class CompressionResult(BaseModel):
    """Best-effort result of a size-bounded quality search."""

    model_config = ConfigDict(frozen=True)

    image: EncodedImage
    attempts: int
    quality: int
    target_bytes: int
    within_budget: bool


class StoredFile(BaseModel):
    """A file promoted into its category directory."""

    model_config = ConfigDict(frozen=True)

    filename: str
    relative_path: str
    path: str
    url: str


class Variant(BaseModel):
    """One persisted (preset x format) output."""

    model_config = ConfigDict(frozen=True)

    preset: str
    format: OutputFormat
    filename: str
    path: str
    url: str
    width: int
    height: int
    byte_length: int
    compression_ratio: float
    quality: Optional[int] = None
    is_primary: bool = False
    target_bytes: Optional[int] = None
    within_budget: Optional[bool] = None


class OriginalInfo(BaseModel):
    """What was uploaded, and what it actually turned out to be."""

    model_config = ConfigDict(frozen=True)

    filename: str
    mime_type: str
    byte_length: int
    width: int
    height: int
    format: str
    has_alpha: bool = False
    orientation: int = 1


class Manifest(BaseModel):
    """Every variant generated for one upload."""

    model_config = ConfigDict(frozen=True)

    category: str
    mode: str = "responsive"
    original: OriginalInfo
    variants: List[Variant] = Field(default_factory=list)
    processing_time: float = 0.0

    @property
    def primary(self) -> Optional[Variant]:
        for variant in self.variants:
            if variant.is_primary:
                return variant
        return None

    @property
    def total_bytes(self) -> int:
        return sum(variant.byte_length for variant in self.variants)

    def get_variant(self, preset: str, format: str = "webp") -> Optional[Variant]:
        fmt = parse_output_format(format)
        for variant in self.variants:
            if variant.preset == preset and variant.format is fmt:
                return variant
        return None

    def get_url(self, preset: str = "medium", format: str = "webp") -> Optional[str]:
        variant = self.get_variant(preset, format)
        return variant.url if variant else None

    def urls_for_format(self, format: str = "webp") -> List[str]:
        """URLs of the resized variants in one format, e.g. to build a ``srcset``."""
        fmt = parse_output_format(format)
        return [
            variant.url
            for variant in self.variants
            if variant.format is fmt and variant.preset != ORIGINAL_PRESET
        ]
