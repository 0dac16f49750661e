"""Static format and size catalogs."""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, Field

from .exceptions import ConfigurationError


class OutputFormat(str, Enum):
    """Formats the transcoder can encode."""

    WEBP = "webp"
    JPEG = "jpeg"
    PNG = "png"
    AVIF = "avif"

    @property
    def pil_format(self) -> str:
        return self.value.upper()

    @property
    def extension(self) -> str:
        return "jpg" if self is OutputFormat.JPEG else self.value

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def supports_alpha(self) -> bool:
        return self is not OutputFormat.JPEG


class FitPolicy(str, Enum):
    """How a preset box is applied to the source."""

    COVER = "cover"  # crop to exactly fill the box
    CONTAIN = "contain"  # scale down to fit, never upscale


class Category(str, Enum):
    """Logical content buckets; each maps to one storage directory."""

    PROJECTS = "projects"
    TEAM = "team"
    BLOG = "blog"
    OPTIMIZED = "optimized"


class EncodeProfile(BaseModel):
    """Per-format encode parameters."""

    format: OutputFormat
    quality: int = Field(default=85, ge=0, le=100)
    effort: int = Field(default=4, ge=0, le=9)
    compression_level: int = Field(default=6, ge=0, le=9)
    progressive: bool = False


class SizePreset(BaseModel):
    """A named target box. ``width``/``height`` are None for the original."""

    name: str
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    fit: FitPolicy = FitPolicy.CONTAIN

    @property
    def keeps_original_size(self) -> bool:
        return self.width is None and self.height is None


ORIGINAL_PRESET = "original"

SUPPORTED_DECODE_FORMATS: FrozenSet[str] = frozenset(
    {"jpeg", "png", "webp", "tiff", "avif"}
)

SUPPORTED_EXTENSIONS: FrozenSet[str] = frozenset(
    {"jpeg", "jpg", "png", "webp", "tiff", "avif"}
)

ALLOWED_MIME_TYPES: FrozenSet[str] = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/tiff",
        "image/avif",
    }
)

# Pillow reports some containers under their own name.
PIL_FORMAT_ALIASES: Dict[str, str] = {
    "MPO": "jpeg",
}

DEFAULT_ENCODE_PROFILES: Dict[OutputFormat, EncodeProfile] = {
    OutputFormat.WEBP: EncodeProfile(format=OutputFormat.WEBP, quality=85, effort=6),
    OutputFormat.JPEG: EncodeProfile(
        format=OutputFormat.JPEG, quality=85, progressive=True
    ),
    OutputFormat.PNG: EncodeProfile(
        format=OutputFormat.PNG, compression_level=8, progressive=True
    ),
    OutputFormat.AVIF: EncodeProfile(format=OutputFormat.AVIF, quality=80, effort=4),
}

DEFAULT_SIZE_PRESETS: List[SizePreset] = [
    SizePreset(name="thumbnail", width=150, height=150, fit=FitPolicy.COVER),
    SizePreset(name="small", width=400, height=300),
    SizePreset(name="medium", width=800, height=600),
    SizePreset(name="large", width=1200, height=900),
    SizePreset(name="xlarge", width=1920, height=1080),
    SizePreset(name=ORIGINAL_PRESET),
]

DEFAULT_DELIVERY_FORMATS = (OutputFormat.WEBP, OutputFormat.JPEG)


def normalize_format_name(pil_format: Optional[str]) -> str:
    """Map a Pillow format name (e.g. ``JPEG``) to the catalog name."""
    if not pil_format:
        return "unknown"
    upper = pil_format.upper()
    return PIL_FORMAT_ALIASES.get(upper, upper.lower())


def parse_output_format(value: str) -> OutputFormat:
    """Parse a user-supplied format name; ``jpg`` is accepted for jpeg."""
    name = value.lower().lstrip(".")
    if name == "jpg":
        name = "jpeg"
    try:
        return OutputFormat(name)
    except ValueError:
        raise ConfigurationError(f"Unsupported output format: {value}") from None


def select_presets(
    presets: Iterable[SizePreset], names: Optional[Iterable[str]] = None
) -> List[SizePreset]:
    """Return presets in catalog order, optionally restricted to ``names``."""
    presets = list(presets)
    if names is None:
        return presets

    wanted = list(names)
    known = {preset.name for preset in presets}
    unknown = [name for name in wanted if name not in known]
    if unknown:
        raise ConfigurationError(f"Unknown size preset(s): {', '.join(unknown)}")
    return [preset for preset in presets if preset.name in wanted]
