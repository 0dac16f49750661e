"""Core components of the media pipeline."""

from .logging_config import get_logger, setup_logger
from .exceptions import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    MediaPipelineError,
    StorageError,
    ValidationError,
    error_boundary,
    with_error_handling,
)
from .catalog import (
    Category,
    EncodeProfile,
    FitPolicy,
    OutputFormat,
    SizePreset,
)
from .models import (
    DecodedMetadata,
    EncodedImage,
    Manifest,
    ManifestOptions,
    SourceAsset,
    Variant,
)
from .config import PipelineConfig
from .services import MediaPipeline
from .factories import LoggerFactory, PipelineFactory

__all__ = [
    "setup_logger",
    "get_logger",
    "MediaPipelineError",
    "ValidationError",
    "DecodeError",
    "EncodeError",
    "StorageError",
    "ConfigurationError",
    "with_error_handling",
    "error_boundary",
    "Category",
    "EncodeProfile",
    "FitPolicy",
    "OutputFormat",
    "SizePreset",
    "SourceAsset",
    "ManifestOptions",
    "DecodedMetadata",
    "EncodedImage",
    "Variant",
    "Manifest",
    "PipelineConfig",
    "MediaPipeline",
    "LoggerFactory",
    "PipelineFactory",
]
