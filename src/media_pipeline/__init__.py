"""Responsive media transcoding pipeline."""

from .core import (
    Manifest,
    ManifestOptions,
    MediaPipeline,
    PipelineConfig,
    SourceAsset,
)

__version__ = "0.1.0"

__all__ = [
    "MediaPipeline",
    "PipelineConfig",
    "SourceAsset",
    "ManifestOptions",
    "Manifest",
    "__version__",
]
