"""Factory classes for creating configured pipeline instances."""

from typing import Any, Dict, Optional

from .config import PipelineConfig
from .observability import MetricsCollector, StructuredLogger
from .protocols import LoggerProtocol
from .services import MediaPipeline


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str = "media-pipeline") -> LoggerProtocol:
        """Create a context-aware logger on top of the shared handler setup."""
        return StructuredLogger(name)


class PipelineFactory:
    """Factory for creating the complete media pipeline."""

    @staticmethod
    def create_pipeline(
        config: Optional[PipelineConfig] = None,
        logger: Optional[LoggerProtocol] = None,
        config_overrides: Optional[Dict[str, Any]] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> MediaPipeline:
        """
        Create a fully configured pipeline.

        ``config_overrides`` are applied on top of ``config`` (or of the
        environment-derived defaults) and re-validated.
        """
        if config is None:
            config = PipelineConfig(**(config_overrides or {}))
        elif config_overrides:
            config = PipelineConfig(**{**config.model_dump(), **config_overrides})

        if logger is None:
            logger = LoggerFactory.create_logger("media-pipeline.pipeline")

        return MediaPipeline(
            config=config, logger=logger, metrics_collector=metrics_collector
        )
