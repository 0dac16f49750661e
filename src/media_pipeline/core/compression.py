"""Size-bounded quality search on top of the transcoder."""

from typing import Optional

from PIL import Image

from .catalog import OutputFormat, SizePreset
from .exceptions import ConfigurationError
from .logging_config import get_logger
from .models import CompressionResult, EncodedImage
from .transcoder import VariantTranscoder


class CompressionSearch:
    """
    Lower the encode quality step by step until the output fits a byte budget.

    The contract is best effort within bounded work: the search stops after
    ``max_attempts`` encodes or once the quality reaches ``min_quality``, and
    returns the last attempt even when it is still over budget.
    """

    def __init__(
        self,
        transcoder: VariantTranscoder,
        start_quality: int = 90,
        quality_step: int = 10,
        min_quality: int = 20,
        max_attempts: int = 10,
    ):
        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        self.transcoder = transcoder
        self.start_quality = start_quality
        self.quality_step = quality_step
        self.min_quality = min_quality
        self.max_attempts = max_attempts
        self._logger = get_logger("media-pipeline.compression")

    def search(
        self,
        image: Image.Image,
        source_bytes: int,
        target_bytes: int,
        preset: Optional[SizePreset] = None,
        fmt: OutputFormat = OutputFormat.WEBP,
    ) -> CompressionResult:
        quality = self.start_quality
        attempts = 0
        result: EncodedImage

        while attempts < self.max_attempts:
            used_quality = quality
            result = self.transcoder.transcode(
                image, source_bytes, preset, fmt, quality=used_quality
            )
            attempts += 1
            if result.byte_length <= target_bytes or quality <= self.min_quality:
                break
            quality = max(self.min_quality, quality - self.quality_step)

        within_budget = result.byte_length <= target_bytes

        log = self._logger.info if within_budget else self._logger.warning
        log(
            f"Compression search finished: preset={preset.name if preset else 'original'} "
            f"format={fmt.value} quality={used_quality} attempts={attempts} "
            f"size={result.byte_length / 1024:.2f}KB target={target_bytes / 1024:.2f}KB"
        )

        return CompressionResult(
            image=result,
            attempts=attempts,
            quality=used_quality,
            target_bytes=target_bytes,
            within_budget=within_budget,
        )
