"""Pure resize-and-encode of a decoded source image."""

import io
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from PIL import Image, ImageOps

from .catalog import (
    DEFAULT_ENCODE_PROFILES,
    EncodeProfile,
    FitPolicy,
    OutputFormat,
    SizePreset,
    parse_output_format,
)
from .exceptions import ConfigurationError, EncodeError
from .logging_config import get_logger
from .metadata import has_alpha_channel
from .models import EncodedImage

RESAMPLE = Image.Resampling.LANCZOS


def compression_ratio(input_bytes: int, output_bytes: int) -> float:
    """Percentage saved relative to the source, rounded to two decimals."""
    if input_bytes <= 0:
        return 0.0
    return round((1 - output_bytes / input_bytes) * 100, 2)


def contain_size(
    source: Tuple[int, int], box: Tuple[Optional[int], Optional[int]]
) -> Tuple[int, int]:
    """Largest size fitting ``box`` with the source aspect ratio, never upscaled."""
    src_w, src_h = source
    box_w, box_h = box
    scale = 1.0
    if box_w:
        scale = min(scale, box_w / src_w)
    if box_h:
        scale = min(scale, box_h / src_h)
    if scale >= 1.0:
        return src_w, src_h
    return max(1, round(src_w * scale)), max(1, round(src_h * scale))


def resize_for_preset(
    img: Image.Image, preset: Optional[SizePreset]
) -> Image.Image:
    """Apply a preset's fit policy. Returns a new image or ``img`` unchanged."""
    if preset is None or preset.keeps_original_size:
        return img

    if preset.fit is FitPolicy.COVER:
        box = (preset.width or img.width, preset.height or img.height)
        if img.size == box:
            return img
        return ImageOps.fit(img, box, method=RESAMPLE)

    target = contain_size(img.size, (preset.width, preset.height))
    if target == img.size:
        return img
    return img.resize(target, RESAMPLE)


def _prepare_mode(
    img: Image.Image, fmt: OutputFormat, background: Tuple[int, int, int]
) -> Image.Image:
    """Convert to a mode the target encoder accepts."""
    alpha = has_alpha_channel(img)

    if alpha and not fmt.supports_alpha:
        rgba = img.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, background)
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas

    if fmt is OutputFormat.PNG:
        if img.mode in ("1", "L", "LA", "P", "RGB", "RGBA"):
            return img
        return img.convert("RGBA" if alpha else "RGB")

    wanted = "RGBA" if alpha else "RGB"
    if fmt is OutputFormat.JPEG and img.mode == "L":
        return img
    return img if img.mode == wanted else img.convert(wanted)


def _save_options(profile: EncodeProfile, quality: int) -> Dict[str, Any]:
    fmt = profile.format
    if fmt is OutputFormat.WEBP:
        return {"quality": quality, "method": min(profile.effort, 6)}
    if fmt is OutputFormat.JPEG:
        return {
            "quality": quality,
            "progressive": profile.progressive,
            "optimize": True,
        }
    if fmt is OutputFormat.PNG:
        return {"compress_level": profile.compression_level}
    # AVIF: effort 0-9 (slow is high) maps onto speed 10-1 (slow is low).
    return {"quality": quality, "speed": max(0, min(10, 10 - profile.effort))}


class VariantTranscoder:
    """
    Resize and encode a decoded image. No I/O, no mutation of the source,
    which makes it safe to fan out across worker threads.
    """

    def __init__(
        self,
        profiles: Optional[Mapping[OutputFormat, EncodeProfile]] = None,
        background: Tuple[int, int, int] = (255, 255, 255),
    ):
        self.profiles = dict(profiles or DEFAULT_ENCODE_PROFILES)
        self.background = background
        self._logger = get_logger("media-pipeline.transcoder")

    def profile_for(self, fmt: OutputFormat) -> EncodeProfile:
        try:
            return self.profiles[fmt]
        except KeyError:
            raise ConfigurationError(f"No encode profile for {fmt.value}") from None

    def transcode(
        self,
        image: Image.Image,
        source_bytes: int,
        preset: Optional[SizePreset],
        fmt: OutputFormat,
        quality: Optional[int] = None,
    ) -> EncodedImage:
        """Produce one encoded variant of ``image``."""
        profile = self.profile_for(fmt)
        final_quality = profile.quality if quality is None else quality
        preset_name = preset.name if preset else "original"

        try:
            resized = resize_for_preset(image, preset)
            prepared = _prepare_mode(resized, fmt, self.background)
            if prepared is image:
                # Image.save stores encoder state on the instance.
                prepared = image.copy()
            buffer = io.BytesIO()
            prepared.save(
                buffer, format=fmt.pil_format, **_save_options(profile, final_quality)
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            self._logger.error(
                f"Encoding failed for preset={preset_name} format={fmt.value}: {exc}"
            )
            raise EncodeError(
                f"Failed to encode {preset_name} as {fmt.value}: {exc}",
                preset=preset_name,
                format=fmt.value,
            ) from exc

        data = buffer.getvalue()
        return EncodedImage(
            data=data,
            format=fmt,
            width=prepared.width,
            height=prepared.height,
            byte_length=len(data),
            compression_ratio=compression_ratio(source_bytes, len(data)),
            quality=final_quality if fmt is not OutputFormat.PNG else None,
        )

    def convert(
        self,
        image: Image.Image,
        source_bytes: int,
        formats: Iterable[str],
    ) -> Dict[OutputFormat, EncodedImage]:
        """Encode the native size into several formats, skipping unknown ones."""
        results: Dict[OutputFormat, EncodedImage] = {}
        for name in formats:
            try:
                fmt = parse_output_format(name)
                self.profile_for(fmt)
            except ConfigurationError:
                self._logger.warning(f"Skipping unsupported format: {name}")
                continue
            results[fmt] = self.transcode(image, source_bytes, None, fmt)
        return results
