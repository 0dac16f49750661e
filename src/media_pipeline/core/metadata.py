"""Header inspection and decoding of source images."""

import io
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .catalog import SUPPORTED_DECODE_FORMATS, normalize_format_name
from .exceptions import DecodeError
from .models import DecodedMetadata, SourceAsset

ORIENTATION_TAG = 0x0112

# Errors Pillow raises for corrupt, truncated or hostile input.
DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)

_DECLARED_ALIASES = {"jpg": "jpeg", "tif": "tiff"}


def has_alpha_channel(img: Image.Image) -> bool:
    """True when the image carries transparency in any form."""
    if img.mode in ("RGBA", "LA", "PA", "RGBa", "La"):
        return True
    return img.mode == "P" and "transparency" in img.info


def _read_orientation(img: Image.Image) -> int:
    try:
        orientation = img.getexif().get(ORIENTATION_TAG, 1)
    except DECODE_ERRORS:
        return 1
    return orientation if isinstance(orientation, int) and 1 <= orientation <= 8 else 1


def _read_density(img: Image.Image) -> Optional[Tuple[float, float]]:
    dpi = img.info.get("dpi")
    if not dpi:
        return None
    try:
        return float(dpi[0]), float(dpi[1])
    except (TypeError, ValueError, IndexError):
        return None


def declared_format(asset: SourceAsset) -> Optional[str]:
    """Format the uploader claims, from the MIME subtype or the extension."""
    subtype = (asset.mime_type or "").lower().partition("/")[2]
    for candidate in (subtype, asset.extension):
        if candidate:
            return _DECLARED_ALIASES.get(candidate, candidate)
    return None


class MetadataExtractor:
    """Decode just enough of an upload to describe it."""

    def __init__(
        self, strict_content_type: bool = False, max_pixels: Optional[int] = None
    ):
        self.strict_content_type = strict_content_type
        self.max_pixels = max_pixels

    def _check_pixel_count(self, width: int, height: int) -> None:
        if self.max_pixels is not None and width * height > self.max_pixels:
            raise DecodeError(
                f"Image dimensions {width}x{height} exceed the "
                f"{self.max_pixels} pixel limit"
            )

    def extract(self, data: bytes) -> DecodedMetadata:
        """Read dimensions, format, alpha and orientation from the header."""
        try:
            with Image.open(io.BytesIO(data)) as img:
                metadata = DecodedMetadata(
                    width=img.width,
                    height=img.height,
                    format=normalize_format_name(img.format),
                    has_alpha=has_alpha_channel(img),
                    orientation=_read_orientation(img),
                    color_space=img.mode,
                    density=_read_density(img),
                )
        except DECODE_ERRORS as exc:
            raise DecodeError(f"Invalid image file: {exc}") from exc

        if metadata.format not in SUPPORTED_DECODE_FORMATS:
            raise DecodeError(f"Unsupported image format: {metadata.format}")
        self._check_pixel_count(metadata.width, metadata.height)
        return metadata

    def inspect(self, asset: SourceAsset) -> DecodedMetadata:
        """``extract`` plus the declared-vs-actual content check."""
        metadata = self.extract(asset.data)
        declared = declared_format(asset)
        if self.strict_content_type and declared and declared != metadata.format:
            raise DecodeError(
                f"Declared type {declared} does not match content ({metadata.format})"
            )
        return metadata

    def decode(self, data: bytes) -> Image.Image:
        """
        Fully decode pixel data and apply the EXIF orientation.

        The returned image is loaded and detached from ``data``, so it can be
        shared read-only between concurrent transcodes.
        """
        try:
            with Image.open(io.BytesIO(data)) as img:
                self._check_pixel_count(img.width, img.height)
                img.load()
                return ImageOps.exif_transpose(img)
        except DECODE_ERRORS as exc:
            raise DecodeError(f"Could not decode image data: {exc}") from exc
