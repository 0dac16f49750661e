"""Cheap pre-decode checks on an upload."""

from typing import Iterable, List, Optional

from .catalog import ALLOWED_MIME_TYPES, SUPPORTED_EXTENSIONS
from .exceptions import ValidationError
from .models import SourceAsset


def format_size_limit(limit: int) -> str:
    megabytes = limit / (1024 * 1024)
    return f"{megabytes:g}MB" if megabytes >= 1 else f"{limit / 1024:g}KB"


class UploadValidator:
    """
    Validate an upload against size, MIME type and extension rules.

    No pixel data is read here; the checks only look at what the HTTP layer
    already knows about the file, so they run before any expensive work.
    """

    def __init__(
        self,
        max_file_size: int,
        allowed_mime_types: Optional[Iterable[str]] = None,
        supported_extensions: Optional[Iterable[str]] = None,
    ):
        self.max_file_size = max_file_size
        self.allowed_mime_types = frozenset(
            mime.lower() for mime in (allowed_mime_types or ALLOWED_MIME_TYPES)
        )
        self.supported_extensions = frozenset(
            ext.lower().lstrip(".")
            for ext in (supported_extensions or SUPPORTED_EXTENSIONS)
        )

    def validate(self, asset: Optional[SourceAsset]) -> List[str]:
        """Return every violation found, in check order."""
        if asset is None or not asset.data:
            return ["No file provided"]

        violations: List[str] = []

        size = max(asset.byte_length, len(asset.data))
        if size > self.max_file_size:
            violations.append(
                f"File size exceeds {format_size_limit(self.max_file_size)} limit"
            )

        mime_type = (asset.mime_type or "").lower()
        if mime_type not in self.allowed_mime_types:
            violations.append(f"Unsupported file type: {asset.mime_type or 'unknown'}")

        ext = asset.extension
        if ext not in self.supported_extensions:
            violations.append(f"Unsupported file format: {ext or 'none'}")

        return violations

    def check(self, asset: Optional[SourceAsset]) -> None:
        """Raise ``ValidationError`` carrying all violations, if any."""
        violations = self.validate(asset)
        if violations:
            raise ValidationError(violations)
