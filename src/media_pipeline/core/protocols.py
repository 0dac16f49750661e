"""Protocol definitions for dependency injection and testability."""

from pathlib import Path
from typing import Any, Protocol

from .models import StoredFile


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...


class VariantStore(Protocol):
    """What the orchestrator needs from the storage layer."""

    def generate_filename(
        self, original_name: str, preset: str = "", fmt: Any = None, suffix: str = ""
    ) -> str:
        ...

    def create_staging_dir(self) -> Path:
        ...

    def stage(self, staging_dir: Path, filename: str, data: bytes) -> Path:
        ...

    def promote(self, staged: Path, category: str) -> StoredFile:
        ...

    def discard_staging(self, staging_dir: Path) -> None:
        ...

    def cleanup_temp_files(self, older_than_hours: float = 24) -> int:
        ...

    def ensure_directories(self) -> None:
        ...
