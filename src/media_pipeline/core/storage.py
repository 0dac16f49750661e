"""File naming and filesystem persistence for generated variants."""

import errno
import os
import re
import shutil
import time
import uuid
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field

from .catalog import OutputFormat
from .exceptions import ConfigurationError, StorageError, with_error_handling
from .logging_config import get_logger
from .models import StoredFile

_UNSAFE_CHARS = re.compile(r"[^a-z0-9_-]")


class CategoryStats(BaseModel):
    """Disk usage of one category directory."""

    size: int = 0
    file_count: int = 0

    @property
    def size_formatted(self) -> str:
        return f"{self.size / 1024 / 1024:.2f}MB"


class StorageStats(BaseModel):
    """Disk usage across all category directories."""

    total_size: int = 0
    categories: Dict[str, CategoryStats] = Field(default_factory=dict)

    @property
    def total_size_formatted(self) -> str:
        return f"{self.total_size / 1024 / 1024:.2f}MB"


def sanitize_basename(original_name: str) -> str:
    """Lower-case stem of ``original_name`` keeping only ``[a-z0-9_-]``."""
    stem = Path(original_name).stem if original_name else ""
    cleaned = _UNSAFE_CHARS.sub("", stem.lower())
    return cleaned or "image"


def generate_filename(
    original_name: str,
    preset: str = "",
    fmt: Optional[OutputFormat] = None,
    suffix: str = "",
) -> str:
    """
    Build a collision-resistant file name.

    Layout: ``<base>[_<preset>][_<suffix>]_<epoch ms>_<8 hex>.<ext>``. The
    millisecond timestamp keeps names roughly sortable and the uuid4
    fragment separates uploads that share a name within the same tick.
    """
    parts = [sanitize_basename(original_name)]
    if preset:
        parts.append(preset)
    if suffix:
        parts.append(_UNSAFE_CHARS.sub("", suffix.lower()))
    parts.append(str(time.time_ns() // 1_000_000))
    parts.append(uuid.uuid4().hex[:8])

    if fmt is not None:
        ext = fmt.extension
    else:
        ext = Path(original_name).suffix.lower().lstrip(".") or "bin"
    return f"{'_'.join(parts)}.{ext}"


class StorageManager:
    """
    Persist variant buffers under ``<uploads_dir>/<category>/``.

    Writes go to a staging directory inside the temp area first and are moved
    into their category directory with ``os.replace``, so a category
    directory never holds a half-written file. Anything left behind in the
    temp area by a failed invocation is reclaimed by ``cleanup_temp_files``.
    """

    def __init__(
        self,
        uploads_dir: Union[str, Path],
        categories: Mapping[str, str],
        url_prefix: str = "/uploads",
        temp_dir: str = "temp",
    ):
        self.uploads_dir = Path(uploads_dir)
        self.categories = dict(categories)
        self.url_prefix = "/" + url_prefix.strip("/") if url_prefix.strip("/") else ""
        self.temp_path = self.uploads_dir / temp_dir
        self._logger = get_logger("media-pipeline.storage")

    def category_dir(self, category: str) -> Path:
        try:
            return self.uploads_dir / self.categories[category]
        except KeyError:
            raise ConfigurationError(f"Unknown category: {category}") from None

    def ensure_directory(self, path: Path) -> Path:
        """Create ``path`` recursively; safe to race across invocations."""
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Failed to create directory {path}: {exc}", path=str(path)
            ) from exc
        return path

    def ensure_directories(self) -> None:
        """Create every category directory plus the temp area."""
        for category in self.categories:
            self.ensure_directory(self.category_dir(category))
        self.ensure_directory(self.temp_path)

    def generate_filename(
        self,
        original_name: str,
        preset: str = "",
        fmt: Optional[OutputFormat] = None,
        suffix: str = "",
    ) -> str:
        return generate_filename(original_name, preset, fmt, suffix)

    def public_url(self, category: str, filename: str) -> str:
        return f"{self.url_prefix}/{self.categories[category]}/{filename}"

    def create_staging_dir(self) -> Path:
        """A fresh per-invocation directory inside the temp area."""
        return self.ensure_directory(self.temp_path / f"stage-{uuid.uuid4().hex}")

    def stage(self, staging_dir: Path, filename: str, data: bytes) -> Path:
        """Write ``data`` into ``staging_dir``; never touches category dirs."""
        path = staging_dir / filename
        try:
            with open(path, "xb") as handle:
                handle.write(data)
        except OSError as exc:
            raise StorageError(
                f"Failed to write {filename}: {exc}", path=str(path)
            ) from exc
        return path

    def promote(self, staged: Path, category: str) -> StoredFile:
        """Atomically move a staged file into its category directory."""
        target_dir = self.ensure_directory(self.category_dir(category))
        target = target_dir / staged.name
        if target.exists():
            raise StorageError(f"Refusing to overwrite {target}", path=str(target))
        try:
            os.replace(staged, target)
        except OSError as exc:
            raise StorageError(
                f"Failed to move {staged.name} into {category}: {exc}",
                path=str(target),
            ) from exc

        return StoredFile(
            filename=target.name,
            relative_path=f"{self.categories[category]}/{target.name}",
            path=str(target),
            url=self.public_url(category, target.name),
        )

    def save(self, category: str, filename: str, data: bytes) -> StoredFile:
        """Stage and promote a single buffer."""
        self.category_dir(category)
        staging_dir = self.create_staging_dir()
        staged = self.stage(staging_dir, filename, data)
        stored = self.promote(staged, category)
        self.discard_staging(staging_dir)
        return stored

    def discard_staging(self, staging_dir: Path) -> None:
        """Remove a staging directory and whatever is still in it."""
        shutil.rmtree(staging_dir, ignore_errors=True)

    def cleanup_temp_files(self, older_than_hours: float = 24) -> int:
        """
        Delete files in the temp area older than ``older_than_hours``.

        Staging directories emptied by the sweep are removed as well.

        Returns:
            Number of files deleted.
        """
        if not self.temp_path.exists():
            return 0

        cutoff = time.time() - older_than_hours * 3600
        deleted = 0
        try:
            # Bottom-up, so staging directories are visited after their files.
            for root, _dirs, files in os.walk(self.temp_path, topdown=False):
                directory = Path(root)
                removed_here = 0
                for name in files:
                    if self._sweep_file(directory / name, cutoff):
                        removed_here += 1
                deleted += removed_here
                if directory != self.temp_path:
                    self._sweep_dir(directory, cutoff, emptied=removed_here > 0)
        except OSError as exc:
            self._logger.error(f"Temp file cleanup failed: {exc}")
            raise StorageError(
                f"Temp file cleanup failed: {exc}", path=str(self.temp_path)
            ) from exc

        self._logger.info(
            f"Cleaned up {deleted} temporary files older than {older_than_hours} hours"
        )
        return deleted

    @staticmethod
    def _sweep_file(path: Path, cutoff: float) -> bool:
        # Concurrent uploads promote or discard staged files at any time.
        try:
            if path.stat().st_mtime >= cutoff:
                return False
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    @staticmethod
    def _sweep_dir(directory: Path, cutoff: float, emptied: bool) -> None:
        try:
            if any(directory.iterdir()):
                return
            if emptied or directory.stat().st_mtime < cutoff:
                directory.rmdir()
        except FileNotFoundError:
            return
        except OSError as exc:
            # An upload staged a new file after the emptiness check.
            if exc.errno != errno.ENOTEMPTY:
                raise

    @with_error_handling(StorageError)
    def get_storage_stats(self) -> StorageStats:
        """Sum file sizes per category directory (temp area included)."""
        stats = StorageStats()
        directories = {name: self.category_dir(name) for name in self.categories}
        directories[self.temp_path.name] = self.temp_path

        for name, directory in directories.items():
            if not directory.exists():
                continue
            category_stats = CategoryStats()
            for entry in directory.rglob("*"):
                if entry.is_file():
                    category_stats.size += entry.stat().st_size
                    category_stats.file_count += 1
            stats.categories[name] = category_stats
            stats.total_size += category_stats.size

        return stats
