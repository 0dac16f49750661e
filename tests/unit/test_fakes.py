"""Tests for fake implementations to ensure they work correctly."""

import io

import pytest
from PIL import Image

from media_pipeline.core.exceptions import StorageError
from media_pipeline.core.observability import LogContext
from media_pipeline.testing.fakes import (
    FailingStorage,
    FakeLogger,
    create_noisy_image,
    create_test_asset,
    create_test_image,
)


class TestFakeLogger:
    """Tests for FakeLogger."""

    def test_logging_methods(self):
        """Test all logging methods."""
        logger = FakeLogger("test")

        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")

        logs = logger.get_logs()
        assert len(logs) == 4
        assert [log["level"] for log in logs] == ["DEBUG", "INFO", "WARNING", "ERROR"]

    def test_log_filtering(self):
        """Test log filtering by level."""
        logger = FakeLogger("test")

        logger.debug("Debug message")
        logger.info("Info message 1")
        logger.info("Info message 2")
        logger.error("Error message")

        info_logs = logger.get_logs("INFO")
        assert len(info_logs) == 2
        assert all(log["level"] == "INFO" for log in info_logs)

    def test_log_clearing(self):
        """Test log clearing functionality."""
        logger = FakeLogger("test")

        logger.info("Test message")
        assert len(logger.get_logs()) == 1

        logger.clear_logs()
        assert len(logger.get_logs()) == 0

    def test_log_with_kwargs(self):
        """Test logging with additional kwargs."""
        logger = FakeLogger("test")

        logger.info("Test message", variant="small/webp")

        assert logger.get_logs()[0]["variant"] == "small/webp"

    def test_log_with_context(self):
        """Test that LogContext fields are flattened into the entry."""
        logger = FakeLogger("test")
        context = LogContext(operation="decode").with_metadata(category="blog")

        logger.warning("Context message", context)

        entry = logger.get_logs()[0]
        assert entry["correlation_id"] == context.correlation_id
        assert entry["operation"] == "decode"
        assert entry["category"] == "blog"


class TestFailingStorage:
    """Tests for FailingStorage."""

    def test_fails_on_selected_operation(self, tmp_path):
        """Test that only the selected operation fails."""
        storage = FailingStorage(tmp_path, {"blog": "blog"}, fail_on={"promote"})
        staging = storage.create_staging_dir()
        staged = storage.stage(staging, "a.webp", b"a")

        with pytest.raises(StorageError, match="Simulated promote failure"):
            storage.promote(staged, "blog")

    def test_fail_after(self, tmp_path):
        """Test that fail_after lets the first calls through."""
        storage = FailingStorage(tmp_path, {"blog": "blog"}, fail_on={"stage"}, fail_after=2)
        staging = storage.create_staging_dir()
        storage.stage(staging, "a.webp", b"a")
        storage.stage(staging, "b.webp", b"b")

        with pytest.raises(StorageError):
            storage.stage(staging, "c.webp", b"c")
        assert storage.calls["stage"] == 3


class TestUtilityFunctions:
    """Tests for utility functions."""

    def test_create_test_image(self):
        """Test test image creation."""
        image_bytes = create_test_image(100, 150)

        img = Image.open(io.BytesIO(image_bytes))
        assert img.size == (100, 150)
        assert img.format == "JPEG"

    @pytest.mark.parametrize("format", ["PNG", "WEBP", "TIFF"])
    def test_create_test_image_formats(self, format):
        """Test creating images in other formats."""
        img = Image.open(io.BytesIO(create_test_image(60, 40, format=format)))
        assert img.format == format
        assert img.size == (60, 40)

    def test_create_test_image_with_alpha(self):
        """Test creating a transparent PNG."""
        img = Image.open(io.BytesIO(create_test_image(60, 40, format="PNG", mode="RGBA")))
        assert img.mode == "RGBA"

    def test_create_noisy_image_is_deterministic(self):
        """Test that the same seed gives the same bytes."""
        assert create_noisy_image(40, 30, seed=1) == create_noisy_image(40, 30, seed=1)
        assert create_noisy_image(40, 30, seed=1) != create_noisy_image(40, 30, seed=2)

    def test_create_test_asset(self):
        """Test wrapping an image as an upload."""
        asset = create_test_asset(80, 60, format="PNG")

        assert asset.filename == "photo.png"
        assert asset.mime_type == "image/png"
        assert asset.byte_length == len(asset.data)
