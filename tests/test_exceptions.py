"""Tests for the error taxonomy and error handling helpers."""

import logging
from unittest.mock import patch

import pytest

from media_pipeline.core.exceptions import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    MediaPipelineError,
    StorageError,
    ValidationError,
    error_boundary,
    with_error_handling,
)


@with_error_handling(StorageError)
def _fail_func() -> None:
    raise ValueError("boom")


@with_error_handling(StorageError)
def _pipeline_fail_func() -> None:
    raise DecodeError("bad bytes")


class TestErrorTaxonomy:
    """Tests for the exception classes."""

    def test_all_inherit_from_base(self):
        for error_type in (
            ValidationError,
            DecodeError,
            EncodeError,
            StorageError,
            ConfigurationError,
        ):
            assert issubclass(error_type, MediaPipelineError)

    def test_client_errors(self):
        assert ValidationError(["x"]).client_error
        assert DecodeError("x").client_error
        assert not EncodeError("x").client_error
        assert not StorageError("x").client_error

    def test_validation_error_lists_violations(self):
        error = ValidationError(["File size exceeds 5MB limit", "Unsupported file format: gif"])
        assert str(error) == (
            "Image validation failed: File size exceeds 5MB limit; "
            "Unsupported file format: gif"
        )
        assert error.details() == {
            "violations": ["File size exceeds 5MB limit", "Unsupported file format: gif"]
        }

    def test_encode_error_to_dict(self):
        payload = EncodeError("failed", preset="small", format="webp").to_dict()
        assert payload == {
            "error": "EncodeError",
            "message": "failed",
            "client_error": False,
            "details": {"preset": "small", "format": "webp"},
        }

    def test_storage_error_carries_path(self):
        assert StorageError("nope", path="/tmp/x").details() == {"path": "/tmp/x"}


class TestWithErrorHandling:
    """Tests for the with_error_handling decorator."""

    def test_wraps_foreign_exception(self):
        with pytest.raises(StorageError, match="_fail_func failed: boom") as exc_info:
            _fail_func()
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_pipeline_errors_pass_through(self):
        with pytest.raises(DecodeError):
            _pipeline_fail_func()

    def test_logs_error(self):
        with patch("media_pipeline.core.exceptions.get_logger") as mock_get_logger:
            mock_get_logger.return_value = logging.getLogger("test")
            with pytest.raises(StorageError):
                _fail_func()
            assert mock_get_logger.called

    def test_preserves_function_name(self):
        assert _fail_func.__name__ == "_fail_func"


class TestErrorBoundary:
    """Tests for the error_boundary context manager."""

    def test_translates_foreign_exception(self):
        with pytest.raises(EncodeError, match="Encoding failed: kaput") as exc_info:
            with error_boundary(EncodeError, "Encoding failed"):
                raise RuntimeError("kaput")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_pipeline_errors_pass_through(self):
        with pytest.raises(ValidationError):
            with error_boundary(MediaPipelineError, "ignored"):
                raise ValidationError(["No file provided"])

    def test_no_error(self):
        with error_boundary(MediaPipelineError, "ignored"):
            value = 1
        assert value == 1
