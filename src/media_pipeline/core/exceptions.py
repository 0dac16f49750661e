"""Custom exceptions and error handling utilities for the media pipeline."""

from __future__ import annotations

from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, TypeVar

from .logging_config import get_logger


class MediaPipelineError(Exception):
    """Base exception for all media pipeline errors."""

    # Client errors are fixed by resubmitting a corrected file (4xx).
    # Everything else is an infrastructure fault (5xx).
    client_error = False

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable payload for the HTTP layer."""
        return {
            "error": type(self).__name__,
            "message": str(self),
            "client_error": self.client_error,
            "details": self.details(),
        }


class ValidationError(MediaPipelineError):
    """Upload rejected before any decode: size, MIME type or extension."""

    client_error = True

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("Image validation failed: " + "; ".join(self.violations))

    def details(self) -> Dict[str, Any]:
        return {"violations": self.violations}


class DecodeError(MediaPipelineError):
    """Buffer claims to be an image but cannot be decoded."""

    client_error = True


class EncodeError(MediaPipelineError):
    """A specific preset x format combination failed to encode."""

    def __init__(
        self, message: str, preset: Optional[str] = None, format: Optional[str] = None
    ):
        self.preset = preset
        self.format = format
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        return {"preset": self.preset, "format": self.format}


class StorageError(MediaPipelineError):
    """Directory creation or file write failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        return {"path": self.path}


class ConfigurationError(MediaPipelineError):
    """Error raised for invalid configuration options."""


F = TypeVar("F", bound=Callable[..., Any])


def with_error_handling(
    error_type: Type[MediaPipelineError] = MediaPipelineError,
) -> Callable[[F], F]:
    """Wrap a function so unexpected errors surface as ``error_type``."""

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:  # type: ignore[override]
            logger = get_logger("media-pipeline.errors")
            try:
                return func(*args, **kwargs)
            except MediaPipelineError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    f"Unhandled error in {func.__name__}: {exc}", exc_info=True
                )
                raise error_type(f"{func.__name__} failed: {exc}") from exc

        return wrapper  # type: ignore[return-value]

    return decorator


@contextmanager
def error_boundary(
    error_type: Type[MediaPipelineError], message: str
) -> Iterator[None]:
    """Context manager translating foreign exceptions raised in a block."""
    try:
        yield
    except MediaPipelineError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise error_type(f"{message}: {exc}") from exc
