"""Testing utilities and fakes for the media pipeline."""

from .fakes import (
    FailingStorage,
    FakeLogger,
    create_noisy_image,
    create_test_asset,
    create_test_image,
)

__all__ = [
    "FailingStorage",
    "FakeLogger",
    "create_noisy_image",
    "create_test_asset",
    "create_test_image",
]
