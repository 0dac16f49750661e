"""Tests for the format and size catalogs."""

import pytest

from media_pipeline.core.catalog import (
    DEFAULT_ENCODE_PROFILES,
    DEFAULT_SIZE_PRESETS,
    ORIGINAL_PRESET,
    FitPolicy,
    OutputFormat,
    normalize_format_name,
    parse_output_format,
    select_presets,
)
from media_pipeline.core.exceptions import ConfigurationError


class TestOutputFormat:
    """Tests for OutputFormat properties."""

    def test_jpeg_uses_jpg_extension(self):
        assert OutputFormat.JPEG.extension == "jpg"
        assert OutputFormat.WEBP.extension == "webp"

    def test_pil_format_and_mime_type(self):
        assert OutputFormat.WEBP.pil_format == "WEBP"
        assert OutputFormat.PNG.mime_type == "image/png"

    def test_only_jpeg_lacks_alpha(self):
        assert not OutputFormat.JPEG.supports_alpha
        assert OutputFormat.PNG.supports_alpha
        assert OutputFormat.WEBP.supports_alpha
        assert OutputFormat.AVIF.supports_alpha


class TestDefaults:
    """Tests for the default catalogs."""

    def test_default_presets_in_order(self):
        names = [preset.name for preset in DEFAULT_SIZE_PRESETS]
        assert names == ["thumbnail", "small", "medium", "large", "xlarge", "original"]

    def test_thumbnail_is_cropped_square(self):
        thumbnail = DEFAULT_SIZE_PRESETS[0]
        assert (thumbnail.width, thumbnail.height) == (150, 150)
        assert thumbnail.fit is FitPolicy.COVER

    def test_original_keeps_size(self):
        original = DEFAULT_SIZE_PRESETS[-1]
        assert original.name == ORIGINAL_PRESET
        assert original.keeps_original_size

    def test_default_profiles(self):
        assert DEFAULT_ENCODE_PROFILES[OutputFormat.WEBP].quality == 85
        assert DEFAULT_ENCODE_PROFILES[OutputFormat.WEBP].effort == 6
        assert DEFAULT_ENCODE_PROFILES[OutputFormat.JPEG].progressive
        assert DEFAULT_ENCODE_PROFILES[OutputFormat.PNG].compression_level == 8
        assert DEFAULT_ENCODE_PROFILES[OutputFormat.AVIF].quality == 80


class TestFormatNames:
    """Tests for format name parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("webp", OutputFormat.WEBP),
            ("JPEG", OutputFormat.JPEG),
            ("jpg", OutputFormat.JPEG),
            (".png", OutputFormat.PNG),
        ],
    )
    def test_parse_output_format(self, value, expected):
        assert parse_output_format(value) is expected

    def test_parse_unknown_format_raises(self):
        with pytest.raises(ConfigurationError, match="Unsupported output format: gif"):
            parse_output_format("gif")

    def test_normalize_format_name(self):
        assert normalize_format_name("JPEG") == "jpeg"
        assert normalize_format_name("MPO") == "jpeg"
        assert normalize_format_name(None) == "unknown"


class TestSelectPresets:
    """Tests for select_presets."""

    def test_none_returns_all(self):
        assert select_presets(DEFAULT_SIZE_PRESETS) == DEFAULT_SIZE_PRESETS

    def test_keeps_catalog_order(self):
        selected = select_presets(DEFAULT_SIZE_PRESETS, ["medium", "thumbnail"])
        assert [preset.name for preset in selected] == ["thumbnail", "medium"]

    def test_unknown_name_raises(self):
        with pytest.raises(ConfigurationError, match="huge"):
            select_presets(DEFAULT_SIZE_PRESETS, ["small", "huge"])
