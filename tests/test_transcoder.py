"""Tests for resizing and encoding."""

import io

import pytest
from PIL import Image

from media_pipeline.core.catalog import (
    EncodeProfile,
    FitPolicy,
    OutputFormat,
    SizePreset,
)
from media_pipeline.core.exceptions import ConfigurationError, EncodeError
from media_pipeline.core.transcoder import (
    VariantTranscoder,
    compression_ratio,
    contain_size,
    resize_for_preset,
)
from media_pipeline.testing.fakes import create_noisy_image


@pytest.fixture
def landscape():
    return Image.new("RGB", (2000, 1500), "red")


@pytest.fixture
def transparent():
    image = Image.new("RGBA", (200, 100), (0, 0, 0, 0))
    image.paste((0, 255, 0, 255), (50, 25, 150, 75))
    return image


def _decode(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


class TestGeometry:
    """Tests for the fit policies."""

    def test_compression_ratio(self):
        assert compression_ratio(1000, 250) == 75.0
        assert compression_ratio(0, 250) == 0.0
        assert compression_ratio(100, 150) == -50.0

    def test_contain_scales_down(self):
        assert contain_size((2000, 1500), (800, 600)) == (800, 600)
        assert contain_size((2000, 1000), (800, 600)) == (800, 400)

    def test_contain_never_upscales(self):
        assert contain_size((300, 200), (800, 600)) == (300, 200)

    def test_contain_single_axis(self):
        assert contain_size((1000, 500), (500, None)) == (500, 250)

    def test_cover_matches_box_exactly(self, landscape):
        preset = SizePreset(name="thumbnail", width=150, height=150, fit=FitPolicy.COVER)
        assert resize_for_preset(landscape, preset).size == (150, 150)

    def test_original_is_untouched(self, landscape):
        assert resize_for_preset(landscape, SizePreset(name="original")) is landscape
        assert resize_for_preset(landscape, None) is landscape

    @pytest.mark.parametrize(
        "box,expected",
        [
            ((400, 300), (400, 300)),
            ((1200, 900), (1200, 900)),
            ((1920, 1080), (1440, 1080)),
            ((4000, 4000), (2000, 1500)),
        ],
    )
    def test_contain_within_source_bounds(self, landscape, box, expected):
        preset = SizePreset(name="box", width=box[0], height=box[1])
        resized = resize_for_preset(landscape, preset)
        assert resized.size == expected
        assert resized.width <= 2000 and resized.height <= 1500


class TestVariantTranscoder:
    """Tests for VariantTranscoder."""

    @pytest.mark.parametrize(
        "fmt,pil_format",
        [
            (OutputFormat.WEBP, "WEBP"),
            (OutputFormat.JPEG, "JPEG"),
            (OutputFormat.PNG, "PNG"),
        ],
    )
    def test_output_decodes_in_declared_format(self, landscape, fmt, pil_format):
        preset = SizePreset(name="small", width=400, height=300)
        encoded = VariantTranscoder().transcode(landscape, 100_000, preset, fmt)

        decoded = _decode(encoded.data)
        assert decoded.format == pil_format
        assert decoded.size == (encoded.width, encoded.height) == (400, 300)
        assert encoded.byte_length == len(encoded.data)
        assert encoded.format is fmt

    def test_quality_reported(self, landscape):
        transcoder = VariantTranscoder()
        preset = SizePreset(name="small", width=40, height=30)
        assert transcoder.transcode(landscape, 1, preset, OutputFormat.WEBP).quality == 85
        assert transcoder.transcode(landscape, 1, preset, OutputFormat.JPEG, quality=50).quality == 50
        assert transcoder.transcode(landscape, 1, preset, OutputFormat.PNG).quality is None

    def test_jpeg_flattens_alpha_onto_background(self, transparent):
        encoded = VariantTranscoder(background=(255, 255, 255)).transcode(
            transparent, 1, None, OutputFormat.JPEG
        )
        decoded = _decode(encoded.data)
        assert decoded.mode == "RGB"
        corner = decoded.getpixel((0, 0))
        assert all(channel > 240 for channel in corner)

    def test_webp_keeps_alpha(self, transparent):
        encoded = VariantTranscoder().transcode(transparent, 1, None, OutputFormat.WEBP)
        assert _decode(encoded.data).mode == "RGBA"

    def test_source_image_is_not_mutated(self, landscape):
        before = landscape.tobytes()
        VariantTranscoder().transcode(landscape, 1, None, OutputFormat.JPEG)
        assert landscape.tobytes() == before

    def test_missing_profile_raises_configuration_error(self, landscape):
        transcoder = VariantTranscoder(
            profiles={OutputFormat.WEBP: EncodeProfile(format=OutputFormat.WEBP)}
        )
        with pytest.raises(ConfigurationError):
            transcoder.transcode(landscape, 1, None, OutputFormat.JPEG)

    def test_encoder_failure_raises_encode_error(self, landscape, monkeypatch):
        def broken_save(self, *args, **kwargs):
            raise OSError("encoder exploded")

        monkeypatch.setattr(Image.Image, "save", broken_save)
        preset = SizePreset(name="small", width=40, height=30)
        with pytest.raises(EncodeError) as exc_info:
            VariantTranscoder().transcode(landscape, 1, preset, OutputFormat.WEBP)
        assert exc_info.value.preset == "small"
        assert exc_info.value.format == "webp"

    def test_smaller_quality_never_grows_output(self):
        image = _decode(create_noisy_image(300, 200))
        transcoder = VariantTranscoder()
        sizes = [
            transcoder.transcode(image, 1, None, OutputFormat.JPEG, quality=q).byte_length
            for q in (90, 70, 50, 30, 20)
        ]
        assert sizes == sorted(sizes, reverse=True)

    def test_convert_skips_unknown_formats(self, landscape):
        results = VariantTranscoder().convert(landscape.resize((50, 40)), 1, ["webp", "gif", "jpg"])
        assert set(results) == {OutputFormat.WEBP, OutputFormat.JPEG}
        assert results[OutputFormat.JPEG].width == 50
