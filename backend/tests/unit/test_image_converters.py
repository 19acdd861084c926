"""Unit tests for the Pillow image converters."""

import io

import pytest
from PIL import Image

from fileconv.core.content import BytesContent, FileContent
from fileconv.core.conversion.converters import (
    BmpConverter,
    ConversionContext,
    GifConverter,
    JpegConverter,
    PngConverter,
    WebpConverter,
)
from fileconv.core.exceptions import (
    ConversionCancelledError,
    ConverterFailureError,
    IOFailureError,
)


class TestImageConverters:
    """Test suite for image transcoding."""

    @pytest.mark.parametrize(
        "converter_class,pil_format,extension",
        [
            (PngConverter, "PNG", "png"),
            (JpegConverter, "JPEG", "jpg"),
            (GifConverter, "GIF", "gif"),
            (BmpConverter, "BMP", "bmp"),
            (WebpConverter, "WEBP", "webp"),
        ],
    )
    def test_jpeg_input(
        self, converter_class, pil_format, extension, sample_jpeg_file, temp_dir
    ):
        converter = converter_class()
        output_path = temp_dir / f"converted.{converter.extension}"

        result = converter.convert(FileContent(sample_jpeg_file), output_path)

        assert result == output_path
        assert converter.extension == extension
        with Image.open(output_path) as img:
            assert img.format == pil_format
            assert img.size == (80, 60)

    def test_jpeg_flattens_transparency_onto_white(self, sample_png_file, temp_dir):
        output_path = temp_dir / "flat.jpg"

        JpegConverter().convert(FileContent(sample_png_file), output_path)

        with Image.open(output_path) as img:
            assert img.mode == "RGB"
            r, g, b = img.getpixel((60, 32))
            assert min(r, g, b) > 240  # transparent half became white
            r, g, b = img.getpixel((4, 32))
            assert r > 200 and g < 60 and b < 60

    def test_bmp_flattens_transparency(self, sample_png_file, temp_dir):
        output_path = temp_dir / "flat.bmp"

        BmpConverter().convert(FileContent(sample_png_file), output_path)

        with Image.open(output_path) as img:
            assert img.mode == "RGB"
            assert img.getpixel((60, 32)) == (255, 255, 255)

    def test_png_keeps_alpha(self, sample_png_file, temp_dir):
        output_path = temp_dir / "copy.png"

        PngConverter().convert(FileContent(sample_png_file), output_path)

        with Image.open(output_path) as img:
            assert img.mode == "RGBA"
            assert img.getpixel((60, 32))[3] == 0

    def test_gif_keeps_transparency(self, sample_png_file, temp_dir):
        output_path = temp_dir / "logo.gif"

        GifConverter().convert(FileContent(sample_png_file), output_path)

        with Image.open(output_path) as img:
            assert img.mode == "P"
            assert "transparency" in img.info
            assert img.getpixel((60, 32)) == img.info["transparency"]

    def test_webp_keeps_alpha(self, sample_png_file, temp_dir):
        output_path = temp_dir / "logo.webp"

        WebpConverter().convert(FileContent(sample_png_file), output_path)

        with Image.open(output_path) as img:
            assert img.mode == "RGBA"

    def test_first_frame_of_animation(self, temp_dir):
        frames = [Image.new("RGB", (16, 16), color) for color in ("red", "blue")]
        buffer = io.BytesIO()
        frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:])
        output_path = temp_dir / "frame.png"

        content = BytesContent(buffer.getvalue(), "anim.gif")
        PngConverter().convert(content, output_path)

        with Image.open(output_path) as img:
            assert getattr(img, "n_frames", 1) == 1
            r, g, b = img.convert("RGB").getpixel((8, 8))
            assert r > 200 and b < 60

    def test_output_is_deterministic(self, sample_png_file, temp_dir):
        first = temp_dir / "a.bmp"
        second = temp_dir / "b.bmp"
        converter = BmpConverter()

        converter.convert(FileContent(sample_png_file), first)
        converter.convert(FileContent(sample_png_file), second)

        assert first.read_bytes() == second.read_bytes()

    def test_corrupt_image(self, temp_dir):
        output_path = temp_dir / "broken.jpg"
        content = BytesContent(b"\x89PNG\r\n\x1a\n" + b"garbage" * 20, "broken.png")

        with pytest.raises(ConverterFailureError):
            JpegConverter().convert(content, output_path)
        assert not output_path.exists()

    def test_not_an_image(self, temp_dir):
        output_path = temp_dir / "text.png"
        with pytest.raises(ConverterFailureError):
            PngConverter().convert(BytesContent(b"plain text"), output_path)
        assert not output_path.exists()

    def test_cancelled_before_start(self, sample_jpeg_file, temp_dir):
        context = ConversionContext()
        context.cancel()
        output_path = temp_dir / "never.png"

        with pytest.raises(ConversionCancelledError):
            PngConverter().convert(FileContent(sample_jpeg_file), output_path, context)
        assert not output_path.exists()

    def test_existing_output_not_clobbered(self, sample_jpeg_file, temp_dir):
        """Converters create their output exclusively."""
        output_path = temp_dir / "taken.png"
        output_path.write_bytes(b"keep me")

        with pytest.raises(IOFailureError):
            PngConverter().convert(FileContent(sample_jpeg_file), output_path)
        assert output_path.read_bytes() == b"keep me"

    def test_quality_bounds(self):
        with pytest.raises(ValueError):
            JpegConverter(quality=0)
        with pytest.raises(ValueError):
            WebpConverter(quality=101)

    def test_declared_output_media_types(self):
        assert PngConverter().output_media_type == "image/png"
        assert JpegConverter().output_media_type == "image/jpeg"
        assert WebpConverter().output_media_type == "image/webp"
        assert GifConverter().source_types == ("image/",)
