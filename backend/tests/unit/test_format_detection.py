"""Unit tests for media type detection."""

import json

import pytest

from fileconv.core.content import BytesContent, FileContent, NamedContent
from fileconv.services.format_detection_service import FormatDetectionService


class TestContentDetection:
    """Test suite for content-based detection."""

    @pytest.fixture
    def detector(self):
        return FormatDetectionService(sample_size=8192)

    def test_detect_pdf_by_magic_bytes(self, detector):
        assert detector.detect(BytesContent(b"%PDF-1.7\n" + b"\x00" * 50)) == (
            "application/pdf"
        )

    def test_detect_png_by_magic_bytes(self, detector):
        png_data = b"\x89PNG\r\n\x1a\n" + b"\x00" * 100
        assert detector.detect(BytesContent(png_data)) == "image/png"

    def test_detect_jpeg_by_magic_bytes(self, detector):
        jpeg_data = b"\xff\xd8\xff\xe0" + b"\x00" * 100
        assert detector.detect(BytesContent(jpeg_data)) == "image/jpeg"

    def test_detect_gif_by_magic_bytes(self, detector):
        assert detector.detect(BytesContent(b"GIF87a" + b"\x00" * 100)) == "image/gif"
        assert detector.detect(BytesContent(b"GIF89a" + b"\x00" * 100)) == "image/gif"

    def test_detect_webp_by_magic_bytes(self, detector):
        webp_data = b"RIFF" + b"\x00\x00\x00\x00" + b"WEBP" + b"\x00" * 100
        assert detector.detect(BytesContent(webp_data)) == "image/webp"

    def test_riff_without_webp_is_not_an_image(self, detector):
        avi_data = b"RIFF" + b"\x00\x00\x00\x00" + b"AVI " + b"\x00" * 100
        assert detector.detect(BytesContent(avi_data, name="clip")) is None

    def test_detect_tiff_by_magic_bytes(self, detector):
        assert detector.detect(BytesContent(b"II*\x00" + b"\x00" * 100)) == (
            "image/tiff"
        )
        assert detector.detect(BytesContent(b"MM\x00*" + b"\x00" * 100)) == (
            "image/tiff"
        )

    def test_zip_refined_by_extension(self, detector):
        zip_data = b"PK\x03\x04" + b"\x00" * 100
        assert detector.detect(BytesContent(zip_data, name="letter.docx")) == (
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        )
        assert detector.detect(BytesContent(zip_data, name="archive.zip")) == (
            "application/zip"
        )

    def test_real_images(self, detector, sample_png_file, sample_jpeg_file):
        assert detector.detect(sample_png_file) == "image/png"
        assert detector.detect(sample_jpeg_file) == "image/jpeg"

    def test_real_pdf(self, detector, sample_pdf_file):
        assert detector.detect(sample_pdf_file) == "application/pdf"

    def test_plain_text(self, detector, sample_text_file):
        assert detector.detect(sample_text_file) == "text/plain"

    def test_text_without_extension(self, detector):
        assert detector.detect(BytesContent(b"just some words\n", name="README")) == (
            "text/plain"
        )

    def test_textual_extension_kept(self, detector):
        content = BytesContent(b"a,b\n1,2\n", name="table.csv")
        assert detector.detect(content) == "text/csv"

    @pytest.mark.parametrize(
        "name,data,expected",
        [
            (
                "logo.svg",
                b'<svg xmlns="http://www.w3.org/2000/svg"><rect/></svg>\n',
                "image/svg+xml",
            ),
            ("config.yaml", b"name: demo\nitems:\n  - one\n", "application/yaml"),
            ("config.YML", b"key: value\n", "application/yaml"),
            ("site.css", b"body { margin: 0; }\n", "text/css"),
            ("app.js", b"console.log('hi');\n", "text/javascript"),
            ("pyproject.toml", b'[project]\nname = "x"\n', "application/toml"),
        ],
    )
    def test_structured_text_not_reported_as_plain(
        self, detector, name, data, expected
    ):
        """Decodable files with a known textual extension keep that type."""
        media_type, confident = detector.detect_with_confidence(
            BytesContent(data, name=name)
        )
        assert media_type == expected
        assert confident is True

    def test_json_sniffed_without_extension(self, detector):
        content = BytesContent(json.dumps({"a": [1, 2]}).encode(), name="payload")
        assert detector.detect(content) == "application/json"

    def test_json_extension(self, detector, temp_dir):
        path = temp_dir / "data.json"
        path.write_text('{"key": "value"}')
        assert detector.detect(path) == "application/json"

    def test_content_wins_over_extension(self, detector, sample_jpeg_bytes):
        """A JPEG named .png is still a JPEG; text named .png is text."""
        assert detector.detect(BytesContent(sample_jpeg_bytes, name="x.png")) == (
            "image/jpeg"
        )
        assert detector.detect(BytesContent(b"hello there", name="x.png")) == (
            "text/plain"
        )

    def test_utf8_sample_cut_mid_character(self):
        """A sample boundary inside a multi-byte character is still text."""
        detector = FormatDetectionService(sample_size=10)
        data = "aaaaaaaaaééé more text".encode("utf-8")
        assert detector.detect(BytesContent(data, name="notes")) == "text/plain"

    def test_binary_without_extension_is_unknown(self, detector):
        data = bytes(range(256)) * 4
        assert detector.detect(BytesContent(data, name="blob")) is None

    def test_binary_falls_back_to_extension(self, detector):
        data = bytes(range(256)) * 4
        media_type, confident = detector.detect_with_confidence(
            BytesContent(data, name="mystery.pdf")
        )
        assert media_type == "application/pdf"
        assert confident is False

    def test_empty_content_uses_name(self, detector):
        media_type, confident = detector.detect_with_confidence(
            BytesContent(b"", name="empty.txt")
        )
        assert media_type == "text/plain"
        assert confident is False

    def test_confident_content_detection(self, detector, sample_png_file):
        assert detector.detect_with_confidence(sample_png_file) == ("image/png", True)


class TestNameDetection:
    """Test suite for name-based detection."""

    @pytest.fixture
    def detector(self):
        return FormatDetectionService(sample_size=8192)

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("photo.jpg", "image/jpeg"),
            ("PHOTO.JPEG", "image/jpeg"),
            ("scan.Png", "image/png"),
            ("notes.txt", "text/plain"),
            ("report.pdf", "application/pdf"),
            ("page.htm", "text/html"),
            ("archive.tar.gz", None),
            ("no_extension", None),
        ],
    )
    def test_detect_by_name(self, detector, name, expected):
        assert detector.detect_by_name(name) == expected

    def test_filename_string_without_file(self, detector):
        assert detector.detect_with_confidence("holiday.jpg") == ("image/jpeg", False)

    def test_named_content(self, detector):
        assert detector.detect(NamedContent("doc.PDF")) == "application/pdf"

    def test_unreadable_file_falls_back_to_name(self, detector, temp_dir):
        content = FileContent(temp_dir / "deleted.png")
        assert detector.detect(content) == "image/png"

    def test_open_failure_falls_back_to_name(self, detector, sample_text_file):
        """Content that looks readable but fails on open still gets a type."""

        class BrokenContent(FileContent):
            def open(self):
                return NamedContent(self.name).open()

        assert detector.detect(BrokenContent(sample_text_file)) == "text/plain"
