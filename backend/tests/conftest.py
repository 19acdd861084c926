"""Pytest fixtures for conversion engine tests."""

import io
import os
import shutil
import tempfile
import threading
import time
from pathlib import Path

import pytest
from PIL import Image
from reportlab.pdfgen import canvas

# Set test environment variables BEFORE any imports
os.environ["FILECONV_LOGGING_ENABLED"] = "false"
os.environ.pop("FILECONV_REGISTRY_FILE", None)
os.environ.pop("FILECONV_PDF_FONT_PATH", None)

from fileconv.config import Settings
from fileconv.core.conversion.converters.base import BaseConverter


class SlowTextConverter(BaseConverter):
    """Writes partial output, then idles at checkpoints until ``delay`` passes."""

    source_types = ("text/plain",)
    target_format = "pdf"

    def __init__(self, delay: float = 10.0, step: float = 0.01) -> None:
        self.delay = delay
        self.step = step
        self.started = threading.Event()

    def _convert(self, source, output_path, context):
        with open(output_path, "xb") as output:
            output.write(b"%PDF-partial")
            output.flush()
            self.started.set()
            deadline = time.monotonic() + self.delay
            while time.monotonic() < deadline:
                context.checkpoint()
                time.sleep(self.step)
            output.write(b" done")


class FailingTextConverter(BaseConverter):
    """Writes some bytes and then blows up."""

    source_types = ("text/plain",)
    target_format = "pdf"

    def __init__(self, error: Exception = None) -> None:
        self.error = error or ValueError("boom")

    def _convert(self, source, output_path, context):
        with open(output_path, "xb") as output:
            output.write(b"partial")
        raise self.error


class EmptyTextConverter(BaseConverter):
    """Produces a zero-byte artifact."""

    source_types = ("text/plain",)
    target_format = "pdf"

    def _convert(self, source, output_path, context):
        open(output_path, "xb").close()


class SelfCancellingConverter(BaseConverter):
    """Cancels its own context and stops at the next checkpoint."""

    source_types = ("text/plain",)
    target_format = "pdf"

    def _convert(self, source, output_path, context):
        with open(output_path, "xb") as output:
            output.write(b"partial")
        context.cancel()
        context.checkpoint()


class CopyTextConverter(BaseConverter):
    """Copies text input verbatim; tracks how many calls overlap."""

    source_types = ("text/plain",)
    target_format = "text"

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def _convert(self, source, output_path, context):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delay)
            context.checkpoint()
            with open(output_path, "xb") as output:
                output.write(source.read_bytes())
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test inputs and outputs."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    # Cleanup after test
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def output_dir(temp_dir):
    """Directory receiving converted artifacts."""
    path = temp_dir / "out"
    path.mkdir()
    return path


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        conversion_timeout=10,
        cancel_grace_period=2,
        logging_enabled=False,
        max_concurrent_conversions=2,
    )


@pytest.fixture
def sample_text():
    return "Hello world\nSecond line with <tags> & *stars*\n\n1. numbered\n"


@pytest.fixture
def sample_text_file(temp_dir, sample_text):
    """UTF-8 text file on disk."""
    path = temp_dir / "notes.txt"
    path.write_text(sample_text, encoding="utf-8")
    return path


def _image_bytes(image: Image.Image, format: str, **params) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=format, **params)
    return buffer.getvalue()


@pytest.fixture
def sample_rgba_image():
    """64x64 image: opaque red left half, fully transparent right half."""
    image = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    image.paste((255, 0, 0, 255), (0, 0, 32, 64))
    return image


@pytest.fixture
def sample_png_file(temp_dir, sample_rgba_image):
    path = temp_dir / "logo.png"
    path.write_bytes(_image_bytes(sample_rgba_image, "PNG"))
    return path


@pytest.fixture
def sample_jpeg_bytes():
    image = Image.new("RGB", (80, 60), (30, 120, 200))
    return _image_bytes(image, "JPEG", quality=90)


@pytest.fixture
def sample_jpeg_file(temp_dir, sample_jpeg_bytes):
    path = temp_dir / "photo.jpg"
    path.write_bytes(sample_jpeg_bytes)
    return path


@pytest.fixture
def sample_pdf_bytes():
    """Two-page PDF with one line of text per page."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, invariant=1)
    for page in (1, 2):
        pdf.drawString(72, 720, f"Hello PDF page {page}")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture
def sample_pdf_file(temp_dir, sample_pdf_bytes):
    path = temp_dir / "report.pdf"
    path.write_bytes(sample_pdf_bytes)
    return path


@pytest.fixture
def slow_converter():
    return SlowTextConverter()


@pytest.fixture
def failing_converter():
    return FailingTextConverter()


@pytest.fixture
def make_failing_converter():
    """Factory for converters raising a specific error."""
    return FailingTextConverter


@pytest.fixture
def empty_converter():
    return EmptyTextConverter()


@pytest.fixture
def self_cancelling_converter():
    return SelfCancellingConverter()


@pytest.fixture
def copy_converter():
    return CopyTextConverter()


def leftover_temp_dirs(directory: Path):
    """Scratch directories the pipeline failed to remove."""
    return [p for p in directory.iterdir() if p.name.startswith(".fileconv-")]


@pytest.fixture
def find_leftovers():
    return leftover_temp_dirs


@pytest.fixture
def ttf_font_path():
    """TrueType font bundled with reportlab (Bitstream Vera, Latin only)."""
    import reportlab

    path = Path(reportlab.__file__).parent / "fonts" / "Vera.ttf"
    if not path.is_file():
        pytest.skip("reportlab installation ships without Vera.ttf")
    return path
