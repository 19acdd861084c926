"""Unit tests for settings."""

import pytest
from pydantic import ValidationError

from fileconv.config import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.log_level == "INFO"
        assert settings.conversion_timeout == 30.0
        assert settings.overwrite_existing is True
        assert settings.registry_file is None
        assert settings.pdf_page_size == "A4"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("FILECONV_CONVERSION_TIMEOUT", "12.5")
        monkeypatch.setenv("FILECONV_OVERWRITE_EXISTING", "false")
        monkeypatch.setenv("FILECONV_PDF_PAGE_SIZE", "letter")

        settings = Settings(_env_file=None)

        assert settings.conversion_timeout == 12.5
        assert settings.overwrite_existing is False
        assert settings.pdf_page_size == "LETTER"

    def test_log_level_normalised(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("log_level", "VERBOSE"),
            ("conversion_timeout", -1),
            ("cancel_grace_period", -0.5),
            ("max_concurrent_conversions", 0),
            ("detection_sample_size", 0),
            ("pdf_page_size", "A3"),
            ("pdf_font_size", 2),
            ("pdf_font_path", "/nonexistent/font.ttf"),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_zero_timeout_disables(self):
        assert Settings(_env_file=None, conversion_timeout=0).effective_timeout is None
        assert Settings(_env_file=None, conversion_timeout=3).effective_timeout == 3

    def test_blank_registry_file_is_none(self, monkeypatch):
        monkeypatch.setenv("FILECONV_REGISTRY_FILE", "  ")
        assert Settings(_env_file=None).registry_file is None

    def test_pdf_font_path(self, monkeypatch, ttf_font_path):
        monkeypatch.setenv("FILECONV_PDF_FONT_PATH", "")
        assert Settings(_env_file=None).pdf_font_path is None

        monkeypatch.setenv("FILECONV_PDF_FONT_PATH", str(ttf_font_path))
        assert Settings(_env_file=None).pdf_font_path == str(ttf_font_path)
