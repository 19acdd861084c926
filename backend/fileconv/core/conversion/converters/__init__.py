"""Converter plugins, one per (source family, target format)."""

from typing import Any, List, Optional

from .base import BaseConverter, ConversionContext
from .image import (
    BaseImageConverter,
    BmpConverter,
    GifConverter,
    JpegConverter,
    PngConverter,
    WebpConverter,
)
from .pdf import PdfToDocxConverter, PdfToTextConverter
from .text import TextToHtmlConverter, TextToMarkdownConverter, TextToPdfConverter


def default_converters(settings: Optional[Any] = None) -> List[BaseConverter]:
    """Build the shipped converter set, configured from ``settings``."""
    if settings is None:
        from fileconv.config import settings

    return [
        TextToPdfConverter(
            page_size=settings.pdf_page_size,
            font_size=settings.pdf_font_size,
            font_path=settings.pdf_font_path,
        ),
        TextToHtmlConverter(),
        TextToMarkdownConverter(),
        PdfToTextConverter(),
        PdfToDocxConverter(),
        PngConverter(),
        JpegConverter(),
        GifConverter(),
        BmpConverter(),
        WebpConverter(),
    ]


__all__ = [
    "BaseConverter",
    "ConversionContext",
    "BaseImageConverter",
    "PngConverter",
    "JpegConverter",
    "GifConverter",
    "BmpConverter",
    "WebpConverter",
    "PdfToTextConverter",
    "PdfToDocxConverter",
    "TextToPdfConverter",
    "TextToHtmlConverter",
    "TextToMarkdownConverter",
    "default_converters",
]
