"""Plain text converters: PDF, HTML and Markdown."""

import functools
import html
import re
from pathlib import Path
from typing import List, Optional
from xml.sax.saxutils import escape as xml_escape

import chardet
import structlog
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from fileconv.core.constants import (
    DEFAULT_PDF_FONT_SIZE,
    PDF_CHECKPOINT_LINES,
    PDF_PAGE_SIZES,
    TEXT_PLAIN,
)
from fileconv.core.content import ContentRef
from fileconv.core.conversion.converters.base import BaseConverter, ConversionContext
from fileconv.core.exceptions import ConfigurationError, ConverterFailureError

logger = structlog.get_logger()

_PAGE_SIZES = {"A4": A4, "LETTER": LETTER}

# Minimum chardet confidence before a non UTF-8 guess is trusted
CHARDET_CONFIDENCE = 0.7


def decode_text(data: bytes, source_name: str = "") -> str:
    """Decode text bytes, preferring UTF-8 and falling back to chardet.

    Raises:
        ConverterFailureError: If the bytes are binary or undecodable
    """
    if b"\x00" in data:
        raise ConverterFailureError(
            "Input contains NUL bytes and is not plain text",
            details={"input_media_type": TEXT_PLAIN},
        )
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass

    guess = chardet.detect(data)
    encoding = guess.get("encoding")
    confidence = guess.get("confidence") or 0.0
    if encoding and confidence >= CHARDET_CONFIDENCE:
        try:
            text = data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            text = None
        if text is not None:
            logger.debug(
                "Text decoded with detected encoding",
                encoding=encoding,
                confidence=round(confidence, 2),
            )
            return text

    raise ConverterFailureError(
        "Could not determine the text encoding of the input",
        details={"input_media_type": TEXT_PLAIN, "error": source_name},
    )


class BaseTextConverter(BaseConverter):
    """Reads the whole source as text."""

    source_types = (TEXT_PLAIN,)

    def read_text(self, source: ContentRef) -> str:
        text = decode_text(source.read_bytes(), source.name)
        return text.replace("\r\n", "\n").replace("\r", "\n")


# Built-in Type1 fonts are written with WinAnsiEncoding, i.e. cp1252
_TYPE1_FONT = "Courier"
_TYPE1_CODEC = "cp1252"
TAB_SIZE = 8
_SPACE_RUN = re.compile(r" {2,}")


@functools.lru_cache(maxsize=None)
def register_ttf_font(font_path: str) -> str:
    """Register a TrueType font with reportlab once and return its name.

    Raises:
        ConfigurationError: If the file is not a usable TrueType font
    """
    font_name = f"FileConv-{Path(font_path).stem}"
    try:
        pdfmetrics.registerFont(TTFont(font_name, font_path))
    except (TTFError, OSError) as e:
        raise ConfigurationError(
            f"Cannot load PDF font: {e}",
            details={"config_key": "pdf_font_path"},
        ) from e
    logger.debug("PDF font registered", font_name=font_name)
    return font_name


def whitespace_markup(line: str) -> str:
    """Escape a line for Paragraph while keeping its spacing.

    Tabs are expanded, leading spaces and every space after the first in
    a run become non-breaking so they survive Paragraph's whitespace
    collapsing. Single spaces stay breakable for wrapping.
    """
    line = line.expandtabs(TAB_SIZE)
    body = line.lstrip(" ")
    indent = len(line) - len(body)
    body = _SPACE_RUN.sub(
        lambda m: " " + "&nbsp;" * (len(m.group()) - 1), xml_escape(body)
    )
    return "&nbsp;" * indent + body


class TextToPdfConverter(BaseTextConverter):
    """Typesets plain text into a paginated PDF.

    Documents are written in reportlab's invariant mode (fixed timestamps and
    document id), so the same text always yields the same bytes. The default
    Courier font only covers Latin-1 and a few extra cp1252 symbols; pass
    ``font_path`` (a TrueType file) for other scripts. Text the font cannot
    show is rejected instead of being rendered as placeholder boxes.
    """

    target_format = "pdf"

    def __init__(
        self,
        page_size: str = "A4",
        font_size: int = DEFAULT_PDF_FONT_SIZE,
        font_path: Optional[str] = None,
    ) -> None:
        page_size = page_size.upper()
        if page_size not in PDF_PAGE_SIZES:
            raise ValueError(f"page_size must be one of {PDF_PAGE_SIZES}")
        if font_size < 4:
            raise ValueError("font_size must be at least 4")
        self.page_size = page_size
        self.font_size = font_size
        self.font_name = register_ttf_font(str(font_path)) if font_path else _TYPE1_FONT

    def missing_glyphs(self, text: str) -> List[str]:
        """Characters of ``text`` the configured font cannot render, in order."""
        font = pdfmetrics.getFont(self.font_name)
        if isinstance(font, TTFont):
            char_map = font.face.charToGlyph

            def supported(ch: str) -> bool:
                return ord(ch) in char_map

        else:

            def supported(ch: str) -> bool:
                try:
                    ch.encode(_TYPE1_CODEC)
                except UnicodeEncodeError:
                    return False
                return True

        missing: List[str] = []
        for ch in dict.fromkeys(text):
            # Control characters never reach the page as glyphs
            if ord(ch) >= 32 and not supported(ch):
                missing.append(ch)
        return missing

    def _convert(
        self, source: ContentRef, output_path: Path, context: ConversionContext
    ) -> None:
        text = self.read_text(source)
        missing = self.missing_glyphs(text)
        if missing:
            codepoints = ", ".join(f"U+{ord(ch):04X}" for ch in missing[:10])
            raise ConverterFailureError(
                f"Font {self.font_name} cannot render {len(missing)} distinct "
                f"character(s) ({codepoints}); configure pdf_font_path with a "
                "TrueType font covering them",
                details={
                    "converter": self.name,
                    "output_format": self.target_format,
                    "error": f"missing glyphs: {codepoints}",
                },
            )

        style = ParagraphStyle(
            "PlainText",
            fontName=self.font_name,
            fontSize=self.font_size,
            leading=self.font_size * 1.25,
        )

        story: List = []
        for index, line in enumerate(text.split("\n")):
            if index % PDF_CHECKPOINT_LINES == 0:
                context.checkpoint()
            if line.strip():
                story.append(Paragraph(whitespace_markup(line), style))
            else:
                story.append(Spacer(1, style.leading))
        if not story:
            story.append(Spacer(1, style.leading))

        def on_page(canvas, doc) -> None:
            context.checkpoint()

        with open(output_path, "xb") as output:
            doc = SimpleDocTemplate(
                output,
                pagesize=_PAGE_SIZES[self.page_size],
                leftMargin=0.75 * inch,
                rightMargin=0.75 * inch,
                topMargin=0.75 * inch,
                bottomMargin=0.75 * inch,
                title=source.stem,
                invariant=1,
            )
            doc.build(story, onFirstPage=on_page, onLaterPages=on_page)


class TextToHtmlConverter(BaseTextConverter):
    """Wraps plain text in a standalone HTML5 document."""

    target_format = "html"

    TEMPLATE = (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '<meta charset="utf-8">\n'
        "<title>{title}</title>\n"
        "<style>pre {{ white-space: pre-wrap; font-family: monospace; }}</style>\n"
        "</head>\n"
        "<body>\n"
        "<pre>{body}</pre>\n"
        "</body>\n"
        "</html>\n"
    )

    def _convert(
        self, source: ContentRef, output_path: Path, context: ConversionContext
    ) -> None:
        text = self.read_text(source)
        context.checkpoint()
        document = self.TEMPLATE.format(
            title=html.escape(source.stem), body=html.escape(text)
        )
        with open(output_path, "x", encoding="utf-8", newline="\n") as output:
            output.write(document)


# Characters that change meaning anywhere in a Markdown line
_MD_INLINE = re.compile(r"([\\`*_\[\]<>|])")
# Constructs that only matter at the start of a line
_MD_BLOCK_START = re.compile(r"^(\s*)(?:([#+\-=])|(\d+)([.)]))")


def _escape_block_start(match: "re.Match[str]") -> str:
    indent, marker, number, delimiter = match.groups()
    if marker:
        return f"{indent}\\{marker}"
    return f"{indent}{number}\\{delimiter}"


def escape_markdown(line: str) -> str:
    """Escape a line of plain text so Markdown renders it literally."""
    escaped = _MD_INLINE.sub(r"\\\1", line)
    return _MD_BLOCK_START.sub(_escape_block_start, escaped)


class TextToMarkdownConverter(BaseTextConverter):
    """Plain text to Markdown with markup characters escaped.

    Blank lines keep separating paragraphs; single line breaks inside a
    paragraph become hard breaks so the rendered layout matches the source.
    """

    target_format = "markdown"

    def _convert(
        self, source: ContentRef, output_path: Path, context: ConversionContext
    ) -> None:
        text = self.read_text(source)
        context.checkpoint()
        lines = text.split("\n")
        out: List[str] = []
        for index, line in enumerate(lines):
            if not line.strip():
                out.append("")
                continue
            escaped = escape_markdown(line.rstrip())
            next_line: Optional[str] = None
            if index + 1 < len(lines):
                next_line = lines[index + 1]
            if next_line is not None and next_line.strip():
                escaped += "  "
            out.append(escaped)
        document = "\n".join(out).strip("\n") + "\n"
        with open(output_path, "x", encoding="utf-8", newline="\n") as output:
            output.write(document)
