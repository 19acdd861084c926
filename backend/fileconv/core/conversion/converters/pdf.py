"""PDF converters: text extraction and DOCX reflow."""

import re
from pathlib import Path
from typing import Iterator, List

import structlog
from docx import Document
from docx.enum.text import WD_BREAK
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from fileconv.core.constants import APPLICATION_PDF
from fileconv.core.content import ContentRef
from fileconv.core.conversion.converters.base import BaseConverter, ConversionContext
from fileconv.core.exceptions import ConverterFailureError

logger = structlog.get_logger()

# Control characters that are not allowed in XML 1.0 text
_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


class BasePdfConverter(BaseConverter):
    """Walks the text layer of a PDF page by page."""

    source_types = (APPLICATION_PDF,)

    def iter_page_text(
        self, source: ContentRef, context: ConversionContext
    ) -> Iterator[str]:
        """Yield the extracted text of every page, checking for cancellation."""
        with source.open() as stream:
            try:
                reader = PdfReader(stream)
                if reader.is_encrypted and not reader.decrypt(""):
                    raise ConverterFailureError(
                        "PDF is encrypted and requires a password",
                        details={"converter": self.name},
                    )
                pages = reader.pages
                logger.debug("PDF opened", pages=len(pages))
                for page in pages:
                    context.checkpoint()
                    yield page.extract_text() or ""
            except PdfReadError as e:
                raise ConverterFailureError(
                    f"Malformed PDF: {e}",
                    details={"converter": self.name, "error": str(e)},
                ) from e


class PdfToTextConverter(BasePdfConverter):
    """Extracts the text layer into UTF-8 plain text.

    Pages are separated by form feeds so page boundaries survive.
    """

    target_format = "text"

    def _convert(
        self, source: ContentRef, output_path: Path, context: ConversionContext
    ) -> None:
        pages = [text.rstrip() for text in self.iter_page_text(source, context)]
        with open(output_path, "x", encoding="utf-8", newline="\n") as output:
            output.write("\n\f\n".join(pages))
            output.write("\n")


class PdfToDocxConverter(BasePdfConverter):
    """Reflows the PDF text layer into a Word document, one page per page."""

    target_format = "docx"

    def _convert(
        self, source: ContentRef, output_path: Path, context: ConversionContext
    ) -> None:
        document = Document()
        for index, text in enumerate(self.iter_page_text(source, context)):
            if index:
                document.add_paragraph().add_run().add_break(WD_BREAK.PAGE)
            for block in self._paragraphs(text):
                document.add_paragraph(block)
        context.checkpoint()
        with open(output_path, "xb") as output:
            document.save(output)

    @staticmethod
    def _paragraphs(text: str) -> List[str]:
        """Split page text on blank lines into XML-safe paragraphs."""
        text = _XML_INVALID.sub("", text)
        blocks = re.split(r"\n\s*\n", text)
        return [" ".join(line.strip() for line in block.splitlines()).strip()
                for block in blocks if block.strip()]
