"""
Format Detection Service - media type detection from file content or name
Content wins over the extension whenever bytes are available
"""

import codecs
import json
import os
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple, Union

import chardet
import structlog
from PIL import Image

from fileconv.core.constants import (
    APPLICATION_JSON,
    APPLICATION_ZIP,
    DETECTION_SAMPLE_SIZE,
    EXTENSION_MEDIA_TYPES,
    IMAGE_WEBP,
    MAGIC_SIGNATURES,
    PIL_FORMAT_MEDIA_TYPES,
    TEXT_PLAIN,
    TEXTUAL_MEDIA_TYPES,
    ZIP_CONTAINER_TYPES,
)
from fileconv.core.content import ContentRef, as_content
from fileconv.core.exceptions import FileConverterError

logger = structlog.get_logger()

# Share of control characters above which a decodable sample is not text
MAX_CONTROL_CHAR_RATIO = 0.05
# Minimum chardet confidence for non UTF-8 text
MIN_ENCODING_CONFIDENCE = 0.7


class FormatDetectionService:
    """Service for detecting media types.

    Two paths share one media type vocabulary: content sniffing when the
    bytes are readable, and an extension table when only a name is known.
    ``None`` means the type is unknown; it is a normal outcome, not an error.
    """

    def __init__(self, sample_size: Optional[int] = None):
        if sample_size is None:
            from fileconv.config import settings

            sample_size = settings.detection_sample_size
        self.sample_size = sample_size

    def detect(
        self, ref: Union[ContentRef, str, os.PathLike, bytes]
    ) -> Optional[str]:
        """Detect the media type of a content reference or filename."""
        media_type, _ = self.detect_with_confidence(ref)
        return media_type

    def detect_with_confidence(
        self, ref: Union[ContentRef, str, os.PathLike, bytes]
    ) -> Tuple[Optional[str], bool]:
        """
        Detect the media type and report how it was determined.

        Args:
            ref: Content reference, path, filename or raw bytes

        Returns:
            Tuple of (media_type, is_confident)
            - media_type: The detected media type or None when unknown
            - is_confident: True when derived from content, False when it
              only rests on the file extension
        """
        content = as_content(ref)
        if not content.readable:
            return self.detect_by_name(content.name), False

        try:
            sample = content.head(self.sample_size)
        except FileConverterError as e:
            logger.warning(
                "Content unreadable, falling back to name-based detection",
                error_code=e.error_code,
            )
            return self.detect_by_name(content.name), False

        if not sample:
            return self.detect_by_name(content.name), False

        media_type = self._detect_by_magic_bytes(sample, content.suffix)
        if media_type:
            logger.debug("Format detected by magic bytes", media_type=media_type)
            return media_type, True

        media_type = self._detect_by_pil(sample)
        if media_type:
            logger.debug("Format detected by PIL", media_type=media_type)
            return media_type, True

        is_complete = len(sample) < self.sample_size
        media_type = self._detect_text(sample, content.suffix, is_complete)
        if media_type:
            logger.debug("Format detected as text", media_type=media_type)
            return media_type, True

        media_type = self.detect_by_name(content.name)
        logger.debug(
            "Format guessed from extension", media_type=media_type, confident=False
        )
        return media_type, False

    def detect_by_name(self, name: Union[str, os.PathLike]) -> Optional[str]:
        """Look up a media type from the file extension (case-insensitive)."""
        suffix = Path(name).suffix.lower()
        return EXTENSION_MEDIA_TYPES.get(suffix)

    def _detect_by_magic_bytes(self, data: bytes, suffix: str) -> Optional[str]:
        """Detect media type using magic byte signatures."""
        for signature, media_type in MAGIC_SIGNATURES:
            if not data.startswith(signature):
                continue
            if media_type == "RIFF":
                # RIFF is a container; only the WEBP form type is an image here
                if data[8:12] == b"WEBP":
                    return IMAGE_WEBP
                continue
            if media_type == APPLICATION_ZIP:
                return ZIP_CONTAINER_TYPES.get(suffix, APPLICATION_ZIP)
            return media_type
        return None

    def _detect_by_pil(self, data: bytes) -> Optional[str]:
        """Detect image media type using PIL header parsing."""
        try:
            with BytesIO(data) as buffer:
                with Image.open(buffer) as img:
                    if img.format:
                        return PIL_FORMAT_MEDIA_TYPES.get(img.format.upper())
        except Exception as e:
            logger.debug("PIL detection failed", error=str(e))
        return None

    def _detect_text(
        self, data: bytes, suffix: str, is_complete: bool
    ) -> Optional[str]:
        """Classify decodable, mostly printable data as a textual type."""
        if b"\x00" in data:
            return None
        text = self._decode_sample(data, is_complete)
        if text is None:
            return None

        control = sum(1 for ch in text if ord(ch) < 32 and ch not in "\t\n\r\f")
        if text and control / len(text) > MAX_CONTROL_CHAR_RATIO:
            return None

        by_extension = EXTENSION_MEDIA_TYPES.get(suffix)
        if by_extension in TEXTUAL_MEDIA_TYPES:
            return by_extension

        stripped = text.strip()
        if is_complete and stripped[:1] in ("{", "["):
            try:
                json.loads(stripped)
                return APPLICATION_JSON
            except ValueError:
                pass
        return TEXT_PLAIN

    @staticmethod
    def _decode_sample(data: bytes, is_complete: bool) -> Optional[str]:
        # The sample may end inside a multi-byte sequence unless it is complete
        decoder = codecs.getincrementaldecoder("utf-8-sig")()
        try:
            return decoder.decode(data, final=is_complete)
        except UnicodeDecodeError:
            pass

        guess = chardet.detect(data)
        encoding = guess.get("encoding")
        if encoding and (guess.get("confidence") or 0.0) >= MIN_ENCODING_CONFIDENCE:
            try:
                return data.decode(encoding, errors="ignore")
            except LookupError:
                return None
        return None


# Singleton instance
format_detection_service = FormatDetectionService()
