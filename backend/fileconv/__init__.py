"""File-format conversion engine."""

from fileconv.core.content import BytesContent, ContentRef, FileContent, NamedContent
from fileconv.core.registry import FormatRegistry, default_registry
from fileconv.models.conversion import (
    ConversionRequest,
    ConversionResult,
    ConversionStatus,
    ErrorKind,
    FormatCapability,
)
from fileconv.services.conversion_service import ConversionService

__version__ = "1.0.0"

__all__ = [
    "BytesContent",
    "ContentRef",
    "ConversionRequest",
    "ConversionResult",
    "ConversionService",
    "ConversionStatus",
    "ErrorKind",
    "FileContent",
    "FormatCapability",
    "FormatRegistry",
    "NamedContent",
    "default_registry",
]
