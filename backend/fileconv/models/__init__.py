"""Models package for the conversion engine."""

from fileconv.models.conversion import (
    ConversionRequest,
    ConversionResult,
    ConversionStatus,
    ErrorKind,
    FormatCapability,
    PipelineStage,
    normalize_format,
)

__all__ = [
    "ConversionRequest",
    "ConversionResult",
    "ConversionStatus",
    "ErrorKind",
    "FormatCapability",
    "PipelineStage",
    "normalize_format",
]
