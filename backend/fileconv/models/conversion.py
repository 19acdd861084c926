"""Data models for file conversion."""

import os
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fileconv.core.constants import FORMAT_ALIASES

logger = structlog.get_logger()


class ErrorKind(str, Enum):
    """Kinds of conversion failure reported to callers."""

    UNKNOWN_FORMAT = "unknown_format"
    UNSUPPORTED_CONVERSION = "unsupported_conversion"
    CONVERTER_FAILURE = "converter_failure"
    IO_FAILURE = "io_failure"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class PipelineStage(str, Enum):
    """States of the conversion pipeline."""

    IDLE = "idle"
    DETECTING = "detecting"
    DISPATCHING = "dispatching"
    CONVERTING = "converting"
    COMPLETED = "completed"
    FAILED = "failed"


class ConversionStatus(str, Enum):
    """Terminal status of a conversion."""

    COMPLETED = "completed"
    FAILED = "failed"


def normalize_format(format_name: str) -> str:
    """Resolve a format identifier to its canonical lower-case name."""
    format_lower = format_name.strip().lower().lstrip(".")
    return FORMAT_ALIASES.get(format_lower, format_lower)


class FormatCapability(BaseModel):
    """Output formats advertised for one media type key."""

    model_config = ConfigDict(frozen=True)

    media_type: str = Field(min_length=1, description="Media type key (prefix)")
    output_formats: Tuple[str, ...] = Field(
        default=(), description="Ordered output format identifiers"
    )

    @field_validator("media_type")
    @classmethod
    def validate_media_type(cls, v: str) -> str:
        """Media type keys are compared case-insensitively."""
        v = v.strip().lower()
        if not v:
            raise ValueError("media_type must not be empty")
        return v

    @field_validator("output_formats", mode="before")
    @classmethod
    def validate_output_formats(cls, v: Any) -> Tuple[str, ...]:
        """Normalise identifiers and reject duplicates."""
        if isinstance(v, str):
            raise ValueError("output_formats must be a sequence of identifiers")
        formats = [normalize_format(str(item)) for item in v]
        if any(not item for item in formats):
            raise ValueError("output format identifiers must not be empty")
        duplicates = sorted({item for item in formats if formats.count(item) > 1})
        if duplicates:
            raise ValueError(f"Duplicate output formats: {', '.join(duplicates)}")
        return tuple(formats)


class ConversionRequest(BaseModel):
    """A single conversion requested by the caller."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source: Any = Field(description="ContentRef to convert")
    target_format: str
    media_type: Optional[str] = Field(
        default=None, description="Declared media type, skips detection when set"
    )

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: Any) -> Any:
        """Accept only inputs that can be turned into a ContentRef."""
        from fileconv.core.content import ContentRef

        if isinstance(v, str) and not v.strip():
            raise ValueError("source must not be an empty path")
        if not isinstance(
            v, (ContentRef, str, os.PathLike, bytes, bytearray, memoryview)
        ):
            raise ValueError(f"Unsupported content reference type: {type(v).__name__}")
        return v

    @field_validator("target_format")
    @classmethod
    def validate_target_format(cls, v: str) -> str:
        """Normalise the requested format."""
        normalized = normalize_format(v)
        if not normalized:
            raise ValueError("target_format must not be empty")
        return normalized


class ConversionResult(BaseModel):
    """Outcome of one conversion. Immutable once produced.

    A successful result owns a file at ``output_path``. That file outlives
    the conversion call and the caller is responsible for disposing of it,
    either by moving it somewhere permanent or by calling :meth:`dispose`.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: ConversionStatus
    target_format: str
    input_media_type: Optional[str] = None
    output_path: Optional[Path] = None
    output_media_type: Optional[str] = None
    output_size: Optional[int] = Field(None, description="Output size in bytes")
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    failed_stage: Optional[PipelineStage] = None
    processing_time: Optional[float] = Field(
        None, description="Processing time in seconds"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def check_consistency(self) -> "ConversionResult":
        """Success carries an artifact, failure carries an error kind."""
        if self.status == ConversionStatus.COMPLETED:
            if self.output_path is None or self.output_media_type is None:
                raise ValueError("Completed result requires output path and type")
            if self.error_kind is not None:
                raise ValueError("Completed result cannot carry an error")
        elif self.error_kind is None:
            raise ValueError("Failed result requires an error kind")
        return self

    @classmethod
    def success(
        cls,
        output_path: Path,
        output_media_type: str,
        target_format: str,
        **kwargs: Any,
    ) -> "ConversionResult":
        """Build a completed result."""
        return cls(
            status=ConversionStatus.COMPLETED,
            output_path=output_path,
            output_media_type=output_media_type,
            target_format=target_format,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        error_kind: ErrorKind,
        error_message: str,
        target_format: str,
        **kwargs: Any,
    ) -> "ConversionResult":
        """Build a failed result."""
        return cls(
            status=ConversionStatus.FAILED,
            error_kind=error_kind,
            error_message=error_message,
            target_format=target_format,
            **kwargs,
        )

    @property
    def ok(self) -> bool:
        """Whether the conversion completed."""
        return self.status == ConversionStatus.COMPLETED

    def dispose(self) -> bool:
        """Delete the output artifact owned by this result.

        Returns:
            True if a file was removed
        """
        if self.output_path is None:
            return False
        try:
            self.output_path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Conversion output disposed", conversion_id=self.id)
        return True
