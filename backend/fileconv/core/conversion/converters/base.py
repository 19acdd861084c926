"""Base converter interface."""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

import structlog

from fileconv.core.constants import FORMAT_EXTENSIONS, FORMAT_MEDIA_TYPES
from fileconv.core.content import ContentRef
from fileconv.core.exceptions import (
    ConversionCancelledError,
    ConverterFailureError,
    FileConverterError,
    error_from_os_error,
)

logger = structlog.get_logger()


class ConversionContext:
    """Per-invocation cancellation token shared with the worker thread."""

    def __init__(self, conversion_id: str = "") -> None:
        self.conversion_id = conversion_id
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Ask the converter to stop at its next checkpoint."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def checkpoint(self) -> None:
        """Raise if the conversion has been cancelled."""
        if self._cancelled.is_set():
            raise ConversionCancelledError()


class BaseConverter(ABC):
    """Abstract base class for converters.

    A converter turns one source family into one target format. Instances
    hold no state between calls, so a single instance may serve concurrent
    conversions.
    """

    #: Media type patterns this converter reads (matched by prefix)
    source_types: Tuple[str, ...] = ()
    #: Canonical target format identifier
    target_format: str = ""

    @property
    def output_media_type(self) -> str:
        """Media type of the produced artifact."""
        return FORMAT_MEDIA_TYPES.get(
            self.target_format, "application/octet-stream"
        )

    @property
    def extension(self) -> str:
        """File extension (without dot) for the produced artifact."""
        return FORMAT_EXTENSIONS.get(self.target_format, self.target_format)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def convert(
        self,
        source: ContentRef,
        output_path: Path,
        context: Optional[ConversionContext] = None,
    ) -> Path:
        """Convert ``source`` into a new file at ``output_path``.

        Errors are normalised into the engine taxonomy: converter errors pass
        through, OS errors become IOFailureError/PermissionDeniedError and
        anything else is a ConverterFailureError.

        Args:
            source: Content to read; never modified
            output_path: Where to write; must not exist yet
            context: Cancellation token, a fresh one is used when omitted

        Returns:
            Path of the written artifact
        """
        context = context or ConversionContext()
        context.checkpoint()
        preexisting = output_path.exists()
        try:
            self._convert(source, output_path, context)
        except FileConverterError:
            self._discard(output_path, preexisting)
            raise
        except OSError as e:
            self._discard(output_path, preexisting)
            raise error_from_os_error(e, "write converted output") from e
        except Exception as e:
            self._discard(output_path, preexisting)
            raise ConverterFailureError(
                f"{self.name} failed: {e}",
                details={
                    "converter": self.name,
                    "output_format": self.target_format,
                    "error": str(e),
                },
            ) from e
        return output_path

    def _discard(self, output_path: Path, preexisting: bool) -> None:
        """Remove partial output this call created."""
        if preexisting:
            return
        try:
            output_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                "Failed to remove partial output",
                converter=self.name,
                error=str(e),
            )

    @abstractmethod
    def _convert(
        self, source: ContentRef, output_path: Path, context: ConversionContext
    ) -> None:
        """Perform the conversion, calling ``context.checkpoint()`` regularly."""

    def __repr__(self) -> str:
        return f"{self.name}({'|'.join(self.source_types)} -> {self.target_format})"
