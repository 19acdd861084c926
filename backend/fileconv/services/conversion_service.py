"""Service layer exposing the conversion engine to the presentation layer."""

import asyncio
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog
from pydantic import ValidationError

from fileconv.core.content import ContentRef
from fileconv.core.conversion.converters import BaseConverter, default_converters
from fileconv.core.conversion.dispatch import ConverterDispatcher
from fileconv.core.conversion.pipeline import ConversionPipeline
from fileconv.core.exceptions import FileConverterError
from fileconv.core.registry import FormatRegistry, default_registry
from fileconv.models.conversion import (
    ConversionRequest,
    ConversionResult,
    ErrorKind,
    PipelineStage,
)
from fileconv.services.format_detection_service import FormatDetectionService

logger = structlog.get_logger()

MediaTypeOrRef = Union[str, os.PathLike, ContentRef, bytes]

# type/subtype with optional parameters, restricted to registered top-level types
_MEDIA_TYPE_PATTERN = re.compile(
    r"^(application|audio|font|image|message|model|multipart|text|video)"
    r"/[\w.+-]+(\s*;.*)?$",
    re.IGNORECASE,
)


class ConversionService:
    """Engine facade: lists conversions and runs them.

    The format registry and converter set are fixed at construction. Pass
    them explicitly to inject test doubles; otherwise they are built from
    settings (``registry_file`` overrides the shipped registry).
    """

    def __init__(
        self,
        registry: Optional[FormatRegistry] = None,
        converters: Optional[Iterable[BaseConverter]] = None,
        detector: Optional[FormatDetectionService] = None,
        settings: Optional[Any] = None,
    ):
        if settings is None:
            from fileconv.config import settings

        if registry is None:
            if settings.registry_file:
                registry = FormatRegistry.from_file(settings.registry_file)
            else:
                registry = default_registry()
        if converters is None:
            converters = default_converters(settings)
        if detector is None:
            detector = FormatDetectionService(settings.detection_sample_size)

        self.settings = settings
        self.registry = registry
        self.detector = detector
        self.dispatcher = ConverterDispatcher(registry, converters)
        self.pipeline = ConversionPipeline(detector, self.dispatcher, settings)

    def list_output_formats(self, media_type_or_ref: MediaTypeOrRef) -> List[str]:
        """
        Output formats the registry advertises for an input.

        Never raises: an unknown or unreadable input yields an empty list.

        Args:
            media_type_or_ref: A media type string, a filename or path,
                a PathLike or a ContentRef

        Returns:
            Ordered output format identifiers, possibly empty
        """
        media_type = self._resolve_media_type(media_type_or_ref)
        return list(self.registry.outputs_for(media_type))

    def implemented_output_formats(
        self, media_type_or_ref: MediaTypeOrRef
    ) -> List[str]:
        """Like :meth:`list_output_formats`, limited to implemented pairs."""
        media_type = self._resolve_media_type(media_type_or_ref)
        return self.dispatcher.implemented_outputs(media_type)

    def get_supported_conversions(self) -> Dict[str, List[str]]:
        """The registry as a plain ``{media_type: [formats]}`` mapping."""
        return self.registry.as_dict()

    async def convert(
        self,
        input_ref: Union[ContentRef, str, os.PathLike, bytes],
        target_format: str,
        output_directory: Union[str, os.PathLike],
        *,
        media_type: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ConversionResult:
        """
        Convert one input into ``target_format``.

        Args:
            input_ref: Content to convert; never modified
            target_format: Requested output format identifier
            output_directory: Directory receiving the artifact
            media_type: Declared input media type, skips detection
            timeout: Converting stage timeout override in seconds

        Returns:
            ConversionResult; failures are reported in the result
        """
        try:
            request = ConversionRequest(
                source=input_ref, target_format=target_format, media_type=media_type
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = first["loc"][0] if first["loc"] else ""
            logger.warning(
                "Invalid conversion request", field=field, error=first["msg"]
            )
            if field == "source":
                # The input itself cannot be read as content
                return ConversionResult.failure(
                    error_kind=ErrorKind.IO_FAILURE,
                    error_message=f"Invalid input reference: {first['msg']}",
                    target_format=str(target_format or ""),
                    failed_stage=PipelineStage.IDLE,
                )
            return ConversionResult.failure(
                error_kind=ErrorKind.UNSUPPORTED_CONVERSION,
                error_message=f"Invalid target format: {target_format!r}",
                target_format=str(target_format or ""),
            )
        return await self.pipeline.run(request, output_directory, timeout)

    async def convert_batch(
        self,
        requests: Sequence[Union[ConversionRequest, Tuple[Any, str]]],
        output_directory: Union[str, os.PathLike],
        timeout: Optional[float] = None,
    ) -> List[ConversionResult]:
        """
        Run several conversions concurrently.

        At most ``max_concurrent_conversions`` run at once. Results come back
        in the order of ``requests``.

        Args:
            requests: ConversionRequest objects or ``(input_ref, format)`` pairs
            output_directory: Directory receiving every artifact
            timeout: Per-conversion timeout override in seconds

        Returns:
            One ConversionResult per request
        """
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_conversions)

        async def _run_one(item: Union[ConversionRequest, Tuple[Any, str]]):
            async with semaphore:
                if isinstance(item, ConversionRequest):
                    return await self.pipeline.run(item, output_directory, timeout)
                input_ref, target_format = item
                return await self.convert(
                    input_ref, target_format, output_directory, timeout=timeout
                )

        logger.info("Batch conversion started", total=len(requests))
        results = await asyncio.gather(*(_run_one(item) for item in requests))
        logger.info(
            "Batch conversion finished",
            total=len(results),
            completed=sum(1 for result in results if result.ok),
        )
        return list(results)

    def _resolve_media_type(self, media_type_or_ref: MediaTypeOrRef) -> Optional[str]:
        """Turn any accepted input description into a media type."""
        if media_type_or_ref is None:
            return None
        if isinstance(media_type_or_ref, str) and self._is_media_type(
            media_type_or_ref
        ):
            return media_type_or_ref.strip().lower()
        try:
            return self.detector.detect(media_type_or_ref)
        except (FileConverterError, OSError, TypeError, ValueError) as e:
            logger.warning(
                "Could not determine media type", error_type=type(e).__name__
            )
            return None

    @staticmethod
    def _is_media_type(value: str) -> bool:
        if not _MEDIA_TYPE_PATTERN.match(value.strip()):
            return False
        # An existing file wins over the media type reading
        return not Path(value).is_file()


# Singleton instance
conversion_service = ConversionService()
