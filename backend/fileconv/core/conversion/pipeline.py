"""Conversion pipeline: detect -> dispatch -> convert -> result."""

import asyncio
import contextvars
import functools
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from fileconv.core.constants import TEMP_DIR_PREFIX
from fileconv.core.content import ContentRef, as_content
from fileconv.core.conversion.converters.base import BaseConverter, ConversionContext
from fileconv.core.conversion.dispatch import ConverterDispatcher
from fileconv.core.exceptions import (
    ConversionTimeoutError,
    ConverterFailureError,
    FileConverterError,
    IOFailureError,
    UnknownFormatError,
    error_from_os_error,
)
from fileconv.models.conversion import (
    ConversionRequest,
    ConversionResult,
    ErrorKind,
    PipelineStage,
)
from fileconv.utils.logging import LoggingContext

logger = structlog.get_logger()


class _StageTracker:
    """Current pipeline stage of one run, logging every transition."""

    def __init__(self, conversion_id: str) -> None:
        self.conversion_id = conversion_id
        self.stage = PipelineStage.IDLE

    def advance(self, stage: PipelineStage, **event: Any) -> None:
        logger.debug(
            "Pipeline stage changed",
            conversion_id=self.conversion_id,
            from_stage=self.stage.value,
            to_stage=stage.value,
            **event,
        )
        self.stage = stage


class ConversionPipeline:
    """Runs one conversion request through the pipeline state machine.

    IDLE -> DETECTING -> DISPATCHING -> CONVERTING -> COMPLETED | FAILED

    Conversion errors never escape :meth:`run`; they come back as failed
    results. The converter writes into a scratch directory created inside
    the output directory and the artifact is moved into place only once it
    is complete, so an interrupted run leaves nothing at the final path.
    """

    def __init__(
        self,
        detector: Any,
        dispatcher: ConverterDispatcher,
        settings: Optional[Any] = None,
    ) -> None:
        if settings is None:
            from fileconv.config import settings

        self.detector = detector
        self.dispatcher = dispatcher
        self.settings = settings

    async def run(
        self,
        request: ConversionRequest,
        output_directory: Union[str, os.PathLike],
        timeout: Optional[float] = None,
    ) -> ConversionResult:
        """Execute ``request`` and write the artifact to ``output_directory``.

        Args:
            request: The conversion to perform
            output_directory: Directory receiving ``<input stem>.<extension>``
            timeout: Converting stage timeout in seconds; None uses the
                configured default and a value <= 0 disables it

        Returns:
            A completed or failed ConversionResult

        Raises:
            asyncio.CancelledError: If the awaiting task is cancelled, after
                temporary output has been removed
        """
        start_time = time.perf_counter()
        tracker = _StageTracker(request.id)
        media_type = request.media_type
        if timeout is None:
            timeout = self.settings.effective_timeout
        elif timeout <= 0:
            timeout = None

        with LoggingContext(correlation_id=request.id):
            try:
                source = as_content(request.source)

                tracker.advance(PipelineStage.DETECTING)
                if media_type is None:
                    media_type = await self._detect(source)
                if media_type is None:
                    raise UnknownFormatError(
                        "Could not determine the format of the input",
                        details={"file_extension": source.suffix},
                    )

                tracker.advance(PipelineStage.DISPATCHING, media_type=media_type)
                converter = self.dispatcher.resolve(media_type, request.target_format)

                tracker.advance(PipelineStage.CONVERTING, converter=converter.name)
                output_path = await self._convert(
                    converter, source, Path(output_directory), request.id, timeout
                )
            except FileConverterError as e:
                return self._failure(request, tracker, media_type, start_time, e)
            except OSError as e:
                error = error_from_os_error(e, "prepare conversion")
                return self._failure(request, tracker, media_type, start_time, error)
            except (TypeError, ValueError) as e:
                error = ConverterFailureError(str(e), details={"error": str(e)})
                return self._failure(request, tracker, media_type, start_time, error)

            tracker.advance(PipelineStage.COMPLETED)
            processing_time = time.perf_counter() - start_time
            result = ConversionResult.success(
                output_path=output_path,
                output_media_type=converter.output_media_type,
                target_format=request.target_format,
                id=request.id,
                input_media_type=media_type,
                output_size=output_path.stat().st_size,
                processing_time=processing_time,
            )
            logger.info(
                "Conversion completed",
                conversion_id=request.id,
                input_media_type=media_type,
                output_format=request.target_format,
                output_size=result.output_size,
                processing_time=round(processing_time, 3),
            )
            return result

    async def _detect(self, source: ContentRef) -> Optional[str]:
        loop = asyncio.get_running_loop()
        ctx = contextvars.copy_context()
        return await loop.run_in_executor(
            None, functools.partial(ctx.run, self.detector.detect, source)
        )

    async def _convert(
        self,
        converter: BaseConverter,
        source: ContentRef,
        output_directory: Path,
        conversion_id: str,
        timeout: Optional[float],
    ) -> Path:
        """Run the converter in a worker thread and move its artifact in place."""
        size = source.size()
        if size is not None and size > self.settings.max_file_size:
            raise IOFailureError(
                f"Input is {size} bytes, larger than the "
                f"{self.settings.max_file_size} byte limit",
                details={"operation": "check input size"},
            )

        final_path = self._final_path(converter, source, output_directory)

        try:
            temp_dir = Path(
                tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX, dir=output_directory)
            )
        except OSError as e:
            raise error_from_os_error(e, "create temporary directory") from e

        try:
            temp_output = temp_dir / final_path.name
            context = ConversionContext(conversion_id)
            loop = asyncio.get_running_loop()
            ctx = contextvars.copy_context()
            future = loop.run_in_executor(
                None,
                functools.partial(
                    ctx.run, converter.convert, source, temp_output, context
                ),
            )

            try:
                if timeout:
                    await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
                else:
                    await asyncio.shield(future)
            except asyncio.TimeoutError:
                context.cancel()
                await self._drain(future)
                logger.warning(
                    "Conversion timed out",
                    conversion_id=conversion_id,
                    converter=converter.name,
                    timeout=timeout,
                )
                raise ConversionTimeoutError(
                    f"Conversion timed out after {timeout} seconds",
                    details={"timeout_seconds": timeout, "stage": "converting"},
                )
            except asyncio.CancelledError:
                context.cancel()
                await self._drain(future)
                logger.info(
                    "Conversion cancelled by caller",
                    conversion_id=conversion_id,
                    converter=converter.name,
                )
                raise

            if not temp_output.is_file() or temp_output.stat().st_size == 0:
                raise ConverterFailureError(
                    f"{converter.name} produced no output",
                    details={
                        "converter": converter.name,
                        "output_format": converter.target_format,
                    },
                )

            try:
                os.replace(temp_output, final_path)
            except OSError as e:
                raise error_from_os_error(e, "move output into place") from e
            return final_path
        finally:
            self._remove_temp_dir(temp_dir)

    def _final_path(
        self, converter: BaseConverter, source: ContentRef, output_directory: Path
    ) -> Path:
        """Compute and validate ``<output_directory>/<stem>.<extension>``."""
        try:
            output_directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise error_from_os_error(e, "create output directory") from e

        final_path = output_directory / f"{source.stem}.{converter.extension}"

        if source.path is not None and final_path.resolve() == source.path.resolve():
            raise IOFailureError(
                "Output would overwrite the input file",
                details={"operation": "resolve output path"},
            )
        if final_path.is_dir():
            raise IOFailureError(
                "Output path is an existing directory",
                details={"operation": "resolve output path"},
            )
        if final_path.exists() and not self.settings.overwrite_existing:
            raise IOFailureError(
                "Output file already exists",
                details={"operation": "resolve output path"},
            )
        return final_path

    async def _drain(self, future: "asyncio.Future[Any]") -> None:
        """Give a cancelled worker the grace period to reach a checkpoint."""
        grace = self.settings.cancel_grace_period
        try:
            done, _ = await asyncio.wait({future}, timeout=grace)
        finally:
            # Consume the worker's outcome so it is never reported as unretrieved
            future.add_done_callback(_consume_outcome)
        if not done:
            logger.warning(
                "Converter did not stop within the grace period",
                grace_period=grace,
            )

    @staticmethod
    def _remove_temp_dir(temp_dir: Path) -> None:
        shutil.rmtree(temp_dir, ignore_errors=True)
        if temp_dir.exists():
            logger.warning("Temporary directory could not be removed")

    def _failure(
        self,
        request: ConversionRequest,
        tracker: _StageTracker,
        media_type: Optional[str],
        start_time: float,
        error: FileConverterError,
    ) -> ConversionResult:
        failed_stage = tracker.stage
        tracker.advance(PipelineStage.FAILED, error_code=error.error_code)
        error_kind = error.kind or ErrorKind.CONVERTER_FAILURE
        logger.warning(
            "Conversion failed",
            conversion_id=request.id,
            stage=failed_stage.value,
            error_kind=error_kind.value,
            error_code=error.error_code,
            error=error.message,
        )
        return ConversionResult.failure(
            error_kind=error_kind,
            error_message=error.message,
            target_format=request.target_format,
            id=request.id,
            input_media_type=media_type,
            failed_stage=failed_stage,
            processing_time=time.perf_counter() - start_time,
        )


def _consume_outcome(future: "asyncio.Future[Any]") -> None:
    if not future.cancelled():
        future.exception()
