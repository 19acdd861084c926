from typing import Dict, List, Optional, TypedDict, Union

from fileconv.models.conversion import ErrorKind


class FormatDetails(TypedDict, total=False):
    """Type-safe details for format errors."""

    media_type: str
    requested_format: str
    supported_formats: List[str]
    file_extension: str


class ConversionDetails(TypedDict, total=False):
    """Type-safe details for converter errors."""

    converter: str
    input_media_type: str
    output_format: str
    error: str


class IODetails(TypedDict, total=False):
    """Type-safe details for I/O errors."""

    operation: str
    errno: int
    error: str


class ProcessingDetails(TypedDict, total=False):
    """Type-safe details for timeout and cancellation errors."""

    timeout_seconds: float
    elapsed_seconds: float
    stage: str


class ConfigDetails(TypedDict, total=False):
    """Type-safe details for configuration errors."""

    config_key: str
    config_value: Union[str, int, float, bool]
    valid_options: List[Union[str, int]]


# Union type for all possible error details
ErrorDetails = Union[
    FormatDetails,
    ConversionDetails,
    IODetails,
    ProcessingDetails,
    ConfigDetails,
    Dict[str, Union[str, int, float, bool, List[str]]],  # Fallback for edge cases
]


class FileConverterError(Exception):
    """Base exception for all conversion engine errors."""

    kind: Optional[ErrorKind] = None

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[ErrorDetails] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class UnknownFormatError(FileConverterError):
    """Raised when the input media type cannot be determined."""

    kind = ErrorKind.UNKNOWN_FORMAT

    def __init__(self, message: str, details: Optional[FormatDetails] = None):
        super().__init__(message=message, error_code="FCV001", details=details)


class UnsupportedConversionError(FileConverterError):
    """Raised when no declared and implemented path leads to the target format."""

    kind = ErrorKind.UNSUPPORTED_CONVERSION

    def __init__(self, message: str, details: Optional[FormatDetails] = None):
        super().__init__(message=message, error_code="FCV002", details=details)


class ConverterFailureError(FileConverterError):
    """Raised when a converter rejects malformed or unreadable input."""

    kind = ErrorKind.CONVERTER_FAILURE

    def __init__(self, message: str, details: Optional[ConversionDetails] = None):
        super().__init__(message=message, error_code="FCV003", details=details)


class IOFailureError(FileConverterError):
    """Raised when input cannot be read or output cannot be written."""

    kind = ErrorKind.IO_FAILURE

    def __init__(self, message: str, details: Optional[IODetails] = None):
        super().__init__(message=message, error_code="FCV004", details=details)


class PermissionDeniedError(FileConverterError):
    """Raised when the environment denies filesystem access."""

    kind = ErrorKind.PERMISSION_DENIED

    def __init__(self, message: str, details: Optional[IODetails] = None):
        super().__init__(message=message, error_code="FCV005", details=details)


class ConversionTimeoutError(FileConverterError):
    """Raised when the converting stage exceeds its timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, details: Optional[ProcessingDetails] = None):
        super().__init__(message=message, error_code="FCV006", details=details)


class ConversionCancelledError(FileConverterError):
    """Raised by a converter checkpoint once its context is cancelled."""

    kind = ErrorKind.CANCELLED

    def __init__(
        self,
        message: str = "Conversion was cancelled",
        details: Optional[ProcessingDetails] = None,
    ):
        super().__init__(message=message, error_code="FCV007", details=details)


class ConfigurationError(FileConverterError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, details: Optional[ConfigDetails] = None):
        super().__init__(message=message, error_code="FCV008", details=details)


class RegistryError(ConfigurationError):
    """Raised when a format or converter registry definition is invalid."""

    def __init__(self, message: str, details: Optional[ConfigDetails] = None):
        super().__init__(message=message, details=details)
        self.error_code = "FCV009"


def error_from_os_error(exc: OSError, operation: str) -> FileConverterError:
    """Translate an OSError into the engine's error taxonomy.

    Args:
        exc: The original error
        operation: Short description of what was attempted

    Returns:
        PermissionDeniedError for access denials, IOFailureError otherwise
    """
    details: IODetails = {"operation": operation, "error": str(exc)}
    if exc.errno is not None:
        details["errno"] = exc.errno
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(
            f"Permission denied while trying to {operation}", details=details
        )
    return IOFailureError(
        f"Failed to {operation}: {exc.strerror or exc}", details=details
    )
