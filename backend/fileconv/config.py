import os
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fileconv.core.constants import (
    DEFAULT_CANCEL_GRACE_PERIOD,
    DEFAULT_CONVERSION_TIMEOUT,
    DEFAULT_PDF_FONT_SIZE,
    DETECTION_SAMPLE_SIZE,
    MAX_CONCURRENT_CONVERSIONS,
    MAX_FILE_SIZE,
    PDF_PAGE_SIZES,
)


class Settings(BaseSettings):
    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Render logs as JSON")
    logging_enabled: bool = Field(
        default=False, description="Enable file logging in addition to stderr"
    )
    log_dir: str = Field(default="./logs", description="Directory for log files")
    max_log_size_mb: int = Field(
        default=10, description="Maximum size of each log file in MB"
    )
    log_backup_count: int = Field(
        default=3, description="Number of backup log files to keep"
    )

    # Conversion
    conversion_timeout: float = Field(
        default=DEFAULT_CONVERSION_TIMEOUT,
        description="Converting stage timeout in seconds (0 disables)",
    )
    cancel_grace_period: float = Field(
        default=DEFAULT_CANCEL_GRACE_PERIOD,
        description="Seconds a cancelled converter gets to reach a checkpoint",
    )
    max_file_size: int = Field(
        default=MAX_FILE_SIZE, description="Max input size in bytes (50MB)"
    )
    max_concurrent_conversions: int = Field(
        default=MAX_CONCURRENT_CONVERSIONS,
        description="Max conversions running at once in a batch",
    )
    overwrite_existing: bool = Field(
        default=True, description="Replace an existing file at the output path"
    )

    # Formats
    registry_file: Optional[str] = Field(
        default=None, description="JSON file overriding the shipped registry"
    )
    detection_sample_size: int = Field(
        default=DETECTION_SAMPLE_SIZE, description="Bytes read for sniffing"
    )

    # PDF rendering
    pdf_page_size: str = Field(default="A4", description="Page size for text->pdf")
    pdf_font_size: int = Field(
        default=DEFAULT_PDF_FONT_SIZE, description="Font size for text->pdf"
    )
    pdf_font_path: Optional[str] = Field(
        default=None,
        description="TrueType font for text->pdf; the built-in Courier covers Latin-1",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @field_validator("conversion_timeout", "cancel_grace_period")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator(
        "max_file_size",
        "max_concurrent_conversions",
        "detection_sample_size",
        "max_log_size_mb",
    )
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("pdf_page_size")
    @classmethod
    def validate_pdf_page_size(cls, v):
        if v.upper() not in PDF_PAGE_SIZES:
            raise ValueError(f"pdf_page_size must be one of {list(PDF_PAGE_SIZES)}")
        return v.upper()

    @field_validator("pdf_font_size")
    @classmethod
    def validate_pdf_font_size(cls, v):
        if not 4 <= v <= 72:
            raise ValueError("pdf_font_size must be between 4 and 72")
        return v

    @field_validator("registry_file", "pdf_font_path", mode="before")
    @classmethod
    def empty_path(cls, v):
        """An empty environment value means no override."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("pdf_font_path")
    @classmethod
    def validate_pdf_font_path(cls, v):
        if v is not None and not os.path.isfile(v):
            raise ValueError(f"pdf_font_path does not exist: {v}")
        return v

    @property
    def effective_timeout(self) -> Optional[float]:
        """Converting stage timeout, or None when disabled."""
        return self.conversion_timeout or None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="FILECONV_",
        extra="ignore",
    )


settings = Settings()
