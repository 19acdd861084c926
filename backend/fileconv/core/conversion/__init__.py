"""Conversion dispatch and pipeline."""

from .dispatch import ConverterDispatcher
from .pipeline import ConversionPipeline

__all__ = ["ConverterDispatcher", "ConversionPipeline"]
