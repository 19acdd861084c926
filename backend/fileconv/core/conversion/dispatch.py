"""Resolve (media type, output format) pairs to converter instances."""

from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from fileconv.core.conversion.converters.base import BaseConverter
from fileconv.core.exceptions import RegistryError, UnsupportedConversionError
from fileconv.core.registry import FormatRegistry
from fileconv.models.conversion import normalize_format

logger = structlog.get_logger()


class ConverterDispatcher:
    """Looks up the converter for a conversion.

    A pair is only dispatched when the format registry declares it AND an
    implementation is registered for it. Implementations are keyed by
    (source pattern, target format); patterns match media types by prefix
    and the first registered match wins.
    """

    def __init__(
        self, format_registry: FormatRegistry, converters: Iterable[BaseConverter]
    ) -> None:
        self.format_registry = format_registry
        self._implementations: List[Tuple[str, str, BaseConverter]] = []
        keys: Dict[Tuple[str, str], str] = {}

        for converter in converters:
            if not isinstance(converter, BaseConverter):
                raise RegistryError(
                    f"Expected BaseConverter, got {type(converter).__name__}"
                )
            target = normalize_format(converter.target_format)
            if not target or not converter.source_types:
                raise RegistryError(
                    f"{converter.name} must declare source types and a target format"
                )
            for pattern in converter.source_types:
                key = (pattern.lower(), target)
                if key in keys:
                    raise RegistryError(
                        f"Duplicate converter for {key[0]} -> {target}: "
                        f"{keys[key]} and {converter.name}",
                        details={"config_key": f"{key[0]}->{target}"},
                    )
                keys[key] = converter.name
                self._implementations.append((key[0], target, converter))

        logger.debug(
            "Converter dispatcher ready",
            implementations=len(self._implementations),
            registry_entries=len(format_registry),
        )

    def _find(self, media_type: str, target_format: str) -> Optional[BaseConverter]:
        candidate = media_type.strip().lower()
        for pattern, target, converter in self._implementations:
            if target == target_format and candidate.startswith(pattern):
                return converter
        return None

    def resolve(self, media_type: Optional[str], target_format: str) -> BaseConverter:
        """Return the converter for ``media_type`` -> ``target_format``.

        Raises:
            UnsupportedConversionError: If the pair is not declared or has no
                implementation
        """
        target = normalize_format(target_format)
        declared = self.format_registry.outputs_for(media_type)

        if target not in declared:
            raise UnsupportedConversionError(
                f"Conversion from {media_type or 'unknown'} to '{target}' "
                "is not supported",
                details={
                    "media_type": media_type or "",
                    "requested_format": target,
                    "supported_formats": list(declared),
                },
            )

        converter = self._find(media_type, target)
        if converter is None:
            raise UnsupportedConversionError(
                f"No converter is available for {media_type} to '{target}'",
                details={
                    "media_type": media_type,
                    "requested_format": target,
                    "supported_formats": self.implemented_outputs(media_type),
                },
            )
        return converter

    def can_convert(self, media_type: Optional[str], target_format: str) -> bool:
        """Boolean form of :meth:`resolve`."""
        try:
            self.resolve(media_type, target_format)
        except UnsupportedConversionError:
            return False
        return True

    def implemented_outputs(self, media_type: Optional[str]) -> List[str]:
        """Declared outputs for ``media_type`` that also have a converter."""
        return [
            target
            for target in self.format_registry.outputs_for(media_type)
            if self._find(media_type, target) is not None
        ]

    @property
    def converters(self) -> List[BaseConverter]:
        """Distinct registered converters in registration order."""
        seen: List[BaseConverter] = []
        for _, _, converter in self._implementations:
            if not any(converter is existing for existing in seen):
                seen.append(converter)
        return seen
