"""Format registry: which output formats are advertised per media type."""

import json
import os
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import structlog
from pydantic import ValidationError

from fileconv.core.constants import DEFAULT_SUPPORTED_CONVERSIONS
from fileconv.core.exceptions import RegistryError
from fileconv.models.conversion import FormatCapability, normalize_format

logger = structlog.get_logger()


class FormatRegistry:
    """Immutable, ordered table of media type -> output formats.

    Lookup uses prefix matching: a key matches a detected media type when the
    key is a literal prefix of it, so ``"image/jpeg; charset=binary"`` matches
    the ``"image/jpeg"`` key. The first matching key in registration order
    wins. This also means a ``"text/plain"`` key would match a hypothetical
    ``"text/plainish"`` type; the behaviour is kept on purpose because it
    decides which conversions are offered.
    """

    def __init__(self, capabilities: Iterable[FormatCapability]) -> None:
        entries: List[FormatCapability] = []
        seen = set()
        for capability in capabilities:
            if not isinstance(capability, FormatCapability):
                raise RegistryError(
                    f"Expected FormatCapability, got {type(capability).__name__}"
                )
            if capability.media_type in seen:
                raise RegistryError(
                    f"Media type '{capability.media_type}' registered twice",
                    details={"config_key": capability.media_type},
                )
            seen.add(capability.media_type)
            entries.append(capability)
        self._entries: Tuple[FormatCapability, ...] = tuple(entries)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Sequence[str]]) -> "FormatRegistry":
        """Build a registry from a ``{media_type: [formats]}`` mapping.

        Raises:
            RegistryError: If an entry is invalid
        """
        capabilities = []
        for media_type, formats in mapping.items():
            try:
                capabilities.append(
                    FormatCapability(media_type=media_type, output_formats=formats)
                )
            except ValidationError as e:
                reason = e.errors()[0]["msg"]
                raise RegistryError(
                    f"Invalid registry entry for '{media_type}': {reason}",
                    details={"config_key": str(media_type)},
                ) from e
        return cls(capabilities)

    @classmethod
    def from_file(cls, path: Union[str, os.PathLike]) -> "FormatRegistry":
        """Load a registry from a JSON object of media type -> format list."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise RegistryError(
                f"Cannot read registry file: {e.strerror or e}",
                details={"config_key": "registry_file"},
            ) from e
        except json.JSONDecodeError as e:
            raise RegistryError(
                f"Registry file is not valid JSON: {e.msg}",
                details={"config_key": "registry_file"},
            ) from e

        if not isinstance(data, dict):
            raise RegistryError(
                "Registry file must contain a JSON object",
                details={"config_key": "registry_file"},
            )

        registry = cls.from_mapping(data)
        logger.info("Format registry loaded", entries=len(registry))
        return registry

    def match(self, media_type: Optional[str]) -> Optional[FormatCapability]:
        """Return the first capability whose key prefixes ``media_type``."""
        if not media_type:
            return None
        candidate = media_type.strip().lower()
        for capability in self._entries:
            if candidate.startswith(capability.media_type):
                return capability
        return None

    def outputs_for(self, media_type: Optional[str]) -> Tuple[str, ...]:
        """Ordered output formats for a media type; empty when unmatched."""
        capability = self.match(media_type)
        return capability.output_formats if capability else ()

    def supports(self, media_type: Optional[str], format_name: str) -> bool:
        """Check whether the registry advertises ``format_name``."""
        return normalize_format(format_name) in self.outputs_for(media_type)

    def media_types(self) -> List[str]:
        """Registered media type keys in registration order."""
        return [capability.media_type for capability in self._entries]

    def as_dict(self) -> Dict[str, List[str]]:
        """Plain mapping view, useful for display and serialisation."""
        return {c.media_type: list(c.output_formats) for c in self._entries}

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FormatRegistry({self.media_types()!r})"


def default_registry() -> FormatRegistry:
    """Registry with the conversions shipped by default."""
    return FormatRegistry.from_mapping(DEFAULT_SUPPORTED_CONVERSIONS)
