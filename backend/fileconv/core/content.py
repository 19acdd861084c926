"""Content references handed to the engine by the presentation layer.

The engine never cares whether the caller holds a path on disk (native
platforms) or a byte buffer (web uploads). Both are wrapped in a
``ContentRef`` exposing the same read capabilities, so detection and the
converters stay platform-agnostic.
"""

import os
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Union

from fileconv.core.exceptions import IOFailureError, error_from_os_error


class ContentRef(ABC):
    """Read-only handle on the content to convert."""

    def __init__(self, name: str) -> None:
        self.name = name

    @property
    def suffix(self) -> str:
        """Lower-case extension of the display name, including the dot."""
        return Path(self.name).suffix.lower()

    @property
    def stem(self) -> str:
        """Display name without its extension."""
        return Path(self.name).stem or "output"

    @property
    def path(self) -> Optional[Path]:
        """Filesystem location, if the content lives on disk."""
        return None

    @property
    def readable(self) -> bool:
        """Whether the content bytes can be read."""
        return True

    @abstractmethod
    def open(self) -> BinaryIO:
        """Open a fresh binary stream positioned at the start."""

    def read_bytes(self) -> bytes:
        """Read the whole content."""
        with self.open() as stream:
            return stream.read()

    def head(self, size: int) -> bytes:
        """Read at most ``size`` bytes from the start."""
        with self.open() as stream:
            return stream.read(size)

    def size(self) -> Optional[int]:
        """Content size in bytes, when cheaply known."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class FileContent(ContentRef):
    """Content stored in a file on disk."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self._path = Path(path)
        super().__init__(self._path.name)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def readable(self) -> bool:
        return self._path.is_file() and os.access(self._path, os.R_OK)

    def open(self) -> BinaryIO:
        try:
            return open(self._path, "rb")
        except OSError as e:
            raise error_from_os_error(e, "read input file") from e

    def size(self) -> Optional[int]:
        try:
            return self._path.stat().st_size
        except OSError:
            return None


class BytesContent(ContentRef):
    """In-memory content with a display name (e.g. a browser upload)."""

    def __init__(self, data: bytes, name: str = "upload") -> None:
        super().__init__(name)
        self._data = bytes(data)

    def open(self) -> BinaryIO:
        return BytesIO(self._data)

    def read_bytes(self) -> bytes:
        return self._data

    def head(self, size: int) -> bytes:
        return self._data[:size]

    def size(self) -> Optional[int]:
        return len(self._data)


class NamedContent(ContentRef):
    """Only a filename is known; no byte stream is available."""

    @property
    def readable(self) -> bool:
        return False

    def open(self) -> BinaryIO:
        raise IOFailureError(
            f"Content '{self.name}' has no readable byte stream",
            details={"operation": "open named content"},
        )


def as_content(ref: Union[ContentRef, str, os.PathLike, bytes]) -> ContentRef:
    """Coerce the supported caller inputs into a ContentRef.

    Strings and path-likes naming an existing file become ``FileContent``;
    strings that do not exist on disk become ``NamedContent``.
    """
    if isinstance(ref, ContentRef):
        return ref
    if isinstance(ref, (bytes, bytearray, memoryview)):
        return BytesContent(bytes(ref))
    if isinstance(ref, (str, os.PathLike)):
        path = Path(ref)
        if path.is_file():
            return FileContent(path)
        return NamedContent(path.name or str(ref))
    raise TypeError(f"Unsupported content reference type: {type(ref).__name__}")
