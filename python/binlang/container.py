"""
Common container interface for binary formats.

This module provides the BinaryContainer abstract base class that the PE,
ELF and Mach-O readers extend, so analyzers can query sections, imports
and symbols without knowing the layout of each format.
"""

import struct
from abc import ABC, abstractmethod
from typing import BinaryIO, TypeVar

from .format_detect import ContainerFormat

_C = TypeVar("_C", bound="BinaryContainer")


class ContainerParseError(ValueError):
    """Raised when a binary's structures cannot be decoded."""

    pass


class BinaryContainer(ABC):
    """Abstract base class for parsed binary containers.

    Subclasses parse from an in-memory copy of the file. Methods that
    enumerate optional tables return an empty list when the table is absent
    and raise ContainerParseError when it is present but malformed.
    """

    container_format: ContainerFormat = ContainerFormat.UNKNOWN

    @classmethod
    @abstractmethod
    def from_bytes(cls: type[_C], data: bytes) -> _C:
        """Parse a container from binary data.

        Raises:
            ContainerParseError: If the data is not a valid container
        """
        ...

    @classmethod
    def from_file(cls: type[_C], f: BinaryIO) -> _C:
        """Parse a container from a seekable file object.

        Reads the whole file starting at offset 0.
        """
        f.seek(0)
        data = f.read()
        try:
            return cls.from_bytes(data)
        except ContainerParseError:
            raise
        except (ValueError, struct.error) as e:
            raise ContainerParseError(str(e)) from e

    @abstractmethod
    def section_names(self) -> list[str]:
        """Names of all sections, in table order."""
        ...

    @abstractmethod
    def imported_libraries(self) -> list[str]:
        """Names or paths of dynamically linked libraries."""
        ...

    def imported_symbols(self) -> list[str]:
        """Imported symbol names. Formats without an import table return []."""
        return []

    def symbol_names(self) -> list[str]:
        """Static symbol table names. Formats without one return []."""
        return []


def read_cstring(data: bytes, offset: int, limit: int | None = None) -> str:
    """Read a NUL-terminated ASCII string.

    Args:
        data: Buffer to read from
        offset: Start of the string
        limit: Optional end bound (exclusive); the string is cut there if
            no NUL is found earlier

    Returns:
        Decoded string, or "" if offset is out of range
    """
    end_bound = len(data) if limit is None else min(limit, len(data))
    if offset < 0 or offset >= end_bound:
        return ""
    end = data.find(b"\x00", offset, end_bound)
    if end == -1:
        end = end_bound
    return data[offset:end].decode("ascii", errors="replace")
