"""
Binary container format detection.

This module classifies a binary by the magic numbers in its first 8 bytes,
enabling the detector to dispatch to the matching structural analyzer.
"""

import struct
from enum import Enum
from pathlib import Path
from typing import BinaryIO

# Number of header bytes needed for classification
HEADER_SIZE = 8

# Magic numbers, compared as big-endian 32-bit words
FAT_MAGIC = 0xCAFEBABE
FAT_MAGIC_VARIANT = 0xCAAEBABE
MH_MAGIC = 0xFEEDFACE
MH_MAGIC_64 = 0xFEEDFACF
MH_CIGAM = 0xCEFAEDFE
MH_CIGAM_64 = 0xCFFAEDFE

# Magic byte prefixes
DOS_MAGIC = b"MZ"
ELF_MAGIC = b"\x7fELF"
JAVA_CLASS_MAGIC = b"\xca\xfe\xba\xbe"

_THIN_MACHO_PLATFORMS = {
    MH_MAGIC: "macOS (32-bit)",
    MH_MAGIC_64: "macOS (64-bit)",
    MH_CIGAM: "macOS (32-bit swapped)",
    MH_CIGAM_64: "macOS (64-bit swapped)",
}


class ContainerFormat(str, Enum):
    """Outer binary envelope, independent of source language."""

    PE = "PE"
    ELF = "ELF"
    MACHO = "Mach-O"
    MACHO_UNIVERSAL = "Mach-O-Universal"
    JAVA_CLASS = "Java-Class"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


class HeaderReadError(OSError):
    """Raised when the classification header cannot be read in full."""

    pass


def classify_header(header: bytes) -> tuple[ContainerFormat, str]:
    """Classify a container format from its first 8 bytes.

    The universal (fat) Mach-O check runs before the Java class check. Both
    match the bytes CA FE BA BE, so Java class files are reported as
    Mach-O-Universal.

    Args:
        header: At least HEADER_SIZE bytes from the start of the file

    Returns:
        Tuple of (container format, platform description)
    """
    if len(header) < HEADER_SIZE:
        raise ValueError(
            f"Data too short for header: {len(header)} < {HEADER_SIZE}"
        )

    word, narch = struct.unpack_from(">II", header, 0)

    if word in (FAT_MAGIC, FAT_MAGIC_VARIANT):
        return ContainerFormat.MACHO_UNIVERSAL, f"macOS ({narch} architectures)"

    if word in _THIN_MACHO_PLATFORMS:
        return ContainerFormat.MACHO, _THIN_MACHO_PLATFORMS[word]

    if header[:2] == DOS_MAGIC:
        return ContainerFormat.PE, "Windows"
    if header[:4] == ELF_MAGIC:
        return ContainerFormat.ELF, "Unix/Linux"
    if header[:4] == JAVA_CLASS_MAGIC:
        return ContainerFormat.JAVA_CLASS, "JVM"

    return ContainerFormat.UNKNOWN, "Unknown"


def sniff_container_format(f: BinaryIO) -> tuple[ContainerFormat, str]:
    """Read the header from the current position and classify it.

    The caller is responsible for seeking back to 0 afterwards.

    Args:
        f: Readable binary file object, normally positioned at offset 0

    Returns:
        Tuple of (container format, platform description)

    Raises:
        HeaderReadError: If fewer than HEADER_SIZE bytes could be read
        OSError: If the underlying read fails
    """
    header = f.read(HEADER_SIZE)
    if len(header) < HEADER_SIZE:
        raise HeaderReadError(
            f"Could not read {HEADER_SIZE}-byte header (got {len(header)} bytes)"
        )
    return classify_header(header)


def detect_binary_format(path: Path) -> ContainerFormat:
    """Detect the container format of a file on disk.

    Args:
        path: Path to binary file

    Returns:
        The detected ContainerFormat

    Raises:
        HeaderReadError: If the file is shorter than HEADER_SIZE bytes
        FileNotFoundError: If the file doesn't exist
    """
    with open(path, "rb") as f:
        container_format, _ = sniff_container_format(f)
    return container_format
