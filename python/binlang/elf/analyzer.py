"""
Language detection for ELF (Unix/Linux) binaries.

Looks for:
- The .go.buildinfo section written by the Go linker
- Mangled Rust core/std symbols in the static symbol table
- Well-known runtime libraries among the DT_NEEDED entries
"""

import logging
import struct
from typing import BinaryIO

from ..result import LanguageEvidence
from .reader import ElfFile

logger = logging.getLogger(__name__)

GO_BUILDINFO_SECTION = ".go.buildinfo"
RUST_SYMBOL_MARKERS = ("_ZN4core", "_ZN3std")

# (substring, language, evidence prefix); first match wins
LIBRARY_MARKERS = (
    ("libgo", "Go", "Go library"),
    ("libstdc++", "C++", "C++ stdlib"),
    ("libgfortran", "Fortran", "Fortran library"),
    ("libpython", "Python", "Python library"),
)


def has_go_build_info(elf: ElfFile) -> bool:
    return elf.find_section(GO_BUILDINFO_SECTION) is not None


def has_rust_symbols(elf: ElfFile) -> bool:
    """Check the symbol table for mangled Rust core/std paths."""
    try:
        names = elf.symbol_names()
    except (ValueError, struct.error) as e:
        logger.debug("Could not read ELF symbol table: %s", e)
        return False
    return any(marker in name for name in names for marker in RUST_SYMBOL_MARKERS)


def get_elf_imports(elf: ElfFile) -> list[str]:
    """DT_NEEDED libraries, or [] if they can't be read."""
    try:
        return elf.imported_libraries()
    except (ValueError, struct.error) as e:
        logger.debug("Could not enumerate ELF dependencies: %s", e)
        return []


def classify_library(lib: str) -> tuple[str, str] | None:
    """Map one library name to (language, evidence), or None."""
    for marker, language, label in LIBRARY_MARKERS:
        if marker in lib:
            return language, f"{label}: {lib}"
    return None


def analyze_elf_file(f: BinaryIO, evidence: LanguageEvidence) -> None:
    """Collect language evidence from an ELF binary.

    Parse failures are recorded as evidence and end the analysis; they are
    never raised.

    Args:
        f: Seekable binary file object
        evidence: Collector to append hits to
    """
    try:
        elf = ElfFile.from_file(f)
    except ValueError as e:
        logger.debug("ELF parsing failed: %s", e)
        evidence.add_note(f"ELF parsing failed: {e}")
        return

    if has_go_build_info(elf):
        evidence.add_languages("Go", "Found Go build info")

    if has_rust_symbols(elf):
        evidence.add_languages("Rust", "Found Rust symbols")

    for lib in get_elf_imports(elf):
        hit = classify_library(lib)
        if hit is not None:
            language, message = hit
            evidence.add_languages(language, message)
