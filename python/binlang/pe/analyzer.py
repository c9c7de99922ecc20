"""
Language detection for PE (Windows) images.

Looks for:
- A CLR runtime header, which marks a .NET assembly (C#, VB.NET, F#)
- Go-specific section names
- Rust panic strings in read-only data sections
- Well-known runtime DLLs in the import table
"""

import logging
import struct
from typing import BinaryIO

from ..result import LanguageEvidence
from .reader import PeFile

logger = logging.getLogger(__name__)

DOTNET_LANGUAGES = ("C#", "VB.NET", "F#")
GO_SECTION_MARKERS = ("gofunc", "goinfo")
RUST_PANIC_MARKER = b"rust_panic"


def is_go_binary(pe: PeFile) -> bool:
    """Check for Go-specific section names."""
    return any(
        marker in name for name in pe.section_names() for marker in GO_SECTION_MARKERS
    )


def is_rust_binary(pe: PeFile) -> bool:
    """Check read-only data sections for Rust panic strings."""
    for section in pe.iter_sections():
        if ".rdata" in section.name:
            if RUST_PANIC_MARKER in pe.get_section_content(section):
                return True
    return False


def get_pe_imports(pe: PeFile) -> list[str]:
    """Imported symbols as "<function>:<dll>", or [] if they can't be read."""
    try:
        return pe.imported_symbols()
    except (ValueError, struct.error) as e:
        logger.debug("Could not enumerate PE imports: %s", e)
        return []


def classify_import(symbol: str) -> tuple[tuple[str, ...], str] | None:
    """Map one imported symbol to (languages, evidence), or None."""
    if "go_" in symbol or symbol == "runtime.dll":
        return ("Go",), f"Go runtime: {symbol}"
    if "Qt" in symbol:
        return ("C++",), f"Qt framework: {symbol}"
    if "msvcr" in symbol or "vcruntime" in symbol:
        return ("C", "C++"), f"MSVC runtime: {symbol}"
    return None


def analyze_pe_file(f: BinaryIO, evidence: LanguageEvidence) -> None:
    """Collect language evidence from a PE image.

    Parse failures are recorded as evidence and end the analysis; they are
    never raised.

    Args:
        f: Seekable binary file object
        evidence: Collector to append hits to
    """
    try:
        pe = PeFile.from_file(f)
    except ValueError as e:
        logger.debug("PE parsing failed: %s", e)
        evidence.add_note(f"PE parsing failed: {e}")
        return

    if pe.has_clr_metadata:
        evidence.add_languages(DOTNET_LANGUAGES, "Found .NET metadata")

    if is_go_binary(pe):
        evidence.add_languages("Go", "Found Go runtime indicators")

    if is_rust_binary(pe):
        evidence.add_languages("Rust", "Found Rust panic strings")

    for symbol in get_pe_imports(pe):
        hit = classify_import(symbol)
        if hit is not None:
            languages, message = hit
            evidence.add_languages(languages, message)
