"""
binlang: Source language detection for compiled binaries.

This package inspects PE (Windows), ELF (Unix/Linux) and Mach-O (macOS,
thin and universal) executables and guesses which programming language
they were built from, using structural artifacts (imports, sections,
metadata directories) and strings left behind by compilers and runtimes.

The generic API detects the container format and dispatches to the
appropriate analyzer:

    from binlang import detect_source_language

    result = detect_source_language(binary_path)
    print(result.primary_language, result.confidence)
    for line in result.evidence:
        print(line)

For format-specific parsing, use the subpackages directly:

    from binlang.pe import PeFile
    from binlang.elf import ElfFile
    from binlang.macho import MachOFile, FatFile
"""

from .container import BinaryContainer, ContainerParseError
from .detector import detect_source_language
from .format_detect import (
    ContainerFormat,
    HeaderReadError,
    detect_binary_format,
    sniff_container_format,
)
from .result import (
    DetectionResult,
    LanguageEvidence,
    determine_most_likely_language,
    UNKNOWN_LANGUAGE,
)

__all__ = [
    # Detection
    "detect_source_language",
    "DetectionResult",
    "LanguageEvidence",
    "determine_most_likely_language",
    "UNKNOWN_LANGUAGE",
    # Format detection
    "ContainerFormat",
    "HeaderReadError",
    "detect_binary_format",
    "sniff_container_format",
    # Containers
    "BinaryContainer",
    "ContainerParseError",
]
