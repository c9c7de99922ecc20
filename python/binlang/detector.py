"""
Source language detection for a single binary.

detect_source_language() sniffs the container format, runs the matching
structural analyzer, then the cross-format pattern scanner, and aggregates
everything that was found into a DetectionResult.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Callable

from .elf.analyzer import analyze_elf_file
from .format_detect import ContainerFormat, sniff_container_format
from .macho.analyzer import analyze_macho_file
from .patterns import scan_language_patterns
from .pe.analyzer import analyze_pe_file
from .result import DetectionResult, LanguageEvidence, determine_most_likely_language

logger = logging.getLogger(__name__)

Analyzer = Callable[[BinaryIO, LanguageEvidence], None]

# Formats without an entry get "Unsupported binary format"
STRUCTURAL_ANALYZERS: dict[ContainerFormat, Analyzer] = {
    ContainerFormat.PE: analyze_pe_file,
    ContainerFormat.ELF: analyze_elf_file,
    ContainerFormat.MACHO: analyze_macho_file,
    ContainerFormat.MACHO_UNIVERSAL: analyze_macho_file,
}


def detect_source_language(path: Path | str) -> DetectionResult:
    """Guess the source language a binary was built from.

    Args:
        path: Path to the binary

    Returns:
        DetectionResult with the most likely language, its confidence and
        the evidence behind it

    Raises:
        OSError: If the file cannot be opened, its 8-byte header cannot be
            read (HeaderReadError), or a seek/read fails. Malformed
            structures are reported as evidence instead.
    """
    evidence = LanguageEvidence()

    with open(path, "rb") as f:
        container_format, platform = sniff_container_format(f)
        f.seek(0)
        logger.debug("%s: %s (%s)", path, container_format, platform)

        analyzer = STRUCTURAL_ANALYZERS.get(container_format)
        if analyzer is None:
            evidence.add_note("Unsupported binary format")
        else:
            analyzer(f, evidence)

        scan_language_patterns(f, evidence)

    return determine_most_likely_language(evidence, container_format, platform)
