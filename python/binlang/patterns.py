"""
Cross-format language signature scanning.

Scans the start of a file for strings that compilers and runtimes leave
behind, regardless of the container format.
"""

import logging
import re
from typing import BinaryIO

from .result import LanguageEvidence

logger = logging.getLogger(__name__)

# Bytes read from the start of the file
SCAN_WINDOW_SIZE = 65536

# Checked in this order; each matching pattern is one hit
LANGUAGE_PATTERNS: dict[str, re.Pattern[bytes]] = {
    "Go": re.compile(rb"runtime\.|go(itab|type|func|string|interface)"),
    "Rust": re.compile(rb"rust_panic|rust_begin_unwind|core::"),
    "C++": re.compile(rb"\.cxx_|std::|__cxa_|typeinfo for"),
    "Python": re.compile(rb"PyImport_|PyEval_|Python\d\.\d"),
    "Java": re.compile(rb"java/|javax/"),
    "Node": re.compile(rb"node\.js|require\("),
}


def match_language_patterns(data: bytes) -> list[str]:
    """Return the languages whose signature occurs anywhere in data."""
    return [
        lang for lang, pattern in LANGUAGE_PATTERNS.items() if pattern.search(data)
    ]


def scan_language_patterns(f: BinaryIO, evidence: LanguageEvidence) -> None:
    """Scan the first SCAN_WINDOW_SIZE bytes of a file for language strings.

    Args:
        f: Seekable binary file object
        evidence: Collector to append hits to

    Raises:
        OSError: If seeking or reading fails
    """
    f.seek(0)
    data = f.read(SCAN_WINDOW_SIZE)
    if not data:
        return

    for lang in match_language_patterns(data):
        logger.debug("Pattern hit for %s in first %d bytes", lang, len(data))
        evidence.add_languages(lang, f"Found {lang} patterns in binary")
