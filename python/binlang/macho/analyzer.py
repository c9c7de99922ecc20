"""
Language detection for Mach-O (macOS) binaries, thin or universal.

Looks for:
- Swift metadata and Objective-C sections
- Go build ID sections
- Swift, Objective-C and libc++ runtimes among the linked dylibs

For universal binaries a single slice is analyzed: the one built for the
host architecture when present, otherwise the first one.
"""

import logging
import struct
from typing import BinaryIO

from .. import platform_utils
from ..container import ContainerParseError
from ..result import LanguageEvidence
from .reader import FatFile, FatSlice, MachOFile
from .types import FAT_MAGICS

logger = logging.getLogger(__name__)

# (substring, language, evidence prefix); first match wins
LIBRARY_MARKERS = (
    ("libswift", "Swift", "Swift library"),
    ("libobjc", "Objective-C", "Objective-C runtime"),
    ("libc++", "C++", "C++ runtime"),
)


def has_swift_sections(macho: MachOFile) -> bool:
    return any("__swift" in name for name in macho.section_names())


def has_go_build_id(macho: MachOFile) -> bool:
    """Check for Go build ID sections (e.g. __go_buildinfo, __GNU_GO_BUILDID)."""
    return any("_go_build" in name.lower() for name in macho.section_names())


def has_objc_sections(macho: MachOFile) -> bool:
    return any("__objc" in name for name in macho.section_names())


def get_macho_imports(macho: MachOFile) -> list[str]:
    """Linked dylib paths, or [] if they can't be read."""
    try:
        return macho.imported_libraries()
    except (ValueError, struct.error) as e:
        logger.debug("Could not enumerate Mach-O dylibs: %s", e)
        return []


def classify_library(lib: str) -> tuple[str, str] | None:
    """Map one dylib path to (language, evidence), or None."""
    for marker, language, label in LIBRARY_MARKERS:
        if marker in lib:
            return language, f"{label}: {lib}"
    return None


def select_fat_slice(
    fat: FatFile, host_machine: str | None = None
) -> FatSlice | None:
    """Pick the slice to analyze from a universal binary.

    Args:
        fat: Parsed universal binary
        host_machine: Canonical architecture to prefer; defaults to
            platform_utils.host_architecture()

    Returns:
        The last host slice, else the first slice, else None for an empty table
    """
    arches = fat.arches
    if not arches:
        return None
    if host_machine is None:
        host_machine = platform_utils.host_architecture()
    if host_machine is not None:
        match = fat.find_architecture(host_machine)
        if match is not None:
            return match
    return arches[0]


def analyze_macho_file(
    f: BinaryIO, evidence: LanguageEvidence, host_machine: str | None = None
) -> None:
    """Collect language evidence from a thin or universal Mach-O binary.

    Parse failures are recorded as evidence and end the analysis; they are
    never raised.

    Args:
        f: Seekable binary file object
        evidence: Collector to append hits to
        host_machine: Canonical architecture used to pick a universal slice;
            defaults to the host's
    """
    f.seek(0)
    try:
        magic = f.read(8)
    except OSError as e:
        evidence.add_note(f"Failed to read magic number: {e}")
        return
    f.seek(0)
    if len(magic) < 8:
        return

    (word,) = struct.unpack_from(">I", magic, 0)
    if word in FAT_MAGICS:
        try:
            fat = FatFile.from_file(f)
        except ContainerParseError as e:
            logger.debug("Fat Mach-O parsing failed: %s", e)
            evidence.add_note(f"Failed to analyse fat Mach-O file: {e}")
            return
        selected = select_fat_slice(fat, host_machine)
        if selected is None:
            logger.debug("Universal binary has no architectures")
            return
        logger.debug("Analyzing %s slice of universal binary", selected.architecture)
        macho = selected.image
    else:
        try:
            macho = MachOFile.from_file(f)
        except ContainerParseError as e:
            logger.debug("Mach-O parsing failed: %s", e)
            evidence.add_note(f"Failed to analyse Mach-O file: {e}")
            return

    if has_swift_sections(macho):
        evidence.add_languages("Swift", "Found Swift metadata")

    if has_go_build_id(macho):
        evidence.add_languages("Go", "Found Go build ID")

    if has_objc_sections(macho):
        evidence.add_languages("Objective-C", "Found Objective-C segments")

    for lib in get_macho_imports(macho):
        hit = classify_library(lib)
        if hit is not None:
            language, message = hit
            evidence.add_languages(language, message)
