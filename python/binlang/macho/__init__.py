"""
Mach-O support for binlang.

This package provides:
- types: Mach-O and fat struct definitions
- reader: MachOFile (thin images) and FatFile (universal binaries)
- analyzer: language evidence from Mach-O binaries
"""

from .reader import MachOFile, FatFile, FatSlice
from .analyzer import analyze_macho_file, classify_library, select_fat_slice
from .types import (
    MachHeader,
    SegmentCommand,
    Section,
    DylibCommand,
    FatArch,
    cpu_type_name,
    CPU_TYPE_ARCHITECTURES,
    # Magics
    MH_MAGIC,
    MH_MAGIC_64,
    FAT_MAGIC,
    FAT_MAGIC_VARIANT,
    # CPU types
    CPU_TYPE_X86,
    CPU_TYPE_X86_64,
    CPU_TYPE_ARM,
    CPU_TYPE_ARM64,
    CPU_TYPE_POWERPC,
    CPU_TYPE_POWERPC64,
    # Load commands
    LC_SEGMENT,
    LC_SEGMENT_64,
    LC_LOAD_DYLIB,
    LC_LOAD_WEAK_DYLIB,
    LC_REEXPORT_DYLIB,
    LC_LAZY_LOAD_DYLIB,
    LC_LOAD_UPWARD_DYLIB,
)

__all__ = [
    # Parsers
    "MachOFile",
    "FatFile",
    "FatSlice",
    # Analysis
    "analyze_macho_file",
    "classify_library",
    "select_fat_slice",
    # Structs
    "MachHeader",
    "SegmentCommand",
    "Section",
    "DylibCommand",
    "FatArch",
    "cpu_type_name",
    "CPU_TYPE_ARCHITECTURES",
    # Magics
    "MH_MAGIC",
    "MH_MAGIC_64",
    "FAT_MAGIC",
    "FAT_MAGIC_VARIANT",
    # CPU types
    "CPU_TYPE_X86",
    "CPU_TYPE_X86_64",
    "CPU_TYPE_ARM",
    "CPU_TYPE_ARM64",
    "CPU_TYPE_POWERPC",
    "CPU_TYPE_POWERPC64",
    # Load commands
    "LC_SEGMENT",
    "LC_SEGMENT_64",
    "LC_LOAD_DYLIB",
    "LC_LOAD_WEAK_DYLIB",
    "LC_REEXPORT_DYLIB",
    "LC_LAZY_LOAD_DYLIB",
    "LC_LOAD_UPWARD_DYLIB",
]
