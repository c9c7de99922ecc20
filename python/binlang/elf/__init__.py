"""
ELF support for binlang.

This package provides:
- types: ELF struct definitions for both classes and byte orders
- reader: ElfFile, a read-only parser for sections, symbols and dependencies
- analyzer: language evidence from ELF binaries
"""

from .reader import ElfFile, SectionInfo
from .analyzer import analyze_elf_file, classify_library, GO_BUILDINFO_SECTION
from .types import (
    ElfIdent,
    ElfHeader,
    SectionHeader,
    Symbol,
    DynamicEntry,
    # Constants
    ELF_MAGIC,
    ELFCLASS32,
    ELFCLASS64,
    ELFDATA2LSB,
    ELFDATA2MSB,
    EV_CURRENT,
    # Section header types
    SHT_NULL,
    SHT_PROGBITS,
    SHT_SYMTAB,
    SHT_STRTAB,
    SHT_DYNAMIC,
    SHT_NOBITS,
    SHT_DYNSYM,
    # Dynamic section tags
    DT_NULL,
    DT_NEEDED,
)

__all__ = [
    # Parser
    "ElfFile",
    "SectionInfo",
    # Analysis
    "analyze_elf_file",
    "classify_library",
    "GO_BUILDINFO_SECTION",
    # Structs
    "ElfIdent",
    "ElfHeader",
    "SectionHeader",
    "Symbol",
    "DynamicEntry",
    # Constants
    "ELF_MAGIC",
    "ELFCLASS32",
    "ELFCLASS64",
    "ELFDATA2LSB",
    "ELFDATA2MSB",
    "EV_CURRENT",
    # Section header types
    "SHT_NULL",
    "SHT_PROGBITS",
    "SHT_SYMTAB",
    "SHT_STRTAB",
    "SHT_DYNAMIC",
    "SHT_NOBITS",
    "SHT_DYNSYM",
    # Dynamic section tags
    "DT_NULL",
    "DT_NEEDED",
]
