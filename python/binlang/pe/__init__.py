"""
PE/COFF support for binlang.

This package provides:
- types: PE/COFF struct definitions
- reader: PeFile, a read-only parser for sections and imports
- analyzer: language evidence from PE images
"""

from .reader import PeFile, SectionInfo, ImportedDll
from .analyzer import analyze_pe_file, classify_import, DOTNET_LANGUAGES
from .types import (
    DosHeader,
    CoffHeader,
    OptionalHeader,
    OptionalHeader32,
    OptionalHeader64,
    SectionHeader,
    DataDirectory,
    ImportDescriptor,
    # Constants
    DOS_MAGIC,
    PE_SIGNATURE,
    IMAGE_NT_OPTIONAL_HDR32_MAGIC,
    IMAGE_NT_OPTIONAL_HDR64_MAGIC,
    IMAGE_DIRECTORY_ENTRY_IMPORT,
    IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR,
    IMAGE_NUMBEROF_DIRECTORY_ENTRIES,
)

__all__ = [
    # Parser
    "PeFile",
    "SectionInfo",
    "ImportedDll",
    # Analysis
    "analyze_pe_file",
    "classify_import",
    "DOTNET_LANGUAGES",
    # Structs
    "DosHeader",
    "CoffHeader",
    "OptionalHeader",
    "OptionalHeader32",
    "OptionalHeader64",
    "SectionHeader",
    "DataDirectory",
    "ImportDescriptor",
    # Constants
    "DOS_MAGIC",
    "PE_SIGNATURE",
    "IMAGE_NT_OPTIONAL_HDR32_MAGIC",
    "IMAGE_NT_OPTIONAL_HDR64_MAGIC",
    "IMAGE_DIRECTORY_ENTRY_IMPORT",
    "IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR",
    "IMAGE_NUMBEROF_DIRECTORY_ENTRIES",
]
