"""
PE/COFF type definitions for 32-bit and 64-bit Windows binaries.

Only the structures needed to locate sections, data directories and the
import table are modelled here.

References:
- Microsoft PE/COFF Specification
- https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
"""

import struct
from dataclasses import dataclass
from typing import ClassVar

# =============================================================================
# Constants
# =============================================================================

# DOS Header
DOS_MAGIC = 0x5A4D  # "MZ" in little-endian

# PE Signature
PE_SIGNATURE = b"PE\x00\x00"

# Machine types
IMAGE_FILE_MACHINE_I386 = 0x14C
IMAGE_FILE_MACHINE_AMD64 = 0x8664

# Optional header magic
IMAGE_NT_OPTIONAL_HDR32_MAGIC = 0x10B
IMAGE_NT_OPTIONAL_HDR64_MAGIC = 0x20B  # PE32+

# Data directory indices
IMAGE_DIRECTORY_ENTRY_IMPORT = 1
IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR = 14  # CLR runtime header (.NET)
IMAGE_NUMBEROF_DIRECTORY_ENTRIES = 16

# Import lookup table ordinal flags
IMAGE_ORDINAL_FLAG32 = 0x80000000
IMAGE_ORDINAL_FLAG64 = 0x8000000000000000

# COFF symbol table record size (used to find the string table)
COFF_SYMBOL_SIZE = 18

# Structure sizes
DOS_HEADER_SIZE = 64
COFF_HEADER_SIZE = 20
DATA_DIRECTORY_SIZE = 8
SECTION_HEADER_SIZE = 40
IMPORT_DESCRIPTOR_SIZE = 20


# =============================================================================
# PE/COFF Structures
# =============================================================================


@dataclass
class DosHeader:
    """DOS MZ header (IMAGE_DOS_HEADER).

    Only e_magic and e_lfanew matter; the rest is DOS stub bookkeeping.
    """

    e_magic: int  # "MZ" = 0x5A4D
    e_lfanew: int  # Offset to PE signature

    SIZE: ClassVar[int] = DOS_HEADER_SIZE
    LFANEW_OFFSET: ClassVar[int] = 0x3C

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, offset: int = 0) -> "DosHeader":
        """Parse DOS header from binary data."""
        if len(data) < offset + cls.SIZE:
            raise ValueError(
                f"Data too short for DOS header: {len(data)} < {offset + cls.SIZE}"
            )

        (e_magic,) = struct.unpack_from("<H", data, offset)
        if e_magic != DOS_MAGIC:
            raise ValueError(f"Not a DOS/PE file (bad magic: 0x{e_magic:04X})")

        (e_lfanew,) = struct.unpack_from("<I", data, offset + cls.LFANEW_OFFSET)
        return cls(e_magic, e_lfanew)

    def to_bytes(self) -> bytes:
        """Serialize DOS header (stub fields zeroed)."""
        data = bytearray(self.SIZE)
        struct.pack_into("<H", data, 0, self.e_magic)
        struct.pack_into("<I", data, self.LFANEW_OFFSET, self.e_lfanew)
        return bytes(data)


@dataclass
class CoffHeader:
    """COFF file header (IMAGE_FILE_HEADER).

    This 20-byte header comes right after the PE signature.
    """

    Machine: int
    NumberOfSections: int
    TimeDateStamp: int
    PointerToSymbolTable: int  # Usually 0 for images; MinGW keeps it
    NumberOfSymbols: int
    SizeOfOptionalHeader: int
    Characteristics: int

    STRUCT_FMT: ClassVar[str] = "<HHIIIHH"
    SIZE: ClassVar[int] = COFF_HEADER_SIZE

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, offset: int = 0) -> "CoffHeader":
        """Parse COFF header from binary data."""
        if len(data) < offset + cls.SIZE:
            raise ValueError(
                f"Data too short for COFF header: {len(data)} < {offset + cls.SIZE}"
            )

        fields = struct.unpack_from(cls.STRUCT_FMT, data, offset)
        return cls(*fields)

    def to_bytes(self) -> bytes:
        """Serialize COFF header to binary data."""
        return struct.pack(
            self.STRUCT_FMT,
            self.Machine,
            self.NumberOfSections,
            self.TimeDateStamp,
            self.PointerToSymbolTable,
            self.NumberOfSymbols,
            self.SizeOfOptionalHeader,
            self.Characteristics,
        )

    @property
    def string_table_offset(self) -> int | None:
        """File offset of the COFF string table, if a symbol table exists."""
        if self.PointerToSymbolTable == 0:
            return None
        return self.PointerToSymbolTable + self.NumberOfSymbols * COFF_SYMBOL_SIZE


@dataclass
class DataDirectory:
    """Data directory entry (IMAGE_DATA_DIRECTORY)."""

    VirtualAddress: int  # RVA of the data
    Size: int

    STRUCT_FMT: ClassVar[str] = "<II"
    SIZE: ClassVar[int] = DATA_DIRECTORY_SIZE

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, offset: int = 0) -> "DataDirectory":
        """Parse data directory from binary data."""
        if len(data) < offset + cls.SIZE:
            raise ValueError("Data too short for data directory")
        fields = struct.unpack_from(cls.STRUCT_FMT, data, offset)
        return cls(*fields)

    def to_bytes(self) -> bytes:
        """Serialize data directory to binary data."""
        return struct.pack(self.STRUCT_FMT, self.VirtualAddress, self.Size)


@dataclass
class OptionalHeader:
    """Fields shared by the PE32 and PE32+ optional headers.

    The layouts differ in ImageBase/stack/heap widths and in PE32's extra
    BaseOfData field, so each variant has its own struct format. Only the
    fields the analyzers need are kept; data directories are parsed
    separately.
    """

    Magic: int
    AddressOfEntryPoint: int
    ImageBase: int
    NumberOfRvaAndSizes: int

    # Offsets within the header (identical for both variants)
    ENTRY_POINT_OFFSET: ClassVar[int] = 16

    # Variant-specific layout, overridden below
    IMAGE_BASE_FMT: ClassVar[str] = "<I"
    IMAGE_BASE_OFFSET: ClassVar[int] = 28
    NUMBER_OF_RVA_OFFSET: ClassVar[int] = 92
    MAGIC: ClassVar[int] = IMAGE_NT_OPTIONAL_HDR32_MAGIC
    SIZE: ClassVar[int] = 96  # Fixed part, before data directories

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, offset: int = 0) -> "OptionalHeader":
        """Parse the fixed part of an optional header."""
        if len(data) < offset + cls.SIZE:
            raise ValueError(
                f"Data too short for optional header: {len(data)} < {offset + cls.SIZE}"
            )

        (magic,) = struct.unpack_from("<H", data, offset)
        if magic != cls.MAGIC:
            raise ValueError(
                f"Unexpected optional header magic 0x{magic:04X} "
                f"(expected 0x{cls.MAGIC:04X})"
            )

        (entry,) = struct.unpack_from("<I", data, offset + cls.ENTRY_POINT_OFFSET)
        (image_base,) = struct.unpack_from(
            cls.IMAGE_BASE_FMT, data, offset + cls.IMAGE_BASE_OFFSET
        )
        (num_rva,) = struct.unpack_from("<I", data, offset + cls.NUMBER_OF_RVA_OFFSET)
        return cls(magic, entry, image_base, num_rva)

    def to_bytes(self) -> bytes:
        """Serialize the fixed part (fields not modelled are zeroed)."""
        data = bytearray(self.SIZE)
        struct.pack_into("<H", data, 0, self.Magic)
        struct.pack_into("<I", data, self.ENTRY_POINT_OFFSET, self.AddressOfEntryPoint)
        struct.pack_into(
            self.IMAGE_BASE_FMT, data, self.IMAGE_BASE_OFFSET, self.ImageBase
        )
        struct.pack_into(
            "<I", data, self.NUMBER_OF_RVA_OFFSET, self.NumberOfRvaAndSizes
        )
        return bytes(data)

    @property
    def is_pe32_plus(self) -> bool:
        return self.Magic == IMAGE_NT_OPTIONAL_HDR64_MAGIC


@dataclass
class OptionalHeader32(OptionalHeader):
    """PE32 optional header (IMAGE_OPTIONAL_HEADER32)."""

    pass


@dataclass
class OptionalHeader64(OptionalHeader):
    """PE32+ optional header (IMAGE_OPTIONAL_HEADER64)."""

    IMAGE_BASE_FMT: ClassVar[str] = "<Q"
    IMAGE_BASE_OFFSET: ClassVar[int] = 24
    NUMBER_OF_RVA_OFFSET: ClassVar[int] = 108
    MAGIC: ClassVar[int] = IMAGE_NT_OPTIONAL_HDR64_MAGIC
    SIZE: ClassVar[int] = 112


OPTIONAL_HEADER_CLASSES: dict[int, type[OptionalHeader]] = {
    IMAGE_NT_OPTIONAL_HDR32_MAGIC: OptionalHeader32,
    IMAGE_NT_OPTIONAL_HDR64_MAGIC: OptionalHeader64,
}


@dataclass
class SectionHeader:
    """PE/COFF section header (IMAGE_SECTION_HEADER).

    Each section header is 40 bytes.
    """

    Name: bytes  # 8 bytes, null-padded (NOT null-terminated if 8 chars)
    VirtualSize: int
    VirtualAddress: int  # RVA of section
    SizeOfRawData: int  # Size in file
    PointerToRawData: int  # File offset
    PointerToRelocations: int
    PointerToLinenumbers: int
    NumberOfRelocations: int
    NumberOfLinenumbers: int
    Characteristics: int

    STRUCT_FMT: ClassVar[str] = "<8sIIIIIIHHI"
    SIZE: ClassVar[int] = SECTION_HEADER_SIZE

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, offset: int = 0) -> "SectionHeader":
        """Parse section header from binary data."""
        if len(data) < offset + cls.SIZE:
            raise ValueError(
                f"Data too short for section header: {len(data)} < {offset + cls.SIZE}"
            )

        fields = struct.unpack_from(cls.STRUCT_FMT, data, offset)
        return cls(*fields)

    def to_bytes(self) -> bytes:
        """Serialize section header to binary data."""
        return struct.pack(
            self.STRUCT_FMT,
            self.Name,
            self.VirtualSize,
            self.VirtualAddress,
            self.SizeOfRawData,
            self.PointerToRawData,
            self.PointerToRelocations,
            self.PointerToLinenumbers,
            self.NumberOfRelocations,
            self.NumberOfLinenumbers,
            self.Characteristics,
        )

    @property
    def name_str(self) -> str:
        """Get section name as string (strips null padding)."""
        null_pos = self.Name.find(b"\x00")
        if null_pos >= 0:
            return self.Name[:null_pos].decode("ascii", errors="replace")
        return self.Name.decode("ascii", errors="replace")

    @property
    def end_rva(self) -> int:
        """RVA of end of section in memory."""
        # Some linkers leave VirtualSize at 0 and only fill SizeOfRawData
        size = self.VirtualSize or self.SizeOfRawData
        return self.VirtualAddress + size

    def contains_rva(self, rva: int) -> bool:
        """Check if an RVA falls within this section."""
        return self.VirtualAddress <= rva < self.end_rva


@dataclass
class ImportDescriptor:
    """Import directory entry (IMAGE_IMPORT_DESCRIPTOR).

    One descriptor per imported DLL; the table ends with an all-zero entry.
    """

    OriginalFirstThunk: int  # RVA of the import lookup table
    TimeDateStamp: int
    ForwarderChain: int
    Name: int  # RVA of the DLL name
    FirstThunk: int  # RVA of the import address table

    STRUCT_FMT: ClassVar[str] = "<IIIII"
    SIZE: ClassVar[int] = IMPORT_DESCRIPTOR_SIZE

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int = 0
    ) -> "ImportDescriptor":
        """Parse import descriptor from binary data."""
        if len(data) < offset + cls.SIZE:
            raise ValueError("Data too short for import descriptor")
        fields = struct.unpack_from(cls.STRUCT_FMT, data, offset)
        return cls(*fields)

    def to_bytes(self) -> bytes:
        """Serialize import descriptor to binary data."""
        return struct.pack(
            self.STRUCT_FMT,
            self.OriginalFirstThunk,
            self.TimeDateStamp,
            self.ForwarderChain,
            self.Name,
            self.FirstThunk,
        )

    @property
    def is_terminator(self) -> bool:
        """Check if this is the all-zero entry that ends the table."""
        return self.OriginalFirstThunk == 0 and self.Name == 0 and self.FirstThunk == 0

    @property
    def lookup_table_rva(self) -> int:
        """RVA of the thunk array to read names from.

        Some linkers leave OriginalFirstThunk empty; the import address
        table holds the same entries on disk.
        """
        return self.OriginalFirstThunk or self.FirstThunk
