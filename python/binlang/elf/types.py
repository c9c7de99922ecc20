"""
ELF type definitions for 32-bit and 64-bit ELF in either byte order.

Each struct keeps one format string per ELF class. The byte order prefix
("<" or ">") comes from the identification bytes and is passed in by the
reader, so the same classes decode x86-64, ARM and big-endian MIPS/PPC
binaries alike.
"""

import struct
from dataclasses import dataclass
from typing import ClassVar

# =============================================================================
# Constants
# =============================================================================

ELF_MAGIC = b"\x7fELF"

# e_ident layout
EI_NIDENT = 16
EI_CLASS = 4
EI_DATA = 5
EI_VERSION = 6
EI_OSABI = 7

# ELF class (e_ident[EI_CLASS])
ELFCLASS32 = 1
ELFCLASS64 = 2

# Data encoding (e_ident[EI_DATA])
ELFDATA2LSB = 1
ELFDATA2MSB = 2

EV_CURRENT = 1

# Special section indices
SHN_UNDEF = 0
SHN_XINDEX = 0xFFFF

# Section header types (sh_type)
SHT_NULL = 0
SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_DYNAMIC = 6
SHT_NOBITS = 8
SHT_DYNSYM = 11

# Dynamic section tags (d_tag)
DT_NULL = 0
DT_NEEDED = 1

_BYTE_ORDERS = {ELFDATA2LSB: "<", ELFDATA2MSB: ">"}


# =============================================================================
# ELF Structures
# =============================================================================


@dataclass
class ElfIdent:
    """The e_ident identification bytes."""

    ei_class: int  # ELFCLASS32 / ELFCLASS64
    ei_data: int  # ELFDATA2LSB / ELFDATA2MSB
    ei_version: int
    ei_osabi: int

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "ElfIdent":
        """Parse and validate identification bytes.

        Raises:
            ValueError: On bad magic, class, data encoding or version
        """
        if len(data) < EI_NIDENT:
            raise ValueError(
                f"Data too short for ELF identification: {len(data)} < {EI_NIDENT}"
            )
        if data[:4] != ELF_MAGIC:
            raise ValueError("Not an ELF file (bad magic)")

        ident = cls(
            ei_class=data[EI_CLASS],
            ei_data=data[EI_DATA],
            ei_version=data[EI_VERSION],
            ei_osabi=data[EI_OSABI],
        )
        if ident.ei_class not in (ELFCLASS32, ELFCLASS64):
            raise ValueError(f"Unknown ELF class: {ident.ei_class}")
        if ident.ei_data not in _BYTE_ORDERS:
            raise ValueError(f"Unknown ELF data encoding: {ident.ei_data}")
        if ident.ei_version != EV_CURRENT:
            raise ValueError(f"Unknown ELF version: {ident.ei_version}")
        return ident

    @property
    def is_64bit(self) -> bool:
        return self.ei_class == ELFCLASS64

    @property
    def byte_order(self) -> str:
        """struct byte order prefix for this file."""
        return _BYTE_ORDERS[self.ei_data]


@dataclass
class ElfHeader:
    """ELF file header (Elf32_Ehdr / Elf64_Ehdr)."""

    e_ident: bytes
    e_type: int  # Object file type (ET_*)
    e_machine: int  # Architecture (EM_*)
    e_version: int
    e_entry: int
    e_phoff: int
    e_shoff: int  # Section header table file offset
    e_flags: int
    e_ehsize: int
    e_phentsize: int
    e_phnum: int
    e_shentsize: int  # Section header entry size
    e_shnum: int  # Number of section headers (0 if extended)
    e_shstrndx: int  # Section name string table index

    STRUCT_FMT32: ClassVar[str] = "16sHHIIIIIHHHHHH"
    STRUCT_FMT64: ClassVar[str] = "16sHHIQQQIHHHHHH"

    @classmethod
    def struct_fmt(cls, ident: ElfIdent) -> str:
        body = cls.STRUCT_FMT64 if ident.is_64bit else cls.STRUCT_FMT32
        return ident.byte_order + body

    @classmethod
    def size(cls, ident: ElfIdent) -> int:
        return struct.calcsize(cls.struct_fmt(ident))

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, ident: ElfIdent) -> "ElfHeader":
        """Parse ELF header from binary data."""
        fmt = cls.struct_fmt(ident)
        if len(data) < struct.calcsize(fmt):
            raise ValueError(
                f"Data too short for ELF header: {len(data)} < {struct.calcsize(fmt)}"
            )
        return cls(*struct.unpack_from(fmt, data, 0))

    def to_bytes(self, ident: ElfIdent) -> bytes:
        """Serialize ELF header to binary data."""
        return struct.pack(
            self.struct_fmt(ident),
            self.e_ident,
            self.e_type,
            self.e_machine,
            self.e_version,
            self.e_entry,
            self.e_phoff,
            self.e_shoff,
            self.e_flags,
            self.e_ehsize,
            self.e_phentsize,
            self.e_phnum,
            self.e_shentsize,
            self.e_shnum,
            self.e_shstrndx,
        )


@dataclass
class SectionHeader:
    """ELF section header (Elf32_Shdr / Elf64_Shdr).

    Field order is the same for both classes; only widths differ.
    """

    sh_name: int  # Offset into section name string table
    sh_type: int  # Section type (SHT_*)
    sh_flags: int
    sh_addr: int
    sh_offset: int  # File offset
    sh_size: int
    sh_link: int  # Link to another section (section-type dependent)
    sh_info: int
    sh_addralign: int
    sh_entsize: int  # Entry size if section holds table

    STRUCT_FMT32: ClassVar[str] = "IIIIIIIIII"
    STRUCT_FMT64: ClassVar[str] = "IIQQQQIIQQ"

    @classmethod
    def struct_fmt(cls, ident: ElfIdent) -> str:
        body = cls.STRUCT_FMT64 if ident.is_64bit else cls.STRUCT_FMT32
        return ident.byte_order + body

    @classmethod
    def size(cls, ident: ElfIdent) -> int:
        return struct.calcsize(cls.struct_fmt(ident))

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int, ident: ElfIdent
    ) -> "SectionHeader":
        """Parse section header from binary data at offset."""
        fmt = cls.struct_fmt(ident)
        if len(data) < offset + struct.calcsize(fmt):
            raise ValueError("Data too short for section header")
        return cls(*struct.unpack_from(fmt, data, offset))

    def to_bytes(self, ident: ElfIdent) -> bytes:
        """Serialize section header to binary data."""
        return struct.pack(
            self.struct_fmt(ident),
            self.sh_name,
            self.sh_type,
            self.sh_flags,
            self.sh_addr,
            self.sh_offset,
            self.sh_size,
            self.sh_link,
            self.sh_info,
            self.sh_addralign,
            self.sh_entsize,
        )

    @property
    def end_offset(self) -> int:
        """File offset of end of section content."""
        return self.sh_offset + self.sh_size

    @property
    def is_nobits(self) -> bool:
        """Check if this section has no file content (like BSS)."""
        return self.sh_type == SHT_NOBITS


@dataclass
class Symbol:
    """ELF symbol table entry (Elf32_Sym / Elf64_Sym).

    The two classes order their fields differently, so parsing goes through
    per-class field maps.
    """

    st_name: int
    st_value: int
    st_size: int
    st_info: int
    st_other: int
    st_shndx: int

    STRUCT_FMT32: ClassVar[str] = "IIIBBH"  # name, value, size, info, other, shndx
    STRUCT_FMT64: ClassVar[str] = "IBBHQQ"  # name, info, other, shndx, value, size

    @classmethod
    def struct_fmt(cls, ident: ElfIdent) -> str:
        body = cls.STRUCT_FMT64 if ident.is_64bit else cls.STRUCT_FMT32
        return ident.byte_order + body

    @classmethod
    def size(cls, ident: ElfIdent) -> int:
        return struct.calcsize(cls.struct_fmt(ident))

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int, ident: ElfIdent
    ) -> "Symbol":
        """Parse symbol from binary data at offset."""
        fmt = cls.struct_fmt(ident)
        if len(data) < offset + struct.calcsize(fmt):
            raise ValueError("Data too short for symbol")
        fields = struct.unpack_from(fmt, data, offset)
        if ident.is_64bit:
            name, info, other, shndx, value, size = fields
        else:
            name, value, size, info, other, shndx = fields
        return cls(name, value, size, info, other, shndx)

    def to_bytes(self, ident: ElfIdent) -> bytes:
        """Serialize symbol to binary data."""
        if ident.is_64bit:
            fields = (
                self.st_name,
                self.st_info,
                self.st_other,
                self.st_shndx,
                self.st_value,
                self.st_size,
            )
        else:
            fields = (
                self.st_name,
                self.st_value,
                self.st_size,
                self.st_info,
                self.st_other,
                self.st_shndx,
            )
        return struct.pack(self.struct_fmt(ident), *fields)


@dataclass
class DynamicEntry:
    """ELF dynamic section entry (Elf32_Dyn / Elf64_Dyn)."""

    d_tag: int  # Signed
    d_val: int

    STRUCT_FMT32: ClassVar[str] = "iI"
    STRUCT_FMT64: ClassVar[str] = "qQ"

    @classmethod
    def struct_fmt(cls, ident: ElfIdent) -> str:
        body = cls.STRUCT_FMT64 if ident.is_64bit else cls.STRUCT_FMT32
        return ident.byte_order + body

    @classmethod
    def size(cls, ident: ElfIdent) -> int:
        return struct.calcsize(cls.struct_fmt(ident))

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int, ident: ElfIdent
    ) -> "DynamicEntry":
        """Parse dynamic entry from binary data at offset."""
        fmt = cls.struct_fmt(ident)
        if len(data) < offset + struct.calcsize(fmt):
            raise ValueError("Data too short for dynamic entry")
        return cls(*struct.unpack_from(fmt, data, offset))

    def to_bytes(self, ident: ElfIdent) -> bytes:
        """Serialize dynamic entry to binary data."""
        return struct.pack(self.struct_fmt(ident), self.d_tag, self.d_val)
