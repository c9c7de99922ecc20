"""
Mach-O type definitions for thin (32/64-bit, either byte order) and
universal ("fat") binaries.

References:
- <mach-o/loader.h>, <mach-o/fat.h>, <mach/machine.h>
"""

import struct
from dataclasses import dataclass
from typing import ClassVar

# =============================================================================
# Constants
# =============================================================================

# Thin header magic, as read in the file's own byte order
MH_MAGIC = 0xFEEDFACE
MH_MAGIC_64 = 0xFEEDFACF

# Fat header magic (always big-endian). The second value is also accepted
# when classifying files.
FAT_MAGIC = 0xCAFEBABE
FAT_MAGIC_VARIANT = 0xCAAEBABE
FAT_MAGICS = (FAT_MAGIC, FAT_MAGIC_VARIANT)

# CPU types
CPU_ARCH_ABI64 = 0x01000000
CPU_ARCH_ABI64_32 = 0x02000000
CPU_TYPE_X86 = 7
CPU_TYPE_X86_64 = CPU_TYPE_X86 | CPU_ARCH_ABI64
CPU_TYPE_ARM = 12
CPU_TYPE_ARM64 = CPU_TYPE_ARM | CPU_ARCH_ABI64
CPU_TYPE_ARM64_32 = CPU_TYPE_ARM | CPU_ARCH_ABI64_32
CPU_TYPE_POWERPC = 18
CPU_TYPE_POWERPC64 = CPU_TYPE_POWERPC | CPU_ARCH_ABI64

# Canonical architecture names, shared with platform_utils.host_architecture()
CPU_TYPE_ARCHITECTURES: dict[int, str] = {
    CPU_TYPE_X86: "x86",
    CPU_TYPE_X86_64: "x86_64",
    CPU_TYPE_ARM: "arm",
    CPU_TYPE_ARM64: "arm64",
    CPU_TYPE_ARM64_32: "arm64_32",
    CPU_TYPE_POWERPC: "ppc",
    CPU_TYPE_POWERPC64: "ppc64",
}

# Load command types
LC_REQ_DYLD = 0x80000000
LC_SEGMENT = 0x1
LC_LOAD_DYLIB = 0xC
LC_LOAD_WEAK_DYLIB = 0x18 | LC_REQ_DYLD
LC_SEGMENT_64 = 0x19
LC_REEXPORT_DYLIB = 0x1F | LC_REQ_DYLD
LC_LAZY_LOAD_DYLIB = 0x20
LC_LOAD_UPWARD_DYLIB = 0x23 | LC_REQ_DYLD

# Load commands that name a library the image links against
DYLIB_LOAD_COMMANDS = frozenset(
    {
        LC_LOAD_DYLIB,
        LC_LOAD_WEAK_DYLIB,
        LC_REEXPORT_DYLIB,
        LC_LAZY_LOAD_DYLIB,
        LC_LOAD_UPWARD_DYLIB,
    }
)

# Structure sizes
MACH_HEADER_SIZE = 28
MACH_HEADER_64_SIZE = 32
LOAD_COMMAND_SIZE = 8
SEGMENT_COMMAND_SIZE = 56
SEGMENT_COMMAND_64_SIZE = 72
SECTION_SIZE = 68
SECTION_64_SIZE = 80
DYLIB_COMMAND_SIZE = 24
FAT_HEADER_SIZE = 8
FAT_ARCH_SIZE = 20


def cpu_type_name(cputype: int) -> str:
    """Readable name for a CPU type, e.g. "x86_64" or "cpu(0x1234)"."""
    return CPU_TYPE_ARCHITECTURES.get(cputype, f"cpu({cputype:#x})")


def fixed_name(raw: bytes) -> str:
    """Decode a 16-byte, NUL-padded segment or section name."""
    null_pos = raw.find(b"\x00")
    if null_pos >= 0:
        raw = raw[:null_pos]
    return raw.decode("ascii", errors="replace")


def detect_byte_order(data: bytes | bytearray) -> tuple[str, bool]:
    """Determine (struct byte order prefix, is_64bit) from a thin header.

    Raises:
        ValueError: If the magic is not a Mach-O thin magic
    """
    if len(data) < 4:
        raise ValueError(f"Data too short for Mach-O magic: {len(data)} < 4")
    for order in (">", "<"):
        (magic,) = struct.unpack_from(order + "I", data, 0)
        if magic in (MH_MAGIC, MH_MAGIC_64):
            return order, magic == MH_MAGIC_64
    raise ValueError(f"Invalid Mach-O magic: {bytes(data[:4]).hex()}")


# =============================================================================
# Mach-O Structures
# =============================================================================


@dataclass
class MachHeader:
    """Thin Mach-O header (mach_header / mach_header_64)."""

    magic: int
    cputype: int
    cpusubtype: int
    filetype: int
    ncmds: int  # Number of load commands
    sizeofcmds: int  # Total size of load commands
    flags: int

    STRUCT_FMT: ClassVar[str] = "IiiIIII"

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, byte_order: str
    ) -> "MachHeader":
        """Parse header from binary data in the given byte order."""
        if len(data) < MACH_HEADER_SIZE:
            raise ValueError(
                f"Data too short for Mach-O header: {len(data)} < {MACH_HEADER_SIZE}"
            )
        return cls(*struct.unpack_from(byte_order + cls.STRUCT_FMT, data, 0))

    def to_bytes(self, byte_order: str) -> bytes:
        """Serialize header (64-bit headers get their reserved word appended)."""
        packed = struct.pack(
            byte_order + self.STRUCT_FMT,
            self.magic,
            self.cputype,
            self.cpusubtype,
            self.filetype,
            self.ncmds,
            self.sizeofcmds,
            self.flags,
        )
        if self.is_64bit:
            packed += b"\x00" * 4
        return packed

    @property
    def is_64bit(self) -> bool:
        return self.magic == MH_MAGIC_64

    @property
    def size(self) -> int:
        """Header size, i.e. file offset of the first load command."""
        return MACH_HEADER_64_SIZE if self.is_64bit else MACH_HEADER_SIZE


@dataclass
class LoadCommand:
    """Generic load command prefix (load_command)."""

    cmd: int
    cmdsize: int

    STRUCT_FMT: ClassVar[str] = "II"

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int, byte_order: str
    ) -> "LoadCommand":
        if len(data) < offset + LOAD_COMMAND_SIZE:
            raise ValueError("Data too short for load command")
        return cls(*struct.unpack_from(byte_order + cls.STRUCT_FMT, data, offset))


@dataclass
class SegmentCommand:
    """Segment load command (segment_command / segment_command_64).

    Followed in the command body by nsects section records.
    """

    segname: str
    vmaddr: int
    vmsize: int
    fileoff: int
    filesize: int
    maxprot: int
    initprot: int
    nsects: int
    flags: int

    # After the cmd/cmdsize prefix
    STRUCT_FMT32: ClassVar[str] = "16sIIIIiiII"
    STRUCT_FMT64: ClassVar[str] = "16sQQQQiiII"

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int, byte_order: str, is_64bit: bool
    ) -> "SegmentCommand":
        """Parse a segment command whose cmd/cmdsize prefix starts at offset."""
        fmt = byte_order + (cls.STRUCT_FMT64 if is_64bit else cls.STRUCT_FMT32)
        if len(data) < offset + LOAD_COMMAND_SIZE + struct.calcsize(fmt):
            raise ValueError("Data too short for segment command")
        segname, *rest = struct.unpack_from(fmt, data, offset + LOAD_COMMAND_SIZE)
        return cls(fixed_name(segname), *rest)

    @staticmethod
    def header_size(is_64bit: bool) -> int:
        return SEGMENT_COMMAND_64_SIZE if is_64bit else SEGMENT_COMMAND_SIZE


@dataclass
class Section:
    """Section record within a segment command (section / section_64)."""

    sectname: str
    segname: str
    addr: int
    size: int
    offset: int
    align: int
    reloff: int
    nreloc: int
    flags: int

    STRUCT_FMT32: ClassVar[str] = "16s16sIIIIIIIII"
    STRUCT_FMT64: ClassVar[str] = "16s16sQQIIIIIIII"

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int, byte_order: str, is_64bit: bool
    ) -> "Section":
        """Parse a section record at offset."""
        fmt = byte_order + (cls.STRUCT_FMT64 if is_64bit else cls.STRUCT_FMT32)
        if len(data) < offset + struct.calcsize(fmt):
            raise ValueError("Data too short for section")
        sectname, segname, addr, size, off, align, reloff, nreloc, flags, *_ = (
            struct.unpack_from(fmt, data, offset)
        )
        return cls(
            fixed_name(sectname),
            fixed_name(segname),
            addr,
            size,
            off,
            align,
            reloff,
            nreloc,
            flags,
        )

    @staticmethod
    def record_size(is_64bit: bool) -> int:
        return SECTION_64_SIZE if is_64bit else SECTION_SIZE


@dataclass
class DylibCommand:
    """Dylib load command (dylib_command).

    The library path is stored inside the command at name_offset.
    """

    cmd: int
    name: str
    timestamp: int
    current_version: int
    compatibility_version: int

    STRUCT_FMT: ClassVar[str] = "IIIIII"

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int, byte_order: str
    ) -> "DylibCommand":
        """Parse a dylib command whose cmd/cmdsize prefix starts at offset."""
        if len(data) < offset + DYLIB_COMMAND_SIZE:
            raise ValueError("Data too short for dylib command")
        cmd, cmdsize, name_offset, timestamp, current, compat = struct.unpack_from(
            byte_order + cls.STRUCT_FMT, data, offset
        )
        if name_offset >= cmdsize:
            raise ValueError(
                f"Invalid name offset {name_offset} in dylib command of size {cmdsize}"
            )
        raw = bytes(data[offset + name_offset : offset + cmdsize])
        null_pos = raw.find(b"\x00")
        if null_pos >= 0:
            raw = raw[:null_pos]
        return cls(
            cmd, raw.decode("utf-8", errors="replace"), timestamp, current, compat
        )


@dataclass
class FatArch:
    """Architecture entry of a universal binary (fat_arch), always big-endian."""

    cputype: int
    cpusubtype: int
    offset: int  # File offset of the thin binary
    size: int
    align: int  # Power of 2

    STRUCT_FMT: ClassVar[str] = ">iiIII"
    SIZE: ClassVar[int] = FAT_ARCH_SIZE

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, offset: int) -> "FatArch":
        if len(data) < offset + cls.SIZE:
            raise ValueError(f"Data too short for fat_arch at offset {offset:#x}")
        return cls(*struct.unpack_from(cls.STRUCT_FMT, data, offset))

    def to_bytes(self) -> bytes:
        return struct.pack(
            self.STRUCT_FMT,
            self.cputype,
            self.cpusubtype,
            self.offset,
            self.size,
            self.align,
        )

    @property
    def architecture(self) -> str:
        """Canonical architecture name for this entry's CPU type."""
        return cpu_type_name(self.cputype)
