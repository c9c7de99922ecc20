"""
Read-only Mach-O parsers.

MachOFile decodes a thin image (32/64-bit, either byte order) and exposes
its segments, sections and linked dylibs. FatFile decodes the architecture
table of a universal binary and parses every embedded slice as a MachOFile.
"""

import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from ..container import BinaryContainer, ContainerParseError
from ..format_detect import ContainerFormat
from .types import (
    MachHeader,
    LoadCommand,
    SegmentCommand,
    Section,
    DylibCommand,
    FatArch,
    detect_byte_order,
    cpu_type_name,
    DYLIB_LOAD_COMMANDS,
    FAT_MAGICS,
    FAT_HEADER_SIZE,
    LC_SEGMENT,
    LC_SEGMENT_64,
    LOAD_COMMAND_SIZE,
)


class MachOFile(BinaryContainer):
    """Parsed thin Mach-O image.

    Usage:
        macho = MachOFile.from_bytes(Path("a.out").read_bytes())

        for name in macho.section_names():
            print(name)
        for lib in macho.imported_libraries():
            print(lib)
    """

    container_format = ContainerFormat.MACHO

    # Reasonable limits to prevent DoS from malformed files
    MAX_NUMBER_OF_COMMANDS = 0x10000

    def __init__(self, data: bytes):
        """Parse header and load commands.

        Prefer MachOFile.from_bytes() or MachOFile.from_file().

        Raises:
            ContainerParseError: If the Mach-O structures are invalid
        """
        self._data = data
        try:
            self._byte_order, _ = detect_byte_order(data)
            self._header = MachHeader.from_bytes(data, self._byte_order)
            self._segments: list[SegmentCommand] = []
            self._sections: list[Section] = []
            self._dylibs: list[DylibCommand] = []
            self._parse_load_commands()
        except ContainerParseError:
            raise
        except (ValueError, struct.error) as e:
            raise ContainerParseError(str(e)) from e

    @classmethod
    def from_bytes(cls, data: bytes | memoryview) -> "MachOFile":
        """Parse a thin Mach-O image from binary data."""
        return cls(data)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def header(self) -> MachHeader:
        return self._header

    @property
    def byte_order(self) -> str:
        """struct byte order prefix ("<" or ">")."""
        return self._byte_order

    @property
    def is_64bit(self) -> bool:
        return self._header.is_64bit

    @property
    def architecture(self) -> str:
        return cpu_type_name(self._header.cputype)

    # =========================================================================
    # Parsing (internal)
    # =========================================================================

    def _parse_load_commands(self) -> None:
        hdr = self._header
        start = hdr.size
        end = start + hdr.sizeofcmds

        if hdr.ncmds > self.MAX_NUMBER_OF_COMMANDS:
            raise ContainerParseError(
                f"Load command count ({hdr.ncmds}) exceeds maximum "
                f"({self.MAX_NUMBER_OF_COMMANDS})"
            )
        if end > len(self._data):
            raise ContainerParseError(
                f"Load commands extend past end of file "
                f"({end:#x} > {len(self._data):#x})"
            )

        offset = start
        for index in range(hdr.ncmds):
            if offset + LOAD_COMMAND_SIZE > end:
                raise ContainerParseError(
                    f"Load command {index} at offset {offset:#x} is truncated"
                )
            lc = LoadCommand.from_bytes(self._data, offset, self._byte_order)
            if lc.cmdsize < LOAD_COMMAND_SIZE or offset + lc.cmdsize > end:
                raise ContainerParseError(
                    f"Load command {index}: invalid command block size {lc.cmdsize}"
                )

            if lc.cmd in (LC_SEGMENT, LC_SEGMENT_64):
                self._parse_segment(offset, lc, is_64bit=lc.cmd == LC_SEGMENT_64)
            elif lc.cmd in DYLIB_LOAD_COMMANDS:
                self._dylibs.append(
                    DylibCommand.from_bytes(
                        self._data[: offset + lc.cmdsize], offset, self._byte_order
                    )
                )

            offset += lc.cmdsize

    def _parse_segment(self, offset: int, lc: LoadCommand, is_64bit: bool) -> None:
        segment = SegmentCommand.from_bytes(
            self._data, offset, self._byte_order, is_64bit
        )
        record_size = Section.record_size(is_64bit)
        header_size = SegmentCommand.header_size(is_64bit)
        if header_size + segment.nsects * record_size > lc.cmdsize:
            raise ContainerParseError(
                f"Segment {segment.segname}: {segment.nsects} sections do not fit "
                f"in command of size {lc.cmdsize}"
            )

        self._segments.append(segment)
        sect_offset = offset + header_size
        for _ in range(segment.nsects):
            self._sections.append(
                Section.from_bytes(
                    self._data, sect_offset, self._byte_order, is_64bit
                )
            )
            sect_offset += record_size

    # =========================================================================
    # Query Operations
    # =========================================================================

    def iter_segments(self) -> Iterator[SegmentCommand]:
        yield from self._segments

    def iter_sections(self) -> Iterator[Section]:
        yield from self._sections

    def segment_names(self) -> list[str]:
        return [s.segname for s in self._segments]

    def section_names(self) -> list[str]:
        return [s.sectname for s in self._sections]

    def imported_libraries(self) -> list[str]:
        """Paths of linked dylibs, in load command order."""
        return [d.name for d in self._dylibs]


@dataclass
class FatSlice:
    """One architecture of a universal binary with its parsed image."""

    arch: FatArch
    image: MachOFile

    @property
    def architecture(self) -> str:
        return self.arch.architecture


class FatFile:
    """Parsed universal ("fat") Mach-O binary.

    Every slice is parsed when the table is read, so a malformed slice makes
    the whole file invalid.

    Usage:
        fat = FatFile.from_bytes(Path("app").read_bytes())
        for slc in fat.arches:
            print(slc.architecture, slc.image.section_names())
    """

    container_format = ContainerFormat.MACHO_UNIVERSAL

    # Reasonable limits to prevent DoS from malformed files
    MAX_NUMBER_OF_ARCHES = 64

    def __init__(self, data: bytes):
        """Parse the architecture table and every slice.

        Raises:
            ContainerParseError: If the table or any slice is invalid
        """
        self._data = data
        try:
            self._magic, self._arches = self._parse(data)
        except ContainerParseError:
            raise
        except (ValueError, struct.error) as e:
            raise ContainerParseError(str(e)) from e

    @classmethod
    def from_bytes(cls, data: bytes) -> "FatFile":
        return cls(data)

    @classmethod
    def from_file(cls, f: BinaryIO) -> "FatFile":
        """Parse a universal binary from a seekable file object."""
        f.seek(0)
        return cls.from_bytes(f.read())

    def _parse(self, data: bytes) -> tuple[int, list[FatSlice]]:
        if len(data) < FAT_HEADER_SIZE:
            raise ContainerParseError(
                f"Data too short for fat header: {len(data)} < {FAT_HEADER_SIZE}"
            )
        magic, nfat_arch = struct.unpack_from(">II", data, 0)
        if magic not in FAT_MAGICS:
            raise ContainerParseError(f"Invalid fat magic: {magic:#x}")
        if nfat_arch > self.MAX_NUMBER_OF_ARCHES:
            raise ContainerParseError(
                f"Architecture count ({nfat_arch}) exceeds maximum "
                f"({self.MAX_NUMBER_OF_ARCHES})"
            )

        # Slices share the file buffer instead of copying it
        view = memoryview(data)
        seen: set[tuple[int, int]] = set()
        arches = []
        for index in range(nfat_arch):
            arch = FatArch.from_bytes(data, FAT_HEADER_SIZE + index * FatArch.SIZE)

            key = (arch.cputype, arch.cpusubtype)
            if key in seen:
                raise ContainerParseError(
                    f"Duplicate architecture {arch.architecture} "
                    f"(subtype {arch.cpusubtype:#x})"
                )
            seen.add(key)

            end = arch.offset + arch.size
            if end > len(data):
                raise ContainerParseError(
                    f"Architecture {arch.architecture} extends past end of file "
                    f"({end:#x} > {len(data):#x})"
                )

            image = MachOFile.from_bytes(view[arch.offset : end])
            if image.header.cputype != arch.cputype:
                raise ContainerParseError(
                    f"Architecture {arch.architecture} slice has CPU type "
                    f"{image.architecture}"
                )
            arches.append(FatSlice(arch=arch, image=image))

        return magic, arches

    @property
    def magic(self) -> int:
        return self._magic

    @property
    def arches(self) -> list[FatSlice]:
        """Slices in table order."""
        return list(self._arches)

    def find_architecture(self, architecture: str) -> FatSlice | None:
        """Last slice whose canonical architecture name matches.

        Slices sharing a CPU type (arm64 and arm64e) differ only in subtype;
        the later table entry wins.
        """
        for slc in reversed(self._arches):
            if slc.architecture == architecture:
                return slc
        return None
