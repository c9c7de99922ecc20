"""
Read-only PE/COFF parser.

PeFile parses the headers, section table and data directories of a
Windows image once, then answers queries about sections and imports.
"""

import struct
from dataclasses import dataclass
from typing import Iterator

from ..container import BinaryContainer, ContainerParseError, read_cstring
from ..format_detect import ContainerFormat
from .types import (
    DosHeader,
    CoffHeader,
    OptionalHeader,
    SectionHeader,
    DataDirectory,
    ImportDescriptor,
    OPTIONAL_HEADER_CLASSES,
    PE_SIGNATURE,
    COFF_HEADER_SIZE,
    SECTION_HEADER_SIZE,
    DATA_DIRECTORY_SIZE,
    IMAGE_DIRECTORY_ENTRY_IMPORT,
    IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR,
    IMAGE_NUMBEROF_DIRECTORY_ENTRIES,
    IMAGE_ORDINAL_FLAG32,
    IMAGE_ORDINAL_FLAG64,
)


@dataclass
class SectionInfo:
    """Information about a section, combining header with derived data."""

    index: int
    name: str  # Long names already resolved from the string table
    header: SectionHeader

    @property
    def rva(self) -> int:
        """Relative virtual address."""
        return self.header.VirtualAddress

    @property
    def file_offset(self) -> int:
        """File offset of raw data."""
        return self.header.PointerToRawData

    @property
    def raw_size(self) -> int:
        """Size in file."""
        return self.header.SizeOfRawData


@dataclass
class ImportedDll:
    """Functions imported by name from one DLL."""

    dll_name: str
    functions: list[str]


class PeFile(BinaryContainer):
    """Parsed PE image.

    Usage:
        pe = PeFile.from_bytes(Path("foo.exe").read_bytes())

        for section in pe.iter_sections():
            print(section.name, pe.get_section_content(section)[:16])

        if pe.has_clr_metadata:
            ...
    """

    container_format = ContainerFormat.PE

    # Reasonable limits for PE structures to prevent DoS from malformed files
    MAX_NUMBER_OF_SECTIONS = 256
    MAX_IMPORT_DESCRIPTORS = 4096
    MAX_IMPORTS_PER_DLL = 65536

    def __init__(self, data: bytes):
        """Parse headers and section table.

        Prefer PeFile.from_bytes() or PeFile.from_file().

        Raises:
            ContainerParseError: If the PE structures are invalid
        """
        self._data = data

        try:
            self._dos_hdr = DosHeader.from_bytes(data)
        except ValueError as e:
            raise ContainerParseError(str(e)) from e
        self._pe_offset = self._dos_hdr.e_lfanew

        # Validate PE offset is within bounds
        if self._pe_offset + 4 > len(data):
            raise ContainerParseError(
                f"Invalid PE header offset {self._pe_offset:#x}: "
                f"beyond end of file ({len(data)} bytes)"
            )

        pe_sig = data[self._pe_offset : self._pe_offset + 4]
        if pe_sig != PE_SIGNATURE:
            raise ContainerParseError(f"Invalid PE signature: {pe_sig!r}")

        try:
            coff_offset = self._pe_offset + 4
            self._coff_hdr = CoffHeader.from_bytes(data, coff_offset)

            opt_offset = coff_offset + COFF_HEADER_SIZE
            self._opt_hdr = self._parse_optional_header(opt_offset)
            self._data_dirs = self._parse_data_directories(opt_offset)

            section_offset = opt_offset + self._coff_hdr.SizeOfOptionalHeader
            self._sections = self._parse_sections(section_offset)
        except (ValueError, struct.error) as e:
            raise ContainerParseError(str(e)) from e

    @classmethod
    def from_bytes(cls, data: bytes) -> "PeFile":
        """Parse a PE image from binary data."""
        return cls(data)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def coff_header(self) -> CoffHeader:
        """COFF file header."""
        return self._coff_hdr

    @property
    def optional_header(self) -> OptionalHeader | None:
        """PE32 or PE32+ optional header (None for bare COFF objects)."""
        return self._opt_hdr

    @property
    def is_pe32_plus(self) -> bool:
        return self._opt_hdr is not None and self._opt_hdr.is_pe32_plus

    @property
    def has_clr_metadata(self) -> bool:
        """Check whether the image carries a CLR runtime header (.NET)."""
        clr = self.get_data_directory(IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR)
        return clr is not None and clr.VirtualAddress != 0

    # =========================================================================
    # Parsing (internal)
    # =========================================================================

    def _parse_optional_header(self, offset: int) -> OptionalHeader | None:
        """Parse the optional header, selecting PE32 or PE32+ by magic."""
        size = self._coff_hdr.SizeOfOptionalHeader
        if size == 0:
            return None
        if size < 2:
            raise ContainerParseError(f"Optional header too small: {size} bytes")

        (magic,) = struct.unpack_from("<H", self._data, offset)
        header_cls = OPTIONAL_HEADER_CLASSES.get(magic)
        if header_cls is None:
            raise ContainerParseError(f"Unknown optional header magic: 0x{magic:04X}")
        if size < header_cls.SIZE:
            raise ContainerParseError(
                f"Optional header size {size} is less than the "
                f"{header_cls.__name__} fixed part ({header_cls.SIZE})"
            )
        return header_cls.from_bytes(self._data, offset)

    def _parse_data_directories(self, opt_offset: int) -> list[DataDirectory]:
        """Parse the data directories that follow the optional header."""
        if self._opt_hdr is None:
            return []

        num_dirs = min(
            self._opt_hdr.NumberOfRvaAndSizes, IMAGE_NUMBEROF_DIRECTORY_ENTRIES
        )
        available = self._coff_hdr.SizeOfOptionalHeader - self._opt_hdr.SIZE
        if num_dirs * DATA_DIRECTORY_SIZE > available:
            raise ContainerParseError(
                f"Optional header size {self._coff_hdr.SizeOfOptionalHeader} "
                f"is too small for {num_dirs} data directories"
            )

        dir_offset = opt_offset + self._opt_hdr.SIZE
        return [
            DataDirectory.from_bytes(self._data, dir_offset + i * DATA_DIRECTORY_SIZE)
            for i in range(num_dirs)
        ]

    def _parse_sections(self, offset: int) -> list[SectionInfo]:
        """Parse all section headers and resolve their names."""
        num_sections = self._coff_hdr.NumberOfSections
        if num_sections > self.MAX_NUMBER_OF_SECTIONS:
            raise ContainerParseError(
                f"NumberOfSections ({num_sections}) exceeds maximum "
                f"({self.MAX_NUMBER_OF_SECTIONS})"
            )
        sections = []
        for i in range(num_sections):
            shdr = SectionHeader.from_bytes(self._data, offset + i * SECTION_HEADER_SIZE)
            sections.append(
                SectionInfo(index=i, name=self._resolve_section_name(shdr), header=shdr)
            )
        return sections

    def _resolve_section_name(self, shdr: SectionHeader) -> str:
        """Resolve "/NNN" long section names through the COFF string table."""
        name = shdr.name_str
        if not name.startswith("/"):
            return name

        table_offset = self._coff_hdr.string_table_offset
        try:
            string_offset = int(name[1:])
        except ValueError:
            return name
        if table_offset is None:
            return name
        resolved = read_cstring(self._data, table_offset + string_offset)
        return resolved or name

    # =========================================================================
    # Query Operations
    # =========================================================================

    def iter_sections(self) -> Iterator[SectionInfo]:
        """Iterate over all sections."""
        yield from self._sections

    def find_section(self, name: str) -> SectionInfo | None:
        """Find a section by exact (resolved) name."""
        for section in self._sections:
            if section.name == name:
                return section
        return None

    def section_names(self) -> list[str]:
        return [s.name for s in self._sections]

    def get_section_content(self, section: SectionInfo) -> bytes:
        """Get the raw (on-disk) content of a section.

        Truncated files yield whatever part of the section is present.
        """
        if section.raw_size == 0:
            return b""
        start = section.file_offset
        return self._data[start : start + section.raw_size]

    def get_data_directory(self, index: int) -> DataDirectory | None:
        """Get a data directory by index."""
        if 0 <= index < len(self._data_dirs):
            return self._data_dirs[index]
        return None

    # =========================================================================
    # Address Conversion
    # =========================================================================

    def rva_to_file_offset(self, rva: int) -> int | None:
        """Convert RVA to file offset using section table.

        Returns:
            File offset if RVA is in a section with raw data, None otherwise.
        """
        for section in self._sections:
            shdr = section.header
            if shdr.contains_rva(rva):
                section_offset = rva - shdr.VirtualAddress
                if section_offset >= shdr.SizeOfRawData:
                    return None
                return shdr.PointerToRawData + section_offset
        return None

    def _read_string_at_rva(self, rva: int) -> str:
        offset = self.rva_to_file_offset(rva)
        if offset is None:
            raise ContainerParseError(f"String RVA 0x{rva:x} is not backed by file data")
        return read_cstring(self._data, offset)

    # =========================================================================
    # Imports
    # =========================================================================

    def iter_import_descriptors(self) -> Iterator[ImportDescriptor]:
        """Iterate over import descriptors up to the terminating entry.

        Raises:
            ContainerParseError: If the import directory is not mapped to
                file data or is truncated
        """
        directory = self.get_data_directory(IMAGE_DIRECTORY_ENTRY_IMPORT)
        if directory is None or directory.VirtualAddress == 0:
            return

        offset = self.rva_to_file_offset(directory.VirtualAddress)
        if offset is None:
            raise ContainerParseError(
                f"Import directory RVA 0x{directory.VirtualAddress:x} "
                f"is not backed by file data"
            )

        for _ in range(self.MAX_IMPORT_DESCRIPTORS):
            try:
                desc = ImportDescriptor.from_bytes(self._data, offset)
            except ValueError as e:
                raise ContainerParseError(str(e)) from e
            if desc.is_terminator:
                return
            yield desc
            offset += ImportDescriptor.SIZE

    def _iter_thunk_names(self, desc: ImportDescriptor) -> Iterator[str]:
        """Yield function names from a descriptor's lookup table.

        Imports by ordinal carry no name and are skipped.
        """
        offset = self.rva_to_file_offset(desc.lookup_table_rva)
        if offset is None:
            raise ContainerParseError(
                f"Import lookup table RVA 0x{desc.lookup_table_rva:x} "
                f"is not backed by file data"
            )

        if self.is_pe32_plus:
            fmt, ordinal_flag = "<Q", IMAGE_ORDINAL_FLAG64
        else:
            fmt, ordinal_flag = "<I", IMAGE_ORDINAL_FLAG32
        thunk_size = struct.calcsize(fmt)

        for _ in range(self.MAX_IMPORTS_PER_DLL):
            if offset + thunk_size > len(self._data):
                raise ContainerParseError("Import lookup table truncated")
            (thunk,) = struct.unpack_from(fmt, self._data, offset)
            if thunk == 0:
                return
            offset += thunk_size
            if thunk & ordinal_flag:
                continue
            # Hint/name entry: 2-byte hint followed by the name
            yield self._read_string_at_rva((thunk & 0x7FFFFFFF) + 2)

    def iter_imports(self) -> Iterator[ImportedDll]:
        """Iterate over imported DLLs with their by-name functions."""
        for desc in self.iter_import_descriptors():
            dll_name = self._read_string_at_rva(desc.Name)
            yield ImportedDll(
                dll_name=dll_name, functions=list(self._iter_thunk_names(desc))
            )

    def imported_libraries(self) -> list[str]:
        return [imp.dll_name for imp in self.iter_imports()]

    def imported_symbols(self) -> list[str]:
        """Imported functions, each rendered as "<function>:<dll>"."""
        return [
            f"{func}:{imp.dll_name}"
            for imp in self.iter_imports()
            for func in imp.functions
        ]
