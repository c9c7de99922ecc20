"""
Read-only ELF parser.

ElfFile decodes the header and section table of 32-bit or 64-bit ELF
files in either byte order, and exposes section names, static symbols and
DT_NEEDED dependencies.
"""

from dataclasses import dataclass
from typing import Iterator

from ..container import BinaryContainer, ContainerParseError, read_cstring
from ..format_detect import ContainerFormat
from .types import (
    ElfIdent,
    ElfHeader,
    SectionHeader,
    Symbol,
    DynamicEntry,
    SHN_UNDEF,
    SHN_XINDEX,
    SHT_STRTAB,
    SHT_SYMTAB,
    SHT_DYNAMIC,
    DT_NULL,
    DT_NEEDED,
)


@dataclass
class SectionInfo:
    """Information about a section, combining header with derived data."""

    index: int
    name: str
    header: SectionHeader

    @property
    def offset(self) -> int:
        """File offset."""
        return self.header.sh_offset

    @property
    def size(self) -> int:
        """Section size."""
        return self.header.sh_size


class ElfFile(BinaryContainer):
    """Parsed ELF file.

    Usage:
        elf = ElfFile.from_bytes(Path("a.out").read_bytes())

        if elf.find_section(".go.buildinfo") is not None:
            ...
        for lib in elf.imported_libraries():
            print(lib)
    """

    container_format = ContainerFormat.ELF

    # Reasonable limits to prevent DoS from malformed files
    MAX_NUMBER_OF_SECTIONS = 0x10000

    def __init__(self, data: bytes):
        """Parse header and section table.

        Prefer ElfFile.from_bytes() or ElfFile.from_file().

        Raises:
            ContainerParseError: If the ELF structures are invalid
        """
        self._data = data
        try:
            self._ident = ElfIdent.from_bytes(data)
            self._ehdr = ElfHeader.from_bytes(data, self._ident)
        except ValueError as e:
            raise ContainerParseError(str(e)) from e

        self._sections = self._parse_sections()

    @classmethod
    def from_bytes(cls, data: bytes) -> "ElfFile":
        """Parse an ELF file from binary data."""
        return cls(data)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def ident(self) -> ElfIdent:
        """Identification bytes (class, encoding)."""
        return self._ident

    @property
    def ehdr(self) -> ElfHeader:
        """ELF file header."""
        return self._ehdr

    # =========================================================================
    # Parsing (internal)
    # =========================================================================

    def _read_section_header(self, index: int) -> SectionHeader:
        offset = self._ehdr.e_shoff + index * self._ehdr.e_shentsize
        try:
            return SectionHeader.from_bytes(self._data, offset, self._ident)
        except ValueError as e:
            raise ContainerParseError(
                f"Section header {index} at offset {offset:#x} is truncated"
            ) from e

    def _parse_sections(self) -> list[SectionInfo]:
        """Parse all section headers and resolve their names."""
        ehdr = self._ehdr
        if ehdr.e_shoff == 0:
            return []

        if ehdr.e_shentsize != SectionHeader.size(self._ident):
            raise ContainerParseError(
                f"Invalid section header entry size: {ehdr.e_shentsize}"
            )

        # Extended numbering: real counts live in section 0
        first = self._read_section_header(0)
        shnum = ehdr.e_shnum or first.sh_size
        shstrndx = ehdr.e_shstrndx
        if shstrndx == SHN_XINDEX:
            shstrndx = first.sh_link

        if shnum == 0:
            return []
        if shnum > self.MAX_NUMBER_OF_SECTIONS:
            raise ContainerParseError(
                f"Section count ({shnum}) exceeds maximum "
                f"({self.MAX_NUMBER_OF_SECTIONS})"
            )
        if shstrndx >= shnum:
            raise ContainerParseError(f"Invalid section name table index: {shstrndx}")

        headers = [first] + [self._read_section_header(i) for i in range(1, shnum)]

        names_hdr = headers[shstrndx] if shstrndx != SHN_UNDEF else None
        if names_hdr is not None and names_hdr.sh_type != SHT_STRTAB:
            raise ContainerParseError(
                f"Section name table (index {shstrndx}) is not a string table"
            )

        sections = []
        for idx, shdr in enumerate(headers):
            name = ""
            if names_hdr is not None:
                name = read_cstring(
                    self._data,
                    names_hdr.sh_offset + shdr.sh_name,
                    names_hdr.end_offset,
                )
            sections.append(SectionInfo(index=idx, name=name, header=shdr))
        return sections

    # =========================================================================
    # Query Operations
    # =========================================================================

    def iter_sections(self) -> Iterator[SectionInfo]:
        """Iterate over all sections."""
        yield from self._sections

    def find_section(self, name: str) -> SectionInfo | None:
        """Find a section by exact name."""
        for section in self._sections:
            if section.name == name:
                return section
        return None

    def get_section_by_index(self, index: int) -> SectionInfo | None:
        """Get section by index."""
        if 0 <= index < len(self._sections):
            return self._sections[index]
        return None

    def section_names(self) -> list[str]:
        return [s.name for s in self._sections]

    def get_section_content(self, section: SectionInfo) -> bytes:
        """Get content of a section.

        Raises:
            ContainerParseError: If the section extends past end of file
        """
        if section.header.is_nobits:
            return b""
        end = section.header.end_offset
        if end > len(self._data):
            raise ContainerParseError(
                f"Section {section.name or section.index} extends past end of file"
            )
        return self._data[section.offset : end]

    def _linked_string_table(self, section: SectionInfo) -> bytes:
        strtab = self.get_section_by_index(section.header.sh_link)
        if strtab is None or strtab.header.sh_type != SHT_STRTAB:
            raise ContainerParseError(
                f"Section {section.name} does not link to a string table"
            )
        return self.get_section_content(strtab)

    # =========================================================================
    # Symbols and dependencies
    # =========================================================================

    def iter_symbols(self) -> Iterator[tuple[str, Symbol]]:
        """Iterate over (name, symbol) pairs from the SHT_SYMTAB table.

        The leading null symbol is skipped. Stripped binaries yield nothing.
        """
        symtab = next(
            (s for s in self._sections if s.header.sh_type == SHT_SYMTAB), None
        )
        if symtab is None:
            return

        strings = self._linked_string_table(symtab)
        content = self.get_section_content(symtab)
        entry_size = Symbol.size(self._ident)
        for offset in range(entry_size, len(content) - entry_size + 1, entry_size):
            sym = Symbol.from_bytes(content, offset, self._ident)
            yield read_cstring(strings, sym.st_name), sym

    def symbol_names(self) -> list[str]:
        return [name for name, _ in self.iter_symbols()]

    def iter_dynamic_entries(self) -> Iterator[DynamicEntry]:
        """Iterate over dynamic section entries up to DT_NULL."""
        dynamic = next(
            (s for s in self._sections if s.header.sh_type == SHT_DYNAMIC), None
        )
        if dynamic is None:
            return

        content = self.get_section_content(dynamic)
        entry_size = DynamicEntry.size(self._ident)
        for offset in range(0, len(content) - entry_size + 1, entry_size):
            entry = DynamicEntry.from_bytes(content, offset, self._ident)
            if entry.d_tag == DT_NULL:
                return
            yield entry

    def imported_libraries(self) -> list[str]:
        """DT_NEEDED library names, in dynamic section order."""
        dynamic = next(
            (s for s in self._sections if s.header.sh_type == SHT_DYNAMIC), None
        )
        if dynamic is None:
            return []

        strings = self._linked_string_table(dynamic)
        return [
            read_cstring(strings, entry.d_val)
            for entry in self.iter_dynamic_entries()
            if entry.d_tag == DT_NEEDED
        ]
