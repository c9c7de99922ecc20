"""
Builders for small synthetic PE, ELF and Mach-O binaries.

Real compiled binaries are large and platform-specific, so tests assemble
just the structures the readers look at: section tables, import tables,
symbol tables, dynamic sections and Mach-O load commands. Every builder
returns the complete file as bytes; use write_binary() to put it on disk.
"""

import struct
from pathlib import Path

from binlang.elf.types import (
    ElfIdent,
    ElfHeader,
    SectionHeader as ElfSectionHeader,
    Symbol,
    DynamicEntry,
    ELFCLASS64,
    ELFDATA2LSB,
    ELF_MAGIC,
    EV_CURRENT,
    SHT_PROGBITS,
    SHT_SYMTAB,
    SHT_STRTAB,
    SHT_DYNAMIC,
    DT_NEEDED,
    DT_NULL,
)
from binlang.macho.types import (
    MachHeader,
    SegmentCommand,
    Section as MachSection,
    FatArch,
    CPU_TYPE_X86_64,
    DYLIB_COMMAND_SIZE,
    FAT_MAGIC,
    LC_LOAD_DYLIB,
    LC_SEGMENT,
    LC_SEGMENT_64,
    MH_MAGIC,
    MH_MAGIC_64,
)
from binlang.pe.types import (
    DosHeader,
    CoffHeader,
    DataDirectory,
    ImportDescriptor,
    OptionalHeader32,
    OptionalHeader64,
    SectionHeader as PeSectionHeader,
    COFF_HEADER_SIZE,
    DATA_DIRECTORY_SIZE,
    DOS_MAGIC,
    IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR,
    IMAGE_DIRECTORY_ENTRY_IMPORT,
    IMAGE_FILE_MACHINE_AMD64,
    IMAGE_FILE_MACHINE_I386,
    IMAGE_NUMBEROF_DIRECTORY_ENTRIES,
    IMAGE_ORDINAL_FLAG32,
    IMAGE_ORDINAL_FLAG64,
    IMPORT_DESCRIPTOR_SIZE,
    PE_SIGNATURE,
    SECTION_HEADER_SIZE,
)


def _align(value: int, alignment: int) -> int:
    return (value + alignment - 1) & ~(alignment - 1)


def section_name_to_bytes(name: str) -> bytes:
    """Pad a PE section name to its 8-byte field.

    Longer names must go through the COFF string table as "/<offset>".
    """
    if len(name) > 8:
        raise ValueError(f"Section name too long (max 8 chars): {name}")
    return name.encode("ascii").ljust(8, b"\x00")


def make_ident(ei_class: int = ELFCLASS64, ei_data: int = ELFDATA2LSB) -> bytes:
    """Build 16 e_ident bytes for the given class and encoding."""
    return ELF_MAGIC + bytes([ei_class, ei_data, EV_CURRENT]) + b"\x00" * 9


def write_binary(path: Path, data: bytes) -> Path:
    """Write data to path and return the path."""
    path.write_bytes(data)
    return path


# =============================================================================
# PE
# =============================================================================

PE_OFFSET = 0x40
FILE_ALIGNMENT = 0x200
SECTION_ALIGNMENT = 0x1000
CLR_HEADER_SIZE = 0x48


def _build_import_table(
    imports: dict[str, list[str | int]], base_rva: int, pe32_plus: bool
) -> bytes:
    """Lay out descriptors, lookup tables and hint/name strings.

    Integer entries in a function list become imports by ordinal.
    """
    if pe32_plus:
        thunk_fmt, ordinal_flag = "<Q", IMAGE_ORDINAL_FLAG64
    else:
        thunk_fmt, ordinal_flag = "<I", IMAGE_ORDINAL_FLAG32
    thunk_size = struct.calcsize(thunk_fmt)

    dlls = list(imports.items())
    descriptors_size = (len(dlls) + 1) * IMPORT_DESCRIPTOR_SIZE
    thunks_size = sum((len(funcs) + 1) * thunk_size for _, funcs in dlls)
    strings_offset = descriptors_size + thunks_size

    descriptors = bytearray()
    thunks = bytearray()
    strings = bytearray()
    for dll, funcs in dlls:
        thunk_rva = base_rva + descriptors_size + len(thunks)
        for func in funcs:
            if isinstance(func, int):
                thunks += struct.pack(thunk_fmt, ordinal_flag | func)
            else:
                hint_rva = base_rva + strings_offset + len(strings)
                strings += struct.pack("<H", 0) + func.encode("ascii") + b"\x00"
                thunks += struct.pack(thunk_fmt, hint_rva)
        thunks += struct.pack(thunk_fmt, 0)

        name_rva = base_rva + strings_offset + len(strings)
        strings += dll.encode("ascii") + b"\x00"
        descriptors += ImportDescriptor(
            OriginalFirstThunk=thunk_rva,
            TimeDateStamp=0,
            ForwarderChain=0,
            Name=name_rva,
            FirstThunk=thunk_rva,
        ).to_bytes()
    descriptors += bytes(IMPORT_DESCRIPTOR_SIZE)

    return bytes(descriptors + thunks + strings)


def build_pe(
    sections: list[tuple[str, bytes]] = (),
    imports: dict[str, list[str | int]] | None = None,
    *,
    clr: bool = False,
    pe32_plus: bool = True,
) -> bytes:
    """Build a PE image.

    Args:
        sections: (name, raw content) pairs; names longer than 8 characters
            are stored through the COFF string table
        imports: DLL name -> imported function names (or ordinals); placed
            in an extra ".idata" section
        clr: Whether to set a CLR runtime header directory (.NET)
        pe32_plus: PE32+ (64-bit) instead of PE32 optional header
    """
    sections = list(sections)
    opt_cls = OptionalHeader64 if pe32_plus else OptionalHeader32
    opt_size = opt_cls.SIZE + IMAGE_NUMBEROF_DIRECTORY_ENTRIES * DATA_DIRECTORY_SIZE
    num_sections = len(sections) + (1 if imports else 0)

    headers_end = (
        PE_OFFSET + 4 + COFF_HEADER_SIZE + opt_size + num_sections * SECTION_HEADER_SIZE
    )
    raw_offset = _align(headers_end, FILE_ALIGNMENT)
    rva = SECTION_ALIGNMENT

    string_table = bytearray()

    def encode_name(name: str) -> bytes:
        if len(name) <= 8:
            return section_name_to_bytes(name)
        offset = 4 + len(string_table)
        string_table.extend(name.encode("ascii") + b"\x00")
        return section_name_to_bytes(f"/{offset}")

    directories = [
        DataDirectory(0, 0) for _ in range(IMAGE_NUMBEROF_DIRECTORY_ENTRIES)
    ]

    layout: list[tuple[PeSectionHeader, bytes]] = []

    def place(name: str, content: bytes) -> int:
        nonlocal raw_offset, rva
        raw_size = _align(len(content), FILE_ALIGNMENT)
        header = PeSectionHeader(
            Name=encode_name(name),
            VirtualSize=len(content),
            VirtualAddress=rva,
            SizeOfRawData=raw_size,
            PointerToRawData=raw_offset if raw_size else 0,
            PointerToRelocations=0,
            PointerToLinenumbers=0,
            NumberOfRelocations=0,
            NumberOfLinenumbers=0,
            Characteristics=0x40000040,
        )
        layout.append((header, content))
        section_rva = rva
        raw_offset += raw_size
        rva += _align(max(len(content), 1), SECTION_ALIGNMENT)
        return section_rva

    for name, content in sections:
        place(name, content)

    if imports:
        idata_rva = rva
        idata = _build_import_table(imports, idata_rva, pe32_plus)
        place(".idata", idata)
        directories[IMAGE_DIRECTORY_ENTRY_IMPORT] = DataDirectory(
            idata_rva, len(idata)
        )

    if clr:
        directories[IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR] = DataDirectory(
            SECTION_ALIGNMENT, CLR_HEADER_SIZE
        )

    symbol_table_offset = raw_offset if string_table else 0

    out = bytearray(raw_offset)
    out[0:64] = DosHeader(e_magic=DOS_MAGIC, e_lfanew=PE_OFFSET).to_bytes()

    pos = PE_OFFSET
    out[pos : pos + 4] = PE_SIGNATURE
    pos += 4

    coff = CoffHeader(
        Machine=IMAGE_FILE_MACHINE_AMD64 if pe32_plus else IMAGE_FILE_MACHINE_I386,
        NumberOfSections=num_sections,
        TimeDateStamp=0,
        PointerToSymbolTable=symbol_table_offset,
        NumberOfSymbols=0,
        SizeOfOptionalHeader=opt_size,
        Characteristics=0x22,
    )
    out[pos : pos + COFF_HEADER_SIZE] = coff.to_bytes()
    pos += COFF_HEADER_SIZE

    opt = opt_cls(
        Magic=opt_cls.MAGIC,
        AddressOfEntryPoint=SECTION_ALIGNMENT,
        ImageBase=0x140000000 if pe32_plus else 0x400000,
        NumberOfRvaAndSizes=IMAGE_NUMBEROF_DIRECTORY_ENTRIES,
    )
    out[pos : pos + opt_cls.SIZE] = opt.to_bytes()
    pos += opt_cls.SIZE
    for directory in directories:
        out[pos : pos + DATA_DIRECTORY_SIZE] = directory.to_bytes()
        pos += DATA_DIRECTORY_SIZE

    for header, content in layout:
        out[pos : pos + SECTION_HEADER_SIZE] = header.to_bytes()
        pos += SECTION_HEADER_SIZE
        start = header.PointerToRawData
        out[start : start + len(content)] = content

    if string_table:
        out += struct.pack("<I", 4 + len(string_table)) + string_table

    return bytes(out)


# =============================================================================
# ELF
# =============================================================================


def build_elf(
    sections: list[tuple[str, bytes]] = (),
    *,
    symbols: list[str] | None = None,
    needed: list[str] | None = None,
    ei_class: int = ELFCLASS64,
    ei_data: int = ELFDATA2LSB,
) -> bytes:
    """Build an ELF executable with a section header table.

    Args:
        sections: (name, content) pairs emitted as SHT_PROGBITS
        symbols: Names for a .symtab/.strtab pair
        needed: DT_NEEDED entries for a .dynamic/.dynstr pair
        ei_class: ELFCLASS32 or ELFCLASS64
        ei_data: ELFDATA2LSB or ELFDATA2MSB
    """
    ident_bytes = make_ident(ei_class, ei_data)
    ident = ElfIdent.from_bytes(ident_bytes)

    # (name, sh_type, content, link section name, entsize)
    planned: list[tuple[str, int, bytes, str | None, int]] = [
        (name, SHT_PROGBITS, content, None, 0) for name, content in sections
    ]

    if symbols is not None:
        strtab = bytearray(b"\x00")
        symtab = bytearray(Symbol(0, 0, 0, 0, 0, 0).to_bytes(ident))
        for name in symbols:
            symtab += Symbol(
                st_name=len(strtab),
                st_value=0x1000,
                st_size=0,
                st_info=0x12,  # STB_GLOBAL | STT_FUNC
                st_other=0,
                st_shndx=1,
            ).to_bytes(ident)
            strtab += name.encode("ascii") + b"\x00"
        planned.append((".symtab", SHT_SYMTAB, bytes(symtab), ".strtab", Symbol.size(ident)))
        planned.append((".strtab", SHT_STRTAB, bytes(strtab), None, 0))

    if needed is not None:
        dynstr = bytearray(b"\x00")
        dynamic = bytearray()
        for lib in needed:
            dynamic += DynamicEntry(DT_NEEDED, len(dynstr)).to_bytes(ident)
            dynstr += lib.encode("ascii") + b"\x00"
        dynamic += DynamicEntry(DT_NULL, 0).to_bytes(ident)
        planned.append(
            (".dynamic", SHT_DYNAMIC, bytes(dynamic), ".dynstr", DynamicEntry.size(ident))
        )
        planned.append((".dynstr", SHT_STRTAB, bytes(dynstr), None, 0))

    shstrtab = bytearray(b"\x00")
    name_offsets = {}
    for name, *_ in planned + [(".shstrtab",)]:
        name_offsets[name] = len(shstrtab)
        shstrtab += name.encode("ascii") + b"\x00"
    planned.append((".shstrtab", SHT_STRTAB, bytes(shstrtab), None, 0))

    # Section index 0 is the null section
    indices = {entry[0]: i + 1 for i, entry in enumerate(planned)}

    ehdr_size = ElfHeader.size(ident)
    shdr_size = ElfSectionHeader.size(ident)
    out = bytearray(ehdr_size)
    headers = [ElfSectionHeader(0, 0, 0, 0, 0, 0, 0, 0, 0, 0)]
    for name, sh_type, content, link, entsize in planned:
        offset = _align(len(out), 8)
        out += bytes(offset - len(out)) + content
        headers.append(
            ElfSectionHeader(
                sh_name=name_offsets[name],
                sh_type=sh_type,
                sh_flags=0,
                sh_addr=0,
                sh_offset=offset,
                sh_size=len(content),
                sh_link=indices[link] if link else 0,
                sh_info=1 if sh_type == SHT_SYMTAB else 0,
                sh_addralign=1,
                sh_entsize=entsize,
            )
        )

    shoff = _align(len(out), 8)
    out += bytes(shoff - len(out))
    for header in headers:
        out += header.to_bytes(ident)

    ehdr = ElfHeader(
        e_ident=ident_bytes,
        e_type=2,  # ET_EXEC
        e_machine=62,  # EM_X86_64
        e_version=1,
        e_entry=0,
        e_phoff=0,
        e_shoff=shoff,
        e_flags=0,
        e_ehsize=ehdr_size,
        e_phentsize=0,
        e_phnum=0,
        e_shentsize=shdr_size,
        e_shnum=len(headers),
        e_shstrndx=indices[".shstrtab"],
    )
    out[0:ehdr_size] = ehdr.to_bytes(ident)
    return bytes(out)


# =============================================================================
# Mach-O
# =============================================================================


def _pack_segment(
    segname: str,
    sectnames: list[str],
    byte_order: str,
    is_64bit: bool,
) -> bytes:
    cmd = LC_SEGMENT_64 if is_64bit else LC_SEGMENT
    header_size = SegmentCommand.header_size(is_64bit)
    cmdsize = header_size + len(sectnames) * MachSection.record_size(is_64bit)

    seg_fmt = SegmentCommand.STRUCT_FMT64 if is_64bit else SegmentCommand.STRUCT_FMT32
    data = struct.pack(byte_order + "II", cmd, cmdsize)
    data += struct.pack(
        byte_order + seg_fmt,
        segname.encode("ascii"),
        0,  # vmaddr
        0x1000,  # vmsize
        0,  # fileoff
        0,  # filesize
        7,  # maxprot
        5,  # initprot
        len(sectnames),
        0,  # flags
    )

    sect_fmt = MachSection.STRUCT_FMT64 if is_64bit else MachSection.STRUCT_FMT32
    reserved = 3 if is_64bit else 2
    for sectname in sectnames:
        data += struct.pack(
            byte_order + sect_fmt,
            sectname.encode("ascii"),
            segname.encode("ascii"),
            0,  # addr
            0,  # size
            0,  # offset
            0,  # align
            0,  # reloff
            0,  # nreloc
            0,  # flags
            *([0] * reserved),
        )
    return data


def _pack_dylib(path: str, cmd: int, byte_order: str, is_64bit: bool) -> bytes:
    name = path.encode("utf-8") + b"\x00"
    cmdsize = _align(DYLIB_COMMAND_SIZE + len(name), 8 if is_64bit else 4)
    data = struct.pack(
        byte_order + "IIIIII", cmd, cmdsize, DYLIB_COMMAND_SIZE, 2, 0x10000, 0x10000
    )
    return data + name.ljust(cmdsize - DYLIB_COMMAND_SIZE, b"\x00")


def build_macho(
    sections: list[tuple[str, str]] = (),
    dylibs: list[str | tuple[str, int]] = (),
    *,
    cputype: int = CPU_TYPE_X86_64,
    cpusubtype: int = 3,
    is_64bit: bool = True,
    big_endian: bool = False,
) -> bytes:
    """Build a thin Mach-O image made of load commands only.

    Args:
        sections: (segment name, section name) pairs; one segment command is
            emitted per distinct segment, in first-seen order
        dylibs: Library paths for LC_LOAD_DYLIB, or (path, cmd) pairs to use
            another dylib-loading command
        cputype: Header CPU type
        cpusubtype: Header CPU subtype
        is_64bit: mach_header_64 and LC_SEGMENT_64
        big_endian: Big-endian byte order (e.g. PowerPC)
    """
    byte_order = ">" if big_endian else "<"

    segments: dict[str, list[str]] = {}
    for segname, sectname in sections:
        segments.setdefault(segname, []).append(sectname)

    commands = [
        _pack_segment(segname, sectnames, byte_order, is_64bit)
        for segname, sectnames in segments.items()
    ]
    for dylib in dylibs:
        path, cmd = (dylib, LC_LOAD_DYLIB) if isinstance(dylib, str) else dylib
        commands.append(_pack_dylib(path, cmd, byte_order, is_64bit))

    header = MachHeader(
        magic=MH_MAGIC_64 if is_64bit else MH_MAGIC,
        cputype=cputype,
        cpusubtype=cpusubtype,
        filetype=2,  # MH_EXECUTE
        ncmds=len(commands),
        sizeofcmds=sum(len(c) for c in commands),
        flags=0,
    )
    return header.to_bytes(byte_order) + b"".join(commands)


def load_command_offset(image: bytes, index: int = 0) -> int:
    """File offset of the index-th load command in a thin image."""
    (magic,) = struct.unpack_from("<I", image, 0)
    order = "<" if magic in (MH_MAGIC, MH_MAGIC_64) else ">"
    (magic,) = struct.unpack_from(order + "I", image, 0)
    offset = 32 if magic == MH_MAGIC_64 else 28
    for _ in range(index):
        (cmdsize,) = struct.unpack_from(order + "I", image, offset + 4)
        offset += cmdsize
    return offset


def build_fat(
    slices: list[tuple[int, bytes]],
    *,
    cpusubtypes: list[int] | None = None,
    magic: int = FAT_MAGIC,
    align: int = 12,
) -> bytes:
    """Build a universal binary.

    Args:
        slices: (cputype, thin image) pairs, in table order
        cpusubtypes: Per-slice subtypes recorded in the table (default 3)
        magic: Fat magic to write
        align: Power-of-two slice alignment
    """
    if cpusubtypes is None:
        cpusubtypes = [3] * len(slices)

    header = struct.pack(">II", magic, len(slices))
    offset = _align(len(header) + len(slices) * FatArch.SIZE, 1 << align)

    arches = bytearray()
    body = bytearray()
    for (cputype, image), subtype in zip(slices, cpusubtypes):
        arches += FatArch(
            cputype=cputype,
            cpusubtype=subtype,
            offset=offset,
            size=len(image),
            align=align,
        ).to_bytes()
        body += image
        padded = _align(len(image), 1 << align)
        body += bytes(padded - len(image))
        offset += padded

    prefix = header + arches
    first_offset = _align(len(prefix), 1 << align)
    return bytes(prefix + bytes(first_offset - len(prefix)) + body)
