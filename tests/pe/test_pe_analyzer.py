"""Tests for PE language evidence."""

import io

import pytest

from binary_builders import build_pe
from binlang.pe.analyzer import analyze_pe_file, classify_import, DOTNET_LANGUAGES
from binlang.result import LanguageEvidence


def analyze(data: bytes) -> LanguageEvidence:
    evidence = LanguageEvidence()
    analyze_pe_file(io.BytesIO(data), evidence)
    return evidence


class TestClassifyImport:
    """Tests for the per-import rules."""

    @pytest.mark.parametrize(
        "symbol,languages,message",
        [
            ("go_init:libgo.dll", ("Go",), "Go runtime: go_init:libgo.dll"),
            ("runtime.dll", ("Go",), "Go runtime: runtime.dll"),
            ("qVersion:Qt5Core.dll", ("C++",), "Qt framework: qVersion:Qt5Core.dll"),
            (
                "memset:vcruntime140.dll",
                ("C", "C++"),
                "MSVC runtime: memset:vcruntime140.dll",
            ),
            ("printf:msvcr100.dll", ("C", "C++"), "MSVC runtime: printf:msvcr100.dll"),
        ],
    )
    def test_rules(self, symbol, languages, message):
        assert classify_import(symbol) == (languages, message)

    def test_first_rule_wins(self):
        """An import matching several rules only counts for the first."""
        assert classify_import("go_Qt:vcruntime140.dll")[0] == ("Go",)

    def test_no_match(self):
        assert classify_import("ExitProcess:KERNEL32.dll") is None


class TestAnalyzePeFile:
    """Tests for analyze_pe_file."""

    def test_dotnet(self):
        evidence = analyze(build_pe([(".text", b"\x00" * 16)], clr=True))
        assert evidence.languages == list(DOTNET_LANGUAGES)
        assert evidence.evidence == ["Found .NET metadata"]

    def test_go_sections(self):
        evidence = analyze(build_pe([(".text", b"\xc3"), (".gofunc", b"\x00")]))
        assert evidence.languages == ["Go"]
        assert evidence.evidence == ["Found Go runtime indicators"]

    def test_rust_panic_in_rdata(self):
        evidence = analyze(
            build_pe([(".text", b"\xc3"), (".rdata", b"\x00rust_panic\x00")])
        )
        assert evidence.languages == ["Rust"]
        assert evidence.evidence == ["Found Rust panic strings"]

    def test_rust_panic_outside_rdata_ignored(self):
        evidence = analyze(build_pe([(".data", b"\x00rust_panic\x00")]))
        assert evidence.languages == []

    def test_vcruntime_import(self):
        evidence = analyze(
            build_pe([(".text", b"\xc3")], {"vcruntime140.dll": ["memset"]})
        )
        assert evidence.languages == ["C", "C++"]
        assert evidence.evidence == ["MSVC runtime: memset:vcruntime140.dll"]

    def test_hits_in_order(self):
        """CLR, Go sections, Rust strings, then imports."""
        evidence = analyze(
            build_pe(
                [(".gofunc", b"\x00"), (".rdata", b"rust_panic")],
                {"Qt6Core.dll": ["qt_version"]},
                clr=True,
            )
        )
        assert evidence.evidence == [
            "Found .NET metadata",
            "Found Go runtime indicators",
            "Found Rust panic strings",
            "Qt framework: qt_version:Qt6Core.dll",
        ]

    def test_parse_failure_is_evidence(self):
        """A broken image adds one evidence line and no languages."""
        data = bytearray(build_pe([(".text", b"\xc3")]))
        data[0x40:0x44] = b"XXXX"
        evidence = analyze(bytes(data))
        assert evidence.languages == []
        assert len(evidence.evidence) == 1
        assert evidence.evidence[0].startswith("PE parsing failed: ")

    def test_broken_imports_tolerated(self):
        """Unreadable import tables give no hits but keep other evidence."""
        data = bytearray(build_pe([(".gofunc", b"\x00")], {"a.dll": ["go_x"]}))
        # Point the import directory outside every section
        dir_offset = 0x40 + 4 + 20 + 112 + 8
        data[dir_offset : dir_offset + 4] = (0x900000).to_bytes(4, "little")
        evidence = analyze(bytes(data))
        assert evidence.evidence == ["Found Go runtime indicators"]
