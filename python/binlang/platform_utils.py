"""
Platform-specific utilities for binlang.

This module provides helpers for cross-platform compatibility: console
encoding for the CLI on Windows, and the host CPU architecture used to pick
a slice out of universal Mach-O binaries.
"""

import platform
import sys

# platform.machine() spellings -> canonical architecture names shared with
# macho.types.CPU_TYPE_ARCHITECTURES
MACHINE_ARCHITECTURES: dict[str, str] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "x86": "x86",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv6l": "arm",
    "armv7l": "arm",
    "armv7": "arm",
    "arm": "arm",
    "ppc64": "ppc64",
    "ppc64le": "ppc64",
    "powerpc64": "ppc64",
    "ppc": "ppc",
    "powerpc": "ppc",
}


def canonical_architecture(machine: str) -> str | None:
    """Map a machine string (e.g. "AMD64", "aarch64") to a canonical name.

    Returns:
        Canonical architecture name, or None if the machine is not known
    """
    return MACHINE_ARCHITECTURES.get(machine.strip().lower())


def host_architecture() -> str | None:
    """Canonical architecture of the running interpreter's host.

    Read on every call, never cached.
    """
    return canonical_architecture(platform.machine())


def configure_windows_console() -> None:
    """Configure Windows console for UTF-8 output.

    Evidence strings quote library paths and symbol names taken from the
    binary, which legacy codepages may not be able to display. This
    reconfigures stdout/stderr to use UTF-8 with replacement for
    unsupported chars.

    Safe to call on any platform - does nothing on non-Windows systems.
    """
    if sys.platform != "win32":
        return

    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, "reconfigure"):
            try:
                stream.reconfigure(encoding="utf-8", errors="replace")
            except (OSError, ValueError):
                pass  # Keep the default encoding
