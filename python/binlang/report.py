"""
MessagePack reports of detection results.

A report is a single map:

    {
        "version": 1,
        "entries": [{"path": str, "result": DetectionResult.to_dict()}, ...],
    }
"""

import logging
from pathlib import Path
from typing import Iterable

import msgpack

from .result import DetectionResult

logger = logging.getLogger(__name__)

REPORT_VERSION = 1


def write_report(
    output_path: Path, entries: Iterable[tuple[str | Path, DetectionResult]]
) -> None:
    """Serialize (path, result) pairs to a MessagePack report file.

    Args:
        output_path: File to write
        entries: Analyzed paths with their results, in output order
    """
    report = {
        "version": REPORT_VERSION,
        "entries": [
            {"path": str(path), "result": result.to_dict()}
            for path, result in entries
        ],
    }
    data = msgpack.packb(report, use_bin_type=True)
    Path(output_path).write_bytes(data)
    logger.debug(
        "Wrote %d report entries to %s", len(report["entries"]), output_path
    )


def read_report(report_path: Path) -> list[tuple[str, DetectionResult]]:
    """Load a report written by write_report().

    Args:
        report_path: Report file

    Returns:
        List of (path, DetectionResult) in file order

    Raises:
        RuntimeError: If the report cannot be parsed or has the wrong shape
        OSError: If the file cannot be read
    """
    content = Path(report_path).read_bytes()
    try:
        report = msgpack.unpackb(content, raw=False, strict_map_key=True)
    except (msgpack.exceptions.UnpackException, ValueError) as e:
        raise RuntimeError(f"Failed to parse report {report_path}: {e}") from e

    if not isinstance(report, dict):
        raise RuntimeError(
            f"Invalid report format in {report_path}: expected dict, "
            f"got {type(report).__name__}"
        )
    version = report.get("version")
    if version != REPORT_VERSION:
        raise RuntimeError(
            f"Unsupported report version in {report_path}: {version!r}"
        )

    entries = []
    try:
        for entry in report["entries"]:
            entries.append(
                (entry["path"], DetectionResult.from_dict(entry["result"]))
            )
    except (KeyError, TypeError, ValueError) as e:
        raise RuntimeError(f"Invalid report entry in {report_path}: {e}") from e
    return entries
