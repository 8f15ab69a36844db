"""Report version codes.

A version is a two-digit, zero-padded string: "00" is the baseline, then
"01", "02", ... The DCF sender dataset id carries the version as a dotted
suffix: "FR1704.01" is version "01" of report "FR1704"; a sender id without
suffix is the baseline.
"""

from __future__ import annotations

BASELINE_VERSION = "00"


def format_version(number: int) -> str:
    """Format a version number as a two-digit code (7 -> "07")."""
    if number < 0:
        raise ValueError(f"Version number cannot be negative: {number}")
    return f"{number:02d}"


def version_number(version: str) -> int:
    """Return the numeric value of a version code ("07" -> 7).

    Raises:
        ValueError: If the code is not numeric.
    """
    return int(version.strip())


def is_baseline(version: str) -> bool:
    return version_number(version) == 0


def split_sender_id(sender_id: str) -> tuple[str, str]:
    """Split "FR1704.01" into ("FR1704", "01").

    A sender id without a numeric suffix is the baseline version.
    """
    sender_id = sender_id.strip()
    base, sep, suffix = sender_id.rpartition(".")
    if sep and suffix.isdigit():
        return base, format_version(int(suffix))
    return sender_id, BASELINE_VERSION


def merge_sender_id(sender_dataset_id: str, version: str) -> str:
    """Inverse of split_sender_id: ("FR1704", "01") -> "FR1704.01"."""
    return f"{sender_dataset_id}.{version}"
