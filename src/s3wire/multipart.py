# src/s3wire/multipart.py
"""
Part sizing and byte-range planning for multipart transfers.

All functions are pure. The orchestration layer that uploads parts or issues
ranged copies calls these to decide how many dispatcher requests to make and
which byte range each one covers.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError, InvalidArgumentError


MiB = 1024 * 1024
GiB = 1024 * MiB
TiB = 1024 * GiB

MIN_PART_SIZE = 5 * MiB
MAX_PART_SIZE = 5 * GiB
DEFAULT_PART_SIZE = 64 * MiB
PART_SIZE_INCREMENT = 16 * MiB
MAX_PARTS_COUNT = 10000
MAX_SINGLE_PUT_OBJECT_SIZE = 5 * GiB
MAX_MULTIPART_PUT_OBJECT_SIZE = 5 * TiB


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte range ``[start, end]`` of one part."""

    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def header_value(self) -> str:
        """Render as a ``Range`` / ``x-amz-copy-source-range`` value."""
        return f"bytes={self.start}-{self.end}"


PartPlan = tuple[ByteRange, ...]


def check_part_size(part_size: int) -> int:
    """Reject configured part sizes outside the protocol limits."""
    if part_size < MIN_PART_SIZE:
        raise ConfigurationError(
            f"Part size should be greater than {MIN_PART_SIZE} bytes, got {part_size}"
        )
    if part_size > MAX_PART_SIZE:
        raise ConfigurationError(
            f"Part size should be less than {MAX_PART_SIZE} bytes, got {part_size}"
        )
    return part_size


def part_size_for_upload(
    total_size: int,
    configured_part_size: int = DEFAULT_PART_SIZE,
    overridden: bool = False,
) -> int:
    """
    Choose the part size for an upload of ``total_size`` bytes.

    A caller-pinned part size is returned unchanged. Otherwise the configured
    size grows in 16 MiB steps until ``MAX_PARTS_COUNT`` parts cover the object.

    Raises:
        InvalidArgumentError: total_size is negative or above the 5 TiB object limit
        ConfigurationError: configured_part_size is outside [5 MiB, 5 GiB]
    """
    if total_size < 0:
        raise InvalidArgumentError("total_size", "must not be negative")
    if total_size > MAX_MULTIPART_PUT_OBJECT_SIZE:
        raise InvalidArgumentError(
            "total_size", f"should not be more than {MAX_MULTIPART_PUT_OBJECT_SIZE}"
        )
    check_part_size(configured_part_size)
    if overridden:
        return configured_part_size

    part_size = configured_part_size
    while part_size * MAX_PARTS_COUNT <= total_size:
        part_size += PART_SIZE_INCREMENT
    return part_size


def parts_required(total_size: int) -> int:
    """
    Number of parts a ranged copy of ``total_size`` bytes is split into.

    The largest allowed part is ``MAX_MULTIPART_PUT_OBJECT_SIZE / (MAX_PARTS_COUNT - 1)``;
    the division is kept in integers so the ceiling is exact.
    """
    if total_size < 0:
        raise InvalidArgumentError("total_size", "must not be negative")
    numerator = total_size * (MAX_PARTS_COUNT - 1)
    return -(-numerator // MAX_MULTIPART_PUT_OBJECT_SIZE)


def split_ranges(total_size: int, parts: int, range_start: int | None = None) -> PartPlan:
    """
    Partition ``total_size`` bytes into ``parts`` contiguous inclusive ranges.

    The first ``total_size % parts`` ranges are one byte longer than the rest.
    A missing or negative ``range_start`` starts the plan at offset 0.

    Example:
        >>> [r.header_value() for r in split_ranges(10, 3)]
        ['bytes=0-3', 'bytes=4-6', 'bytes=7-9']
    """
    if total_size <= 0:
        raise InvalidArgumentError("total_size", "must be positive")
    if parts <= 0 or parts > total_size:
        raise InvalidArgumentError("parts", f"must be between 1 and {total_size}, got {parts}")

    start = range_start if range_start is not None and range_start >= 0 else 0
    base, remainder = divmod(total_size, parts)

    ranges: list[ByteRange] = []
    next_start = start
    for index in range(parts):
        size = base + 1 if index < remainder else base
        end = next_start + size - 1
        ranges.append(ByteRange(start=next_start, end=end))
        next_start = end + 1
    return tuple(ranges)


def even_split(total_size: int, range_start: int | None = None) -> PartPlan | None:
    """Plan a ranged multipart copy of ``total_size`` bytes; ``None`` when empty."""
    if total_size == 0:
        return None
    return split_ranges(total_size, parts_required(total_size), range_start)


__all__ = [
    "MiB",
    "GiB",
    "TiB",
    "MIN_PART_SIZE",
    "MAX_PART_SIZE",
    "DEFAULT_PART_SIZE",
    "PART_SIZE_INCREMENT",
    "MAX_PARTS_COUNT",
    "MAX_SINGLE_PUT_OBJECT_SIZE",
    "MAX_MULTIPART_PUT_OBJECT_SIZE",
    "ByteRange",
    "PartPlan",
    "check_part_size",
    "part_size_for_upload",
    "parts_required",
    "split_ranges",
    "even_split",
]
