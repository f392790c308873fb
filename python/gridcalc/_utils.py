"""A1-style reference helpers: column labels, addresses and ranges."""

from __future__ import annotations

import re
from typing import NamedTuple

_A1_RE = re.compile(r"^\s*([A-Za-z]+)([0-9]+)\s*$")


class InvalidReferenceError(ValueError):
    """Raised when text is not a well-formed A1 reference."""


class Address(NamedTuple):
    """Zero-based (row, col) grid coordinate.

    Tuple ordering is row-major, which is the tie-break order used during
    recalculation.
    """

    row: int
    col: int

    @property
    def a1(self) -> str:
        return rowcol_to_a1(self.row, self.col)

    def __str__(self) -> str:
        return self.a1


class CellRange(NamedTuple):
    """Inclusive rectangle, always stored with ``start`` top-left."""

    start: Address
    end: Address

    @classmethod
    def from_corners(cls, first: Address, second: Address) -> CellRange:
        return cls(
            Address(min(first.row, second.row), min(first.col, second.col)),
            Address(max(first.row, second.row), max(first.col, second.col)),
        )

    @property
    def n_rows(self) -> int:
        return self.end.row - self.start.row + 1

    @property
    def n_cols(self) -> int:
        return self.end.col - self.start.col + 1

    def __contains__(self, addr: object) -> bool:
        if not isinstance(addr, tuple) or len(addr) != 2:
            return False
        row, col = addr
        return (
            self.start.row <= row <= self.end.row
            and self.start.col <= col <= self.end.col
        )

    def __str__(self) -> str:
        return f"{self.start.a1}:{self.end.a1}"


def column_to_index(label: str) -> int:
    """Convert a column label to a zero-based index (``"A"`` -> 0, ``"AA"`` -> 26)."""
    if not label or not label.isalpha() or not label.isascii():
        raise InvalidReferenceError(f"Invalid column label: {label!r}")
    n = 0
    for ch in label.upper():
        n = n * 26 + (ord(ch) - 64)
    return n - 1


def index_to_column(index: int) -> str:
    """Convert a zero-based column index to its label (0 -> ``"A"``)."""
    if index < 0:
        raise InvalidReferenceError(f"Column index must be non-negative, got {index}")
    label = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        label = chr(65 + rem) + label
    return label


def a1_to_rowcol(ref: str) -> tuple[int, int]:
    """``"B3"`` -> ``(2, 1)`` (zero-based)."""
    m = _A1_RE.match(ref)
    if not m:
        raise InvalidReferenceError(f"Invalid cell reference: {ref!r}")
    row = int(m.group(2))
    if row < 1:
        raise InvalidReferenceError(f"Row numbers start at 1: {ref!r}")
    return row - 1, column_to_index(m.group(1))


def rowcol_to_a1(row: int, col: int) -> str:
    """``(2, 1)`` -> ``"B3"``."""
    if row < 0:
        raise InvalidReferenceError(f"Row index must be non-negative, got {row}")
    return f"{index_to_column(col)}{row + 1}"


def parse_address(text: str) -> Address:
    return Address(*a1_to_rowcol(text))


def parse_range(text: str) -> CellRange:
    """Parse ``"A1:C3"`` (corners in any order) into a normalized range."""
    parts = text.split(":")
    if len(parts) != 2:
        raise InvalidReferenceError(f"Invalid range: {text!r}")
    return CellRange.from_corners(parse_address(parts[0]), parse_address(parts[1]))


def expand_range(cell_range: CellRange) -> list[Address]:
    """Expand a range into its addresses in row-major order."""
    start, end = cell_range
    return [
        Address(r, c)
        for r in range(start.row, end.row + 1)
        for c in range(start.col, end.col + 1)
    ]


def to_address(ref: str | tuple[int, int]) -> Address:
    """Accept ``"B3"`` or a ``(row, col)`` tuple."""
    if isinstance(ref, str):
        return parse_address(ref)
    row, col = ref
    if row < 0 or col < 0:
        raise InvalidReferenceError(f"Negative address: {ref!r}")
    return Address(row, col)
