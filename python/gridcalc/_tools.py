"""Bulk text utilities: drag copy, find and replace, duplicate removal.

These only read committed cell text and write through
:meth:`Grid.set_cell_inputs`, so every change is parsed and recalculated
like a normal edit.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from gridcalc._utils import Address, CellRange, expand_range, parse_range, to_address
from gridcalc.calc._functions import CellError

if TYPE_CHECKING:
    from gridcalc._grid import CellKey, Grid
    from gridcalc.calc._protocol import RecalcResult


def _addresses(cells: str | CellRange | Iterable[CellKey]) -> list[Address]:
    if isinstance(cells, CellRange):
        return expand_range(cells)
    if isinstance(cells, str):
        if ":" in cells:
            return expand_range(parse_range(cells))
        return [to_address(cells)]
    return [to_address(c) for c in cells]


def copy_cell(grid: Grid, source: CellKey, targets: str | CellRange | Iterable[CellKey]) -> RecalcResult:
    """Copy the raw input of *source* verbatim into every target cell."""
    raw = grid.get_cell(source).raw_input
    src = to_address(source)
    return grid.set_cell_inputs({t: raw for t in _addresses(targets) if t != src})


def find_replace(
    grid: Grid,
    cells: str | CellRange | Iterable[CellKey],
    find: str,
    replace: str,
) -> int:
    """Replace *find* with *replace* in the text literals within *cells*.

    Matching is a plain substring match. Formula cells and numbers are left
    alone. Returns the number of cells changed.
    """
    if not find:
        raise ValueError("find text must not be empty")
    changes: dict[CellKey, str] = {}
    for addr in _addresses(cells):
        snap = grid.get_cell(addr)
        if snap.raw_input.startswith("=") or not isinstance(snap.value, str):
            continue
        if find in snap.raw_input:
            changes[addr] = snap.raw_input.replace(find, replace)
    if changes:
        grid.set_cell_inputs(changes)
    return len(changes)


def _row_key(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, CellError):
        return ("error", value.code)
    if isinstance(value, (int, float)):
        return ("number", float(value))
    return ("text", value)


def remove_duplicates(grid: Grid, cell_range: str | CellRange) -> list[int]:
    """Clear rows of *cell_range* whose values repeat an earlier row.

    Rows are compared on their values within the range's columns; the first
    occurrence is kept and wholly empty rows are ignored. Returns the
    zero-based indices of the cleared rows.
    """
    rng = parse_range(cell_range) if isinstance(cell_range, str) else cell_range
    seen: set[tuple[Any, ...]] = set()
    cleared: list[int] = []
    changes: dict[CellKey, str] = {}
    for row in range(rng.start.row, rng.end.row + 1):
        line = [Address(row, col) for col in range(rng.start.col, rng.end.col + 1)]
        key = tuple(_row_key(grid.get_cell(a).value) for a in line)
        if all(k is None for k in key):
            continue
        if key in seen:
            cleared.append(row)
            changes.update({a: "" for a in line})
        else:
            seen.add(key)
    if changes:
        grid.set_cell_inputs(changes)
    return cleared
