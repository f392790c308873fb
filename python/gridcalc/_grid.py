"""Grid: the single owner of all cells and the public editing API."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from gridcalc._cell import Cell, CellSnapshot
from gridcalc._utils import Address, to_address
from gridcalc.calc._evaluator import Evaluator
from gridcalc.calc._functions import CellError, parse_number
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._parser import (
    FormulaParseError,
    Node,
    parse_formula,
    references,
    shift_index,
    shift_references,
)
from gridcalc.calc._protocol import RecalcResult
from gridcalc.calc._scheduler import Recalculator

logger = logging.getLogger(__name__)

DEFAULT_ROW_COUNT = 100
DEFAULT_COL_COUNT = 26  # A to Z

CellKey = str | tuple[int, int]
CellInput = str | int | float | None


def _normalize_input(value: CellInput) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        raise TypeError("Boolean cell input is not supported")
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise TypeError(f"Cell input must be text or a number, got {type(value).__name__}")


def literal_value(text: str) -> Any:
    """Value of non-formula input: Empty, Number for numeric-looking text, else Text."""
    if text == "":
        return None
    num = parse_number(text)
    return text if num is None else num


class Grid:
    """A rows x cols sheet of cells with incremental recalculation.

    Usage::

        grid = Grid()
        grid["A1"] = "1"
        grid["A2"] = "=A1*2"
        grid.get_cell("A2").value  # 2

    Every mutation runs exactly one recalculation pass before returning
    and reports it as a :class:`RecalcResult`.
    """

    def __init__(self, rows: int = DEFAULT_ROW_COUNT, cols: int = DEFAULT_COL_COUNT) -> None:
        if rows < 1 or cols < 1:
            raise ValueError(f"Grid must have at least one row and column, got {rows}x{cols}")
        self._rows = rows
        self._cols = cols
        self._cells: dict[Address, Cell] = {}
        self._graph = DependencyGraph()
        self._recalc = Recalculator(self._graph, Evaluator())

    @classmethod
    def from_rows(
        cls,
        values: Iterable[Iterable[CellInput]],
        rows: int | None = None,
        cols: int | None = None,
    ) -> Grid:
        """Build a grid from a 2D block of inputs anchored at A1.

        The grid grows to fit the block when it is larger than the requested
        (or default) size. All inputs are loaded first and then evaluated in
        a single full pass.
        """
        block = [list(row) for row in values]
        height = max(rows or DEFAULT_ROW_COUNT, len(block))
        width = max(cols or DEFAULT_COL_COUNT, max((len(r) for r in block), default=0))
        grid = cls(height, width)
        for r, row in enumerate(block):
            for c, value in enumerate(row):
                text = _normalize_input(value)
                if text:
                    grid._apply_input(Address(r, c), text)
        grid.recalculate()
        return grid

    # ------------------------------------------------------------------
    # Dimensions and read access
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def bounds(self) -> tuple[int, int]:
        return (self._rows, self._cols)

    @property
    def generation(self) -> int:
        """Number of the most recent recalculation pass."""
        return self._recalc.generation

    def _resolve(self, key: CellKey) -> Address:
        addr = to_address(key)
        if addr.row >= self._rows or addr.col >= self._cols:
            raise IndexError(f"{addr} is outside the {self._rows}x{self._cols} grid")
        return addr

    def get_cell(self, key: CellKey) -> CellSnapshot:
        """Read-only snapshot of a cell; never-written cells read as empty."""
        addr = self._resolve(key)
        cell = self._cells.get(addr)
        if cell is None:
            return CellSnapshot(addr, "", None, 0)
        return cell.snapshot()

    def __getitem__(self, key: CellKey) -> CellSnapshot:
        return self.get_cell(key)

    def __setitem__(self, key: CellKey, value: CellInput) -> None:
        self.set_cell_input(key, value)

    def iter_cells(self) -> Iterator[CellSnapshot]:
        """Snapshots of every non-empty cell in row-major order."""
        for addr in sorted(self._cells):
            cell = self._cells[addr]
            if cell.raw_input:
                yield cell.snapshot()

    def precedents_of(self, key: CellKey) -> frozenset[Address]:
        return frozenset(self._graph.precedents.get(self._resolve(key), ()))

    def dependents_of(self, key: CellKey) -> frozenset[Address]:
        return frozenset(self._graph.dependents.get(self._resolve(key), ()))

    @property
    def circular_cells(self) -> frozenset[Address]:
        return self._graph.circular

    # ------------------------------------------------------------------
    # CellStore protocol (driven by the Recalculator)
    # ------------------------------------------------------------------

    def formula_of(self, address: Address) -> Node | None:
        cell = self._cells.get(address)
        return cell.ast if cell is not None else None

    def value_of(self, address: Address) -> Any:
        cell = self._cells.get(address)
        return cell.value if cell is not None else None

    def raw_input_of(self, address: Address) -> str:
        cell = self._cells.get(address)
        return cell.raw_input if cell is not None else ""

    def store_value(self, address: Address, value: Any, generation: int) -> None:
        cell = self._cells.get(address)
        if cell is None:
            cell = self._cells[address] = Cell(address)
        cell.value = value
        cell.generation = generation

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def set_cell_input(self, key: CellKey, value: CellInput) -> RecalcResult:
        """Set a cell's raw input and recalculate everything it affects.

        Text starting with ``=`` is a formula. Anything else is a literal:
        numeric-looking text becomes a number, empty text clears the cell.
        """
        return self.set_cell_inputs({key: value})

    def set_cell_inputs(self, inputs: Mapping[CellKey, CellInput]) -> RecalcResult:
        """Apply several inputs and recalculate them in a single pass."""
        staged = {self._resolve(k): _normalize_input(v) for k, v in inputs.items()}
        previous = {addr: self.value_of(addr) for addr in staged}
        for addr, text in staged.items():
            self._apply_input(addr, text)
        _, released = self._graph.refresh_cycles(staged)
        return self._recalc.run(self, staged, released, previous)

    def _apply_input(self, addr: Address, text: str) -> None:
        """Update the cell's input, AST and edges; values are left to the pass."""
        cell = self._cells.get(addr)
        if cell is None:
            cell = self._cells[addr] = Cell(addr)

        if cell.raw_input != text:
            cell.raw_input = text
            cell.ast = None
            if text.startswith("="):
                try:
                    cell.ast = parse_formula(text)
                except FormulaParseError as e:
                    logger.debug("Cannot parse formula %r in %s: %s", text, addr, e)
                    cell.value = CellError.PARSE
            else:
                cell.value = literal_value(text)

        precedents = references(cell.ast, self.bounds) if cell.ast is not None else ()
        self._graph.set_precedents(addr, precedents)

    def recalculate(self) -> RecalcResult:
        """Full-grid pass: re-check every cycle and evaluate every cell."""
        formulas = [a for a, c in self._cells.items() if c.ast is not None]
        self._graph.refresh_cycles(formulas)
        return self._recalc.run_all(self, self._cells.keys())

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def insert_row(self, after: int) -> RecalcResult:
        """Insert an empty row below row index *after* (-1 inserts at the top)."""
        if not -1 <= after < self._rows:
            raise IndexError(f"Row index {after} out of range")
        return self._shift("row", after + 1, 1)

    def delete_row(self, index: int) -> RecalcResult:
        if not 0 <= index < self._rows:
            raise IndexError(f"Row index {index} out of range")
        if self._rows == 1:
            raise ValueError("Cannot delete the only row")
        return self._shift("row", index, -1)

    def insert_column(self, after: int) -> RecalcResult:
        """Insert an empty column right of column index *after* (-1 inserts at A)."""
        if not -1 <= after < self._cols:
            raise IndexError(f"Column index {after} out of range")
        return self._shift("col", after + 1, 1)

    def delete_column(self, index: int) -> RecalcResult:
        if not 0 <= index < self._cols:
            raise IndexError(f"Column index {index} out of range")
        if self._cols == 1:
            raise ValueError("Cannot delete the only column")
        return self._shift("col", index, -1)

    def _shift(self, axis: str, index: int, delta: int) -> RecalcResult:
        """Move cells for an insert (delta=+1) or delete (delta=-1) at *index*.

        Surviving formulas have their references rewritten and re-parsed;
        the graph is remapped and the rewritten cells are recalculated.
        """
        axis_idx = 0 if axis == "row" else 1

        def mapping(addr: Address) -> Address | None:
            coord = shift_index(addr[axis_idx], index, delta)
            if coord is None:
                return None
            return Address(coord, addr.col) if axis_idx == 0 else Address(addr.row, coord)

        moved: dict[Address, Cell] = {}
        dropped = 0
        for addr, cell in self._cells.items():
            new_addr = mapping(addr)
            if new_addr is None:
                dropped += 1
                continue
            cell.address = new_addr
            moved[new_addr] = cell
        self._cells = moved
        self._graph.remap(mapping)
        if axis_idx == 0:
            self._rows += delta
        else:
            self._cols += delta

        rewritten: dict[Address, str] = {}
        for addr, cell in self._cells.items():
            if cell.is_formula:
                text = shift_references(cell.raw_input, axis, index, delta)
                if text != cell.raw_input:
                    rewritten[addr] = text
        logger.debug(
            "%s %s at %d: %d cells dropped, %d formulas rewritten",
            "Inserted" if delta > 0 else "Deleted", axis, index, dropped, len(rewritten),
        )

        previous = {addr: self.value_of(addr) for addr in rewritten}
        for addr, text in rewritten.items():
            self._apply_input(addr, text)
        seeds = set(rewritten) | self._graph.circular
        _, released = self._graph.refresh_cycles(seeds)
        return self._recalc.run(self, rewritten, released, previous)

    def __repr__(self) -> str:
        return f"<Grid {self._rows}x{self._cols} cells={len(self._cells)}>"
