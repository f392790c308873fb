"""gridcalc - spreadsheet formula evaluation with incremental recalculation.

Usage::

    from gridcalc import Grid

    grid = Grid()
    grid["A1"] = "1"
    grid["A2"] = "2"
    grid["A3"] = "=SUM(A1:A2)*10"
    print(grid["A3"].value)  # 30.0

    grid.delete_row(0)
    print(grid["A2"].raw_input)  # "=SUM(A1:A1)*10"
"""

from gridcalc._cell import CellSnapshot
from gridcalc._grid import DEFAULT_COL_COUNT, DEFAULT_ROW_COUNT, Grid
from gridcalc._tools import copy_cell, find_replace, remove_duplicates
from gridcalc._utils import (
    Address,
    CellRange,
    InvalidReferenceError,
    column_to_index,
    expand_range,
    index_to_column,
    parse_address,
    parse_range,
)
from gridcalc.calc import CellError, RecalcResult

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Address",
    "CellError",
    "CellRange",
    "CellSnapshot",
    "DEFAULT_COL_COUNT",
    "DEFAULT_ROW_COUNT",
    "Grid",
    "InvalidReferenceError",
    "RecalcResult",
    "column_to_index",
    "copy_cell",
    "expand_range",
    "find_replace",
    "index_to_column",
    "parse_address",
    "parse_range",
    "remove_duplicates",
]
