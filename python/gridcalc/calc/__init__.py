"""gridcalc.calc - Formula parsing, dependency tracking and recalculation."""

from gridcalc.calc._evaluator import Evaluator
from gridcalc.calc._functions import (
    FUNCTION_CATALOG,
    FUNCTION_WHITELIST,
    CellError,
    FunctionInfo,
    FunctionRegistry,
    RangeValue,
    describe_function,
    first_error,
    is_error,
    is_supported,
)
from gridcalc.calc._graph import CircularReferenceError, DependencyGraph
from gridcalc.calc._parser import (
    BinaryOp,
    Call,
    CellRef,
    FormulaParseError,
    Literal,
    RangeRef,
    UnaryOp,
    parse_formula,
    references,
    shift_references,
)
from gridcalc.calc._protocol import CellDelta, CellStore, RecalcResult
from gridcalc.calc._scheduler import Recalculator

__all__ = [
    "BinaryOp",
    "Call",
    "CellDelta",
    "CellError",
    "CellRef",
    "CellStore",
    "CircularReferenceError",
    "DependencyGraph",
    "Evaluator",
    "FUNCTION_CATALOG",
    "FUNCTION_WHITELIST",
    "FormulaParseError",
    "FunctionInfo",
    "FunctionRegistry",
    "Literal",
    "RangeRef",
    "RangeValue",
    "RecalcResult",
    "Recalculator",
    "UnaryOp",
    "describe_function",
    "first_error",
    "is_error",
    "is_supported",
    "parse_formula",
    "references",
    "shift_references",
]
