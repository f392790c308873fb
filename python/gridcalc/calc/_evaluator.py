"""Evaluator: walks a parsed formula AST against live cell values.

Each node type has one explicit policy for every value variant (Empty,
Number, Text, error), so no formula text is ever executed as code:

* ``CellRef`` reads through the ``lookup`` callback; addresses outside the
  grid read as ``#REF!``.
* ``RangeRef`` resolves to a row-major :class:`RangeValue` and is only
  reachable as an aggregate argument.
* ``BinaryOp``/``UnaryOp`` coerce operands to numbers. Empty reads as 0,
  numeric text as its number, and any other text yields ``#VALUE!``.
* A numeric result that overflows or is not finite yields ``#VALUE!``.
* Errors are values. The first one met, left to right, is returned
  unchanged by every enclosing node.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

from gridcalc._utils import Address, expand_range
from gridcalc.calc._functions import CellError, FunctionRegistry, RangeValue, to_number
from gridcalc.calc._parser import BinaryOp, Call, CellRef, Literal, Node, RangeRef, UnaryOp

logger = logging.getLogger(__name__)

ValueLookup = Callable[[Address], Any]


def _arith(left: Any, op: str, right: Any) -> Any:
    """Evaluate ``+ - * /`` on two already-evaluated operands."""
    lnum = to_number(left)
    if lnum is None:
        return CellError.VALUE
    rnum = to_number(right)
    if rnum is None:
        return CellError.VALUE
    if op == "/" and rnum == 0:
        return CellError.DIV0
    try:
        if op == "+":
            result = lnum + rnum
        elif op == "-":
            result = lnum - rnum
        elif op == "*":
            result = lnum * rnum
        elif op == "/":
            result = lnum / rnum
        else:
            raise ValueError(f"Unknown operator {op!r}")
    except OverflowError:
        return CellError.VALUE
    return _finite(result)


def _finite(num: int | float) -> int | float | CellError:
    """*num* itself, or ``#VALUE!`` when it has no finite float value."""
    try:
        finite = math.isfinite(num)
    except OverflowError:
        finite = False
    return num if finite else CellError.VALUE


class Evaluator:
    """Evaluates formula ASTs.

    Usage::

        evaluator = Evaluator()
        value = evaluator.evaluate(parse_formula("=SUM(A1:A3)*2"), lookup)

    *bounds* ``(rows, cols)``, when given, makes any reference outside the
    grid evaluate to ``#REF!`` without consulting *lookup*.
    """

    def __init__(self, functions: FunctionRegistry | None = None) -> None:
        self._functions = functions or FunctionRegistry()

    def evaluate(
        self,
        node: Node,
        lookup: ValueLookup,
        bounds: tuple[int, int] | None = None,
    ) -> Any:
        """Evaluate a whole formula. An Empty result reads as 0."""
        result = self._eval(node, lookup, bounds)
        return 0 if result is None else result

    def _eval(self, node: Node, lookup: ValueLookup, bounds: tuple[int, int] | None) -> Any:
        if isinstance(node, Literal):
            return node.value

        if isinstance(node, CellRef):
            if bounds is not None and not _in_bounds(node.address, bounds):
                return CellError.REF
            return lookup(node.address)

        if isinstance(node, RangeRef):
            rng = node.range
            if bounds is not None and not _in_bounds(rng.end, bounds):
                return CellError.REF
            values = [lookup(addr) for addr in expand_range(rng)]
            return RangeValue(values=values, n_rows=rng.n_rows, n_cols=rng.n_cols)

        if isinstance(node, BinaryOp):
            left = self._eval(node.left, lookup, bounds)
            if isinstance(left, CellError):
                return left
            right = self._eval(node.right, lookup, bounds)
            if isinstance(right, CellError):
                return right
            return _arith(left, node.op, right)

        if isinstance(node, UnaryOp):
            val = self._eval(node.operand, lookup, bounds)
            if isinstance(val, CellError):
                return val
            num = to_number(val)
            if num is None:
                return CellError.VALUE
            return _finite(-num if node.op == "-" else num)

        if isinstance(node, Call):
            return self._eval_call(node, lookup, bounds)

        raise TypeError(f"Unknown AST node: {node!r}")

    def _eval_call(self, node: Call, lookup: ValueLookup, bounds: tuple[int, int] | None) -> Any:
        func = self._functions.get(node.name)
        if func is None:
            # The parser only admits whitelisted names.
            raise ValueError(f"Unsupported function: {node.name}")
        args = [self._eval(arg, lookup, bounds) for arg in node.args]
        try:
            return func(args)
        except (ValueError, OverflowError) as e:
            logger.debug("Error evaluating %s: %s", node.name, e)
            return CellError.VALUE


def _in_bounds(addr: Address, bounds: tuple[int, int]) -> bool:
    return addr.row < bounds[0] and addr.col < bounds[1]
