"""Formula tokenizer, recursive descent parser and reference helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

from gridcalc._utils import Address, CellRange, a1_to_rowcol, expand_range, rowcol_to_a1
from gridcalc.calc._functions import (
    AGGREGATE_FUNCTIONS,
    TEXT_FUNCTIONS,
    CellError,
    is_supported,
    parse_number,
)


class FormulaParseError(ValueError):
    """Raised when formula text does not match the grammar."""

    def __init__(self, message: str, position: int | None = None) -> None:
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


# ---------------------------------------------------------------------------
# AST nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class CellRef:
    address: Address


@dataclass(frozen=True)
class RangeRef:
    range: CellRange


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[Node, ...]


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Node


Node = Union[Literal, CellRef, RangeRef, Call, BinaryOp, UnaryOp]


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<error>\#REF!)
  | (?P<word>[A-Za-z]+[0-9]*)
  | (?P<op>[+\-*/])
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<comma>,)
  | (?P<colon>:)
    """,
    re.VERBOSE | re.IGNORECASE | re.ASCII,
)


@dataclass(frozen=True)
class Token:
    kind: str  # number, error, ref, name, op, lparen, rparen, comma, colon, end
    text: str
    start: int
    end: int


def tokenize(body: str) -> list[Token]:
    """Split formula text (without the leading ``=``) into tokens.

    A word with trailing digits is a cell reference; letters alone are a
    function name. The list always ends with an ``end`` token.
    """
    tokens: list[Token] = []
    pos = 0
    length = len(body)
    while pos < length:
        m = _TOKEN_RE.match(body, pos)
        if m is None:
            raise FormulaParseError(f"Unexpected character {body[pos]!r}", pos)
        kind = m.lastgroup
        text = m.group()
        if kind == "word":
            kind = "ref" if text[-1].isdigit() else "name"
        if kind != "ws":
            tokens.append(Token(kind, text, m.start(), m.end()))
        pos = m.end()
    tokens.append(Token("end", "", length, length))
    return tokens


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    """Recursive descent over the token list.

    ``expression`` handles ``+``/``-``, ``term`` handles ``*``/``/`` and
    ``unary`` binds prefix signs tighter than both.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    @property
    def _current(self) -> Token:
        return self._tokens[self._pos]

    def _peek(self, offset: int = 1) -> Token:
        idx = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[idx]

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.kind != "end":
            self._pos += 1
        return tok

    def _expect(self, kind: str, what: str) -> Token:
        tok = self._current
        if tok.kind != kind:
            found = tok.text or "end of formula"
            raise FormulaParseError(f"Expected {what}, found {found!r}", tok.start)
        return self._advance()

    def parse(self) -> Node:
        if self._current.kind == "end":
            raise FormulaParseError("Empty formula", 0)
        node = self._expression()
        tok = self._current
        if tok.kind == "rparen":
            raise FormulaParseError("Unmatched ')'", tok.start)
        if tok.kind != "end":
            raise FormulaParseError(f"Unexpected {tok.text!r}", tok.start)
        return node

    def _expression(self) -> Node:
        node = self._term()
        while self._current.kind == "op" and self._current.text in "+-":
            op = self._advance().text
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self._current.kind == "op" and self._current.text in "*/":
            op = self._advance().text
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        tok = self._current
        if tok.kind == "op" and tok.text in "+-":
            self._advance()
            return UnaryOp(tok.text, self._unary())
        return self._primary()

    def _primary(self) -> Node:
        tok = self._current
        if tok.kind == "number":
            self._advance()
            num = parse_number(tok.text)
            if num is None:
                raise FormulaParseError(f"Number out of range: {tok.text!r}", tok.start)
            return Literal(num)
        if tok.kind == "error":
            self._advance()
            return Literal(CellError.REF)
        if tok.kind == "ref":
            if self._peek().kind == "lparen":
                raise FormulaParseError(f"Unknown function {tok.text.upper()!r}", tok.start)
            if self._peek().kind == "colon":
                raise FormulaParseError(
                    "Ranges are only allowed as aggregate function arguments", tok.start,
                )
            self._advance()
            return CellRef(_ref_address(tok))
        if tok.kind == "name":
            return self._call()
        if tok.kind == "lparen":
            self._advance()
            node = self._expression()
            if self._current.kind != "rparen":
                raise FormulaParseError("Unmatched '('", tok.start)
            self._advance()
            return node
        if tok.kind == "end":
            raise FormulaParseError("Unexpected end of formula", tok.start)
        raise FormulaParseError(f"Unexpected {tok.text!r}", tok.start)

    def _call(self) -> Call:
        name_tok = self._advance()
        name = name_tok.text.upper()
        if self._current.kind != "lparen":
            raise FormulaParseError(f"Unknown name {name_tok.text!r}", name_tok.start)
        if not is_supported(name):
            raise FormulaParseError(f"Unknown function {name!r}", name_tok.start)
        open_tok = self._advance()
        aggregate = name in AGGREGATE_FUNCTIONS
        args: list[Node] = []
        if self._current.kind != "rparen":
            args.append(self._argument(aggregate))
            while self._current.kind == "comma":
                self._advance()
                args.append(self._argument(aggregate))
        if self._current.kind != "rparen":
            if self._current.kind == "end":
                raise FormulaParseError("Unmatched '('", open_tok.start)
            raise FormulaParseError(f"Unexpected {self._current.text!r}", self._current.start)
        self._advance()

        if aggregate and not args:
            raise FormulaParseError(f"{name} requires at least 1 argument", name_tok.start)
        if name in TEXT_FUNCTIONS and len(args) != 1:
            raise FormulaParseError(f"{name} requires exactly 1 argument", name_tok.start)
        return Call(name, tuple(args))

    def _argument(self, allow_range: bool) -> Node:
        tok = self._current
        if tok.kind == "ref" and self._peek().kind == "colon":
            if not allow_range:
                raise FormulaParseError(
                    "Ranges are only allowed as aggregate function arguments", tok.start,
                )
            self._advance()
            self._advance()
            end_tok = self._current
            if end_tok.kind != "ref" or self._peek().kind == "lparen":
                raise FormulaParseError("Malformed range", tok.start)
            self._advance()
            if self._current.kind not in ("comma", "rparen"):
                raise FormulaParseError(
                    "A range must be a whole function argument", self._current.start,
                )
            return RangeRef(CellRange.from_corners(_ref_address(tok), _ref_address(end_tok)))
        return self._expression()


def _ref_address(tok: Token) -> Address:
    try:
        row, col = a1_to_rowcol(tok.text)
    except ValueError as e:
        raise FormulaParseError(str(e), tok.start) from None
    return Address(row, col)


def parse_formula(formula: str) -> Node:
    """Parse formula text (with or without the leading ``=``) into an AST.

    Raises FormulaParseError when the text does not match the grammar.
    """
    body = formula[1:] if formula.startswith("=") else formula
    return _Parser(tokenize(body)).parse()


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def _clip(cell_range: CellRange, bounds: tuple[int, int]) -> CellRange | None:
    rows, cols = bounds
    start, end = cell_range
    if start.row >= rows or start.col >= cols:
        return None
    return CellRange(start, Address(min(end.row, rows - 1), min(end.col, cols - 1)))


def references(node: Node, bounds: tuple[int, int] | None = None) -> set[Address]:
    """Collect every address *node* reads, with ranges expanded.

    With *bounds* ``(rows, cols)``, addresses outside the grid are dropped
    and ranges are clipped before expansion.
    """
    refs: set[Address] = set()
    stack: list[Node] = [node]
    while stack:
        n = stack.pop()
        if isinstance(n, CellRef):
            if bounds is None or (n.address.row < bounds[0] and n.address.col < bounds[1]):
                refs.add(n.address)
        elif isinstance(n, RangeRef):
            rng = n.range if bounds is None else _clip(n.range, bounds)
            if rng is not None:
                refs.update(expand_range(rng))
        elif isinstance(n, Call):
            stack.extend(n.args)
        elif isinstance(n, BinaryOp):
            stack.append(n.left)
            stack.append(n.right)
        elif isinstance(n, UnaryOp):
            stack.append(n.operand)
    return refs


# ---------------------------------------------------------------------------
# Structural rewrite: shift references for row/column insert and delete
# ---------------------------------------------------------------------------

_REF_TEXT = "#REF!"


def shift_index(coord: int, index: int, delta: int) -> int | None:
    """New coordinate after inserting (delta=+1) or deleting (delta=-1) at *index*."""
    if delta > 0:
        return coord + delta if coord >= index else coord
    if coord == index:
        return None
    return coord - 1 if coord > index else coord


def _shift_span(lo: int, hi: int, index: int, delta: int) -> tuple[int, int] | None:
    if delta > 0:
        return (
            lo + delta if lo >= index else lo,
            hi + delta if hi >= index else hi,
        )
    if lo == hi == index:
        return None
    return (lo if lo <= index else lo - 1, hi if hi < index else hi - 1)


def _shift_edits(
    tokens: list[Token], axis_idx: int, index: int, delta: int,
) -> list[tuple[int, int, str]]:
    """Text replacements ``(start, end, text)`` for every shifted reference."""
    edits: list[tuple[int, int, str]] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.kind != "ref" or tokens[i + 1].kind == "lparen":
            i += 1
            continue
        if tokens[i + 1].kind == "colon" and tokens[i + 2].kind == "ref":
            end_tok = tokens[i + 2]
            rng = CellRange.from_corners(_ref_address(tok), _ref_address(end_tok))
            lo, hi = rng.start[axis_idx], rng.end[axis_idx]
            span = _shift_span(lo, hi, index, delta)
            if span is None:
                edits.append((tok.start, end_tok.end, _REF_TEXT))
            elif span != (lo, hi):
                start = list(rng.start)
                end = list(rng.end)
                start[axis_idx], end[axis_idx] = span
                text = f"{rowcol_to_a1(*start)}:{rowcol_to_a1(*end)}"
                edits.append((tok.start, end_tok.end, text))
            i += 3
            continue
        addr = list(_ref_address(tok))
        coord = shift_index(addr[axis_idx], index, delta)
        if coord is None:
            edits.append((tok.start, tok.end, _REF_TEXT))
        elif coord != addr[axis_idx]:
            addr[axis_idx] = coord
            edits.append((tok.start, tok.end, rowcol_to_a1(*addr)))
        i += 1
    return edits


def shift_references(formula: str, axis: str, index: int, delta: int) -> str:
    """Rewrite the references in *formula* for a structural edit.

    *axis* is ``"row"`` or ``"col"``. With ``delta=+1`` a line is inserted
    at *index* and every coordinate at or past it moves by one. With
    ``delta=-1`` the line at *index* is removed: references into it become
    ``#REF!`` and ranges crossing it shrink. Formulas that cannot be
    tokenized are returned unchanged.
    """
    if axis not in ("row", "col"):
        raise ValueError(f"axis must be 'row' or 'col', got {axis!r}")
    if not formula.startswith("="):
        return formula
    body = formula[1:]
    try:
        edits = _shift_edits(tokenize(body), 0 if axis == "row" else 1, index, delta)
    except FormulaParseError:
        return formula

    for start, end, text in reversed(edits):
        body = body[:start] + text + body[end:]
    return "=" + body
