"""Cell storage and the read-only snapshot handed to callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from gridcalc.calc._functions import to_text

if TYPE_CHECKING:
    from gridcalc._utils import Address
    from gridcalc.calc._parser import Node


class Cell:
    """One materialized grid cell. Owned and mutated only by its Grid."""

    __slots__ = ("address", "raw_input", "ast", "value", "generation")

    def __init__(self, address: Address) -> None:
        self.address = address
        self.raw_input: str = ""
        self.ast: Node | None = None
        self.value: Any = None
        self.generation: int = 0

    @property
    def is_formula(self) -> bool:
        return self.raw_input.startswith("=")

    def snapshot(self) -> CellSnapshot:
        return CellSnapshot(self.address, self.raw_input, self.value, self.generation)

    def __repr__(self) -> str:
        return f"<Cell {self.address} raw={self.raw_input!r} value={self.value!r}>"


@dataclass(frozen=True)
class CellSnapshot:
    """Read-only view of a cell at the time it was read."""

    address: Address
    raw_input: str
    value: Any
    generation: int = 0

    @property
    def display(self) -> str:
        """Text a UI would render: error codes, formatted numbers or text."""
        return to_text(self.value)

    @property
    def coordinate(self) -> str:
        return self.address.a1
