"""Recalculation result dataclasses and the grid protocol the scheduler drives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gridcalc._utils import Address
    from gridcalc.calc._parser import Node


@dataclass(frozen=True)
class CellDelta:
    """A single cell's value change from recalculation."""

    address: Address
    old_value: Any
    new_value: Any
    raw_input: str = ""  # the input that produced new_value


@dataclass(frozen=True)
class RecalcResult:
    """Result of one recalculation pass."""

    generation: int
    evaluated: tuple[Address, ...]  # closure, in evaluation order
    deltas: tuple[CellDelta, ...]  # cells whose value changed
    circular: frozenset[Address] = frozenset()
    max_chain_depth: int = 0  # longest dependency chain from the edited cells

    @property
    def changed(self) -> frozenset[Address]:
        return frozenset(d.address for d in self.deltas)


@runtime_checkable
class CellStore(Protocol):
    """What the scheduler needs from the grid that owns the cells."""

    @property
    def bounds(self) -> tuple[int, int]:
        """``(rows, cols)`` of the grid."""
        ...

    def formula_of(self, address: Address) -> Node | None:
        """Parsed formula for *address*, or None for literal/empty cells."""
        ...

    def value_of(self, address: Address) -> Any:
        """Current value of *address* (None when empty)."""
        ...

    def raw_input_of(self, address: Address) -> str:
        """Raw input text of *address* (empty string when empty)."""
        ...

    def store_value(self, address: Address, value: Any, generation: int) -> None:
        """Write a computed value back to the grid."""
        ...
