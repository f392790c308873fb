"""Recalculator: incremental closure + topological-order recalculation."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from gridcalc._utils import Address
from gridcalc.calc._evaluator import Evaluator
from gridcalc.calc._functions import CellError
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._protocol import CellDelta, CellStore, RecalcResult

logger = logging.getLogger(__name__)


def _values_differ(a: Any, b: Any) -> bool:
    """Check if two cell values differ (errors never equal text)."""
    if isinstance(a, CellError) is not isinstance(b, CellError):
        return True
    if a is None or b is None:
        return a is not b
    if isinstance(a, str) is not isinstance(b, str):
        return True
    return a != b


class Recalculator:
    """Drives the Evaluator over the cells affected by an edit.

    Usage::

        recalc = Recalculator(graph)
        result = recalc.run(grid, seeds={Address(0, 0)})

    Each call to :meth:`run` or :meth:`run_all` is one pass with its own
    generation number; every cell written during the pass is stamped with
    it.
    """

    def __init__(self, graph: DependencyGraph, evaluator: Evaluator | None = None) -> None:
        self._graph = graph
        self._evaluator = evaluator or Evaluator()
        self.generation = 0

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    def run(
        self,
        store: CellStore,
        seeds: Iterable[Address],
        released: Iterable[Address] = (),
        previous: dict[Address, Any] | None = None,
    ) -> RecalcResult:
        """Recalculate *seeds*, cells *released* from a cycle, and all their dependents.

        *previous* holds the values the seeds had before the caller
        overwrote them, so that their own change shows up in the deltas.
        """
        seeds = set(seeds)
        closure = self._graph.affected(seeds | set(released))
        return self._evaluate(store, closure, previous or {}, roots=seeds)

    def run_all(self, store: CellStore, cells: Iterable[Address]) -> RecalcResult:
        """Full-grid pass over *cells*, used once when a grid is loaded."""
        return self._evaluate(store, set(cells), {}, roots=set())

    def _evaluate(
        self,
        store: CellStore,
        closure: set[Address],
        previous: dict[Address, Any],
        roots: set[Address],
    ) -> RecalcResult:
        self.generation += 1
        gen = self.generation
        old_values = {a: previous[a] if a in previous else store.value_of(a) for a in closure}

        circular = sorted(closure & self._graph.circular)
        for addr in circular:
            store.store_value(addr, CellError.CIRCULAR, gen)

        order = self._graph.topological_order(closure)
        bounds = store.bounds
        for addr in order:
            node = store.formula_of(addr)
            if node is None:
                value = store.value_of(addr)
            else:
                value = self._evaluator.evaluate(node, store.value_of, bounds)
            store.store_value(addr, value, gen)

        evaluated = tuple(circular) + tuple(order)
        deltas = tuple(
            CellDelta(
                address=a,
                old_value=old_values[a],
                new_value=store.value_of(a),
                raw_input=store.raw_input_of(a),
            )
            for a in evaluated
            if _values_differ(old_values[a], store.value_of(a))
        )
        logger.debug(
            "Recalculated %d cells (%d circular) in generation %d",
            len(evaluated), len(circular), gen,
        )
        return RecalcResult(
            generation=gen,
            evaluated=evaluated,
            deltas=deltas,
            circular=frozenset(circular),
            max_chain_depth=self._graph.chain_depth(order, roots),
        )
