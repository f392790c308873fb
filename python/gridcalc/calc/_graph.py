"""Dependency graph for formula cells with incremental edges and cycle tracking."""

from __future__ import annotations

import heapq
import logging
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from gridcalc._utils import Address

logger = logging.getLogger(__name__)


class CircularReferenceError(ValueError):
    """Raised when a topological order is requested across an unmarked cycle."""


class DependencyGraph:
    """Tracks precedent -> dependent edges between cell addresses.

    Edges are stored in both directions and kept symmetric: ``D`` is in
    ``dependents[P]`` exactly when ``P`` is in ``precedents[D]``. Cells on a
    cycle are recorded in ``circular`` together with the component they
    belong to; their edges are kept so that breaking the cycle re-admits
    them.
    """

    __slots__ = ("precedents", "dependents", "_components")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.precedents: dict[Address, set[Address]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[Address, set[Address]] = {}
        # circular cell -> the cycle component it belongs to
        self._components: dict[Address, frozenset[Address]] = {}

    # ------------------------------------------------------------------
    # Edge maintenance
    # ------------------------------------------------------------------

    def set_precedents(self, cell: Address, new: Iterable[Address]) -> None:
        """Replace the precedent set of *cell*, touching only changed edges."""
        new_set = set(new)
        old_set = self.precedents.get(cell, set())

        for p in old_set - new_set:
            deps = self.dependents.get(p)
            if deps is not None:
                deps.discard(cell)
                if not deps:
                    del self.dependents[p]
        for p in new_set - old_set:
            self.dependents.setdefault(p, set()).add(cell)

        if new_set:
            self.precedents[cell] = new_set
        else:
            self.precedents.pop(cell, None)

    def discard(self, cell: Address) -> None:
        """Remove every edge touching *cell*."""
        self.set_precedents(cell, ())
        for dep in self.dependents.pop(cell, set()):
            precs = self.precedents.get(dep)
            if precs is not None:
                precs.discard(cell)
                if not precs:
                    del self.precedents[dep]
        self._components.pop(cell, None)

    def remap(self, mapping: Callable[[Address], Address | None]) -> None:
        """Move every node through *mapping*; nodes mapped to None are dropped."""
        moved: dict[Address, set[Address]] = {}
        for cell, precs in self.precedents.items():
            new_cell = mapping(cell)
            if new_cell is None:
                continue
            new_precs = {q for q in (mapping(p) for p in precs) if q is not None}
            if new_precs:
                moved[new_cell] = new_precs

        self.precedents = moved
        self.dependents = {}
        for cell, precs in moved.items():
            for p in precs:
                self.dependents.setdefault(p, set()).add(cell)

        components: dict[Address, frozenset[Address]] = {}
        for cell, comp in self._components.items():
            new_cell = mapping(cell)
            if new_cell is not None:
                components[new_cell] = frozenset(
                    q for q in (mapping(c) for c in comp) if q is not None
                )
        self._components = components

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _reach(self, start: Address, edges: dict[Address, set[Address]]) -> set[Address]:
        seen: set[Address] = set()
        queue: deque[Address] = deque(edges.get(start, ()))
        while queue:
            cell = queue.popleft()
            if cell in seen:
                continue
            seen.add(cell)
            queue.extend(edges.get(cell, ()))
        return seen

    def affected(self, seeds: Iterable[Address]) -> set[Address]:
        """The seeds plus all of their transitive dependents."""
        closure: set[Address] = set()
        queue: deque[Address] = deque(seeds)
        while queue:
            cell = queue.popleft()
            if cell in closure:
                continue
            closure.add(cell)
            queue.extend(self.dependents.get(cell, ()))
        return closure

    def component(self, cell: Address) -> frozenset[Address]:
        """Cells on a cycle through *cell*; empty when it is on none."""
        downstream = self._reach(cell, self.dependents)
        if cell not in downstream:
            return frozenset()
        upstream = self._reach(cell, self.precedents)
        return frozenset(downstream & upstream)

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    @property
    def circular(self) -> frozenset[Address]:
        return frozenset(self._components)

    def is_circular(self, cell: Address) -> bool:
        return cell in self._components

    def refresh_cycles(self, seeds: Iterable[Address]) -> tuple[set[Address], set[Address]]:
        """Re-check cycle membership around *seeds* after edges changed.

        Every previously recorded component touching a seed is re-examined
        as well. Returns ``(circular, released)``: the cells now known to be
        on a cycle, and the cells that were circular before but no longer
        are.
        """
        candidates: set[Address] = set()
        for seed in seeds:
            candidates.add(seed)
            candidates.update(self._components.get(seed, ()))

        before = {c for c in candidates if c in self._components}
        for c in candidates:
            self._components.pop(c, None)

        circular: set[Address] = set()
        for cell in sorted(candidates):
            if cell in circular:
                continue
            comp = self.component(cell)
            if comp:
                for member in comp:
                    self._components[member] = comp
                circular.update(comp)
                logger.debug("Circular reference: %s", ", ".join(str(c) for c in sorted(comp)))

        released = before - circular
        if released:
            logger.debug("Cycle broken, releasing: %s", ", ".join(str(c) for c in sorted(released)))
        return circular, released

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def topological_order(
        self,
        nodes: Iterable[Address],
        key: Callable[[Address], Any] | None = None,
    ) -> list[Address]:
        """Order *nodes* so every precedent comes before its dependents.

        Kahn's algorithm over the subgraph induced by *nodes*, ignoring
        circular cells. Ready nodes are taken smallest-*key* first (row-major
        address by default), which makes the order deterministic.

        Raises CircularReferenceError if the induced subgraph still has a
        cycle, which means the cycle state is stale.
        """
        key_fn: Callable[[Address], Any] = key or (lambda a: a)
        members = {n for n in nodes if n not in self._components}

        in_degree: dict[Address, int] = {
            cell: len(self.precedents.get(cell, set()) & members) for cell in members
        }
        heap: list[tuple[Any, Address]] = [
            (key_fn(cell), cell) for cell, deg in in_degree.items() if deg == 0
        ]
        heapq.heapify(heap)

        order: list[Address] = []
        while heap:
            _, cell = heapq.heappop(heap)
            order.append(cell)
            for dep in self.dependents.get(cell, ()):
                if dep in members:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        heapq.heappush(heap, (key_fn(dep), dep))

        if len(order) != len(members):
            missing = members - set(order)
            raise CircularReferenceError(
                f"Circular reference detected involving: {sorted(str(m) for m in missing)}"
            )
        return order

    def chain_depth(self, order: Iterable[Address], roots: Iterable[Address]) -> int:
        """Longest dependency chain from *roots* through non-circular cells.

        *order* is a topological order covering the dependents of *roots*,
        typically the one a recalculation pass has just evaluated.
        """
        depth: dict[Address, int] = {r: 0 for r in roots}
        max_d = 0
        for cell in order:
            if cell not in depth:
                continue
            for dep in self.dependents.get(cell, ()):
                if dep in self._components:
                    continue
                new_depth = depth[cell] + 1
                if new_depth > depth.get(dep, -1):
                    depth[dep] = new_depth
                    max_d = max(max_d, new_depth)
        return max_d
