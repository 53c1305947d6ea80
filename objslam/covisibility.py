"""Covisibility graph and spanning tree between frames that observe shared points."""

from __future__ import annotations

import threading
from collections import Counter, defaultdict
from typing import Hashable, Iterable


class CovisibilityGraph:
    """Weighted covisibility links between nodes and a spanning tree over them.

    ``weights[node]`` maps each neighbour to the number of points both observe,
    ``parents`` and ``children`` hold the spanning tree and ``bad`` the nodes
    removed with ``set_bad``.
    """

    def __init__(self):
        self.weights: dict[Hashable, dict[Hashable, int]] = {}
        self.parents: dict[Hashable, Hashable] = {}
        self.children: defaultdict[Hashable, set] = defaultdict(set)
        self.bad: set = set()
        self._ordered: dict[Hashable, list] = {}
        self._lock = threading.RLock()

    def _reorder(self, node) -> None:
        weights = self.weights.get(node, {})
        self._ordered[node] = sorted(weights, key=lambda other: weights[other], reverse=True)

    def add_connection(self, node, other, weight: int) -> None:
        """Set the weight of the link from ``node`` to ``other``."""
        with self._lock:
            self.weights.setdefault(node, {})[other] = weight
            self._reorder(node)

    def best_covisible(self, node, n: int) -> list:
        """Return up to ``n`` neighbours of ``node``, strongest link first."""
        with self._lock:
            return list(self._ordered.get(node, [])[:n])

    def update_connections(self, node, observations: Iterable, threshold: int) -> list:
        """Rebuild the links of ``node`` from the observers of each of its points.

        ``observations`` holds, for each point of ``node``, the nodes observing it
        (``None`` for a point that is gone). Neighbours sharing at least
        ``threshold`` points are linked back to ``node``; if none does, the one
        sharing most is. The strongest neighbour becomes the parent of ``node``.
        Returns the linked neighbours, strongest first.
        """
        counter: Counter = Counter()
        for observers in observations:
            if observers is None:
                continue
            for other in observers:
                if other != node:
                    counter[other] += 1
        if not counter:
            return []

        pairs: list[tuple[Hashable, int]] = []
        best, best_count = None, 0
        for other, count in counter.items():
            if count > best_count:
                best, best_count = other, count
            if count >= threshold:
                pairs.append((other, count))
                self.add_connection(other, node, count)
        if not pairs:
            pairs.append((best, best_count))
            self.add_connection(best, node, best_count)

        pairs.sort(key=lambda pair: pair[1], reverse=True)
        ordered = [other for other, _ in pairs]
        with self._lock:
            self.weights[node] = dict(counter)
            self._ordered[node] = ordered
            parent = ordered[0]
            self.parents[node] = parent
            self.children[parent].add(node)
        return list(ordered)

    def set_bad(self, node) -> None:
        """Remove ``node`` from the graph and hand its children to other parents.

        Each child is attached to the connected parent candidate it shares most
        points with, candidates starting with the parent of ``node`` and growing
        with every child placed. Children left over go to the parent of ``node``.
        """
        with self._lock:
            for other in list(self.weights.get(node, {})):
                neighbour_weights = self.weights.get(other)
                if neighbour_weights is not None and node in neighbour_weights:
                    del neighbour_weights[node]
                    self._reorder(other)
            self.weights[node] = {}
            self._ordered[node] = []

            parent = self.parents.get(node)
            candidates = {parent} if parent is not None else set()
            remaining = set(self.children.get(node, set()))

            while remaining:
                best_weight = -1
                chosen_child = chosen_parent = None
                for child in remaining:
                    if child in self.bad:
                        continue
                    child_weights = self.weights.get(child, {})
                    for neighbour in self._ordered.get(child, []):
                        if neighbour in candidates:
                            weight = child_weights.get(neighbour, 0)
                            if weight > best_weight:
                                best_weight = weight
                                chosen_child, chosen_parent = child, neighbour
                if chosen_child is None:
                    break
                self._change_parent(chosen_child, chosen_parent)
                candidates.add(chosen_child)
                remaining.discard(chosen_child)

            for child in remaining:
                self._change_parent(child, parent)

            self.children.pop(node, None)
            if parent is not None:
                self.children[parent].discard(node)
            self.bad.add(node)

    def _change_parent(self, child, parent) -> None:
        if parent is None:
            self.parents.pop(child, None)
            return
        self.parents[child] = parent
        self.children[parent].add(child)

    def local_nodes(self, observations: Iterable) -> list:
        """Return the nodes observing any of the given points, in order of first appearance.

        ``observations`` holds, for each point, its observing nodes or ``None``
        for a point that is gone.
        """
        counter: Counter = Counter()
        for observers in observations:
            if observers is None:
                continue
            for other in observers:
                counter[other] += 1
        return list(counter)