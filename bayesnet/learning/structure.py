"""
bayesnet/learning/structure.py
──────────────────────────────
BayesNetStructure: the mutable DAG every search algorithm writes into.

A structure is N parent lists plus a parent-count bound. Nothing else.
Arcs are stored only on the head side ("tail is a parent of head"), which
is what score metrics need: a node's local score depends on its parents.

Legality of adding tail → head
───────────────────────────────
  1. tail ≠ head                      (no self-loop)
  2. tail not already a parent        (no duplicate arc)
  3. len(parents(head)) < max_parents (parent bound)
  4. head is not an ancestor of tail  (would close a cycle)

Check 4 walks parent lists breadth-first from tail. It is O(N + E), which
is cheap next to a score computation at the sizes this search targets.
"""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Set, Tuple

from bayesnet.shared.models import MAX_PARENTS


class BayesNetStructure:
    """
    Parent sets of a DAG over nodes 0..n_nodes-1.

    Parent lists keep insertion order so that traversals (and therefore
    whole searches) are reproducible.

    Thread safety:
        Not thread-safe. Each ant construction owns a scratch structure.
    """

    def __init__(self, n_nodes: int, max_parents: int = MAX_PARENTS) -> None:
        if n_nodes < 1:
            raise ValueError(f"BayesNetStructure requires n_nodes≥1, got {n_nodes}")
        if max_parents < 0:
            raise ValueError(f"max_parents must be ≥0, got {max_parents}")
        self._n_nodes = n_nodes
        self._max_parents = max_parents
        self._parents: List[List[int]] = [[] for _ in range(n_nodes)]

    # ── Mutation ──────────────────────────────────────────────────────────────

    def add_parent(self, head: int, tail: int) -> None:
        """
        Make tail a parent of head.

        Only validates what would corrupt the store (range, self-loop,
        duplicate). Acyclicity and the parent bound are the caller's
        contract, checked up front with legal_to_add().
        """
        self._check_node(head)
        self._check_node(tail)
        if head == tail:
            raise ValueError(f"Self-loop on node {head} is not allowed")
        if tail in self._parents[head]:
            raise ValueError(f"Arc {tail}->{head} already exists")
        self._parents[head].append(tail)

    def delete_parent(self, head: int, tail: int) -> None:
        """Remove tail from head's parents. Raises ValueError if absent."""
        self._check_node(head)
        try:
            self._parents[head].remove(tail)
        except ValueError:
            raise ValueError(f"Arc {tail}->{head} does not exist") from None

    def reset(self) -> None:
        """Back to the empty graph."""
        for parents in self._parents:
            parents.clear()

    def copy_from(self, other: "BayesNetStructure") -> None:
        """Deep-copy every parent set of other into this structure."""
        if other.n_nodes != self._n_nodes:
            raise ValueError(
                f"Cannot copy a {other.n_nodes}-node structure into a "
                f"{self._n_nodes}-node structure"
            )
        self._parents = [list(other.parents_of(node)) for node in range(self._n_nodes)]

    def copy(self) -> "BayesNetStructure":
        clone = BayesNetStructure(self._n_nodes, self._max_parents)
        clone.copy_from(self)
        return clone

    # ── Queries ───────────────────────────────────────────────────────────────

    def parents_of(self, node: int) -> Tuple[int, ...]:
        return tuple(self._parents[node])

    def n_parents(self, node: int) -> int:
        return len(self._parents[node])

    def is_arc(self, tail: int, head: int) -> bool:
        return tail in self._parents[head]

    def ancestors(self, node: int) -> Set[int]:
        """All nodes with a directed path into node (node excluded)."""
        seen: Set[int] = set()
        queue = deque(self._parents[node])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._parents[current])
        return seen

    def would_create_cycle(self, tail: int, head: int) -> bool:
        """True if adding tail → head closes a directed cycle."""
        return tail == head or head in self.ancestors(tail)

    def legal_to_add(self, tail: int, head: int) -> bool:
        """
        Can tail → head be added without breaking DAG-ness or the bound?

        Cheapest checks first; the ancestor walk only runs when the
        three O(1)/O(k) checks pass.
        """
        if tail == head:
            return False
        if tail in self._parents[head]:
            return False
        if len(self._parents[head]) >= self._max_parents:
            return False
        return head not in self.ancestors(tail)

    def arcs(self) -> List[Tuple[int, int]]:
        """All arcs as (tail, head), head-major."""
        return [(tail, head) for head in range(self._n_nodes) for tail in self._parents[head]]

    def has_cycle(self) -> bool:
        """Kahn's algorithm over the whole graph."""
        in_degree = [len(parents) for parents in self._parents]
        children: List[List[int]] = [[] for _ in range(self._n_nodes)]
        for head, parents in enumerate(self._parents):
            for tail in parents:
                children[tail].append(head)
        queue = deque(node for node, degree in enumerate(in_degree) if degree == 0)
        visited = 0
        while queue:
            node = queue.popleft()
            visited += 1
            for child in children[node]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)
        return visited != self._n_nodes

    def parent_sets(self) -> Dict[int, List[int]]:
        return {node: list(parents) for node, parents in enumerate(self._parents)}

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def n_nodes(self) -> int:
        return self._n_nodes

    @property
    def max_parents(self) -> int:
        return self._max_parents

    @property
    def n_arcs(self) -> int:
        return sum(len(parents) for parents in self._parents)

    def _check_node(self, node: int) -> None:
        if not 0 <= node < self._n_nodes:
            raise ValueError(f"Node {node} out of range [0, {self._n_nodes})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BayesNetStructure):
            return NotImplemented
        return self._n_nodes == other._n_nodes and all(
            set(a) == set(b) for a, b in zip(self._parents, other._parents)
        )

    def __repr__(self) -> str:
        return (
            f"BayesNetStructure(n_nodes={self._n_nodes}, n_arcs={self.n_arcs}, "
            f"max_parents={self._max_parents})"
        )
