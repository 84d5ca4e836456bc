"""
aco_search/ant.py
─────────────────
One ant: builds one complete DAG, one arc at a time.

What does an ant do?
─────────────────────
Starting from an empty network, the ant keeps adding the arc it finds most
appealing until no arc can improve the score any further. "Appealing"
mixes two signals:

1. Pheromone trail (τ): what earlier ants learned. Shared PheromoneField.
2. Score gain (Δ):      what the data says right now. Private ArcCache,
                        rescored for the changed column after every commit.

The selection rule
──────────────────
Each step draws u ~ U[0, 1):

  u <  q0 → exploitation: take the arc maximising τ · Δ^β
            (scan head-major, tail-minor; strict > so the first one wins)
  u ≥ q0 → exploration:  roulette wheel over attractiveness τ^α · Δ^β,
            r ~ U[0, eligible_sum), first arc whose running sum reaches r

Both paths only consider arcs with Δ > 0 that the structure reports legal,
so both draw from the same candidate set that eligible_count describes.

After a commit t → h
────────────────────
  1. invalidate (t, h), mark it in the adjacency snapshot
  2. A = {t} ∪ ancestors(t)     (breadth-first over parent sets)
     D = {h} ∪ descendants(h)   (breadth-first over committed arcs)
     invalidate every (a, d): a path a ⇝ d already runs through t → h.
     (d, a) needs no entry: legal_to_add already rejects it as a cycle.
  3. refresh column h (its parent set changed), rescan eligibility
  4. local pheromone update on (t, h)

The structure only grows during a construction, so anything invalidated
stays invalid: the cache never has to resurrect an entry.

Random stream
─────────────
The ant holds ONE numpy Generator for the whole colony run. It is not
re-seeded per construction, so a fixed seed gives one deterministic stream
across every ant of every iteration.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Iterable, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from aco_search.cache import ArcCache
from aco_search.pheromone import PheromoneField
from bayesnet.learning.scoring import LocalScorer
from bayesnet.learning.structure import BayesNetStructure
from bayesnet.shared.models import ALPHA, BETA, EXPLORATION_COEFF, Q0

logger = logging.getLogger(__name__)

Arc = Tuple[int, int]


def breadth_first(start: int, next_nodes: Callable[[int], Iterable[int]]) -> List[int]:
    """
    Every node reachable from start (start included), in BFS order.

    next_nodes(n) yields the nodes one edge away from n; the ant calls this
    once with parent-set lookup (ancestors) and once with adjacency lookup
    (descendants).
    """
    visited = [start]
    seen = {start}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        for nxt in next_nodes(node):
            nxt = int(nxt)
            if nxt not in seen:
                seen.add(nxt)
                visited.append(nxt)
                queue.append(nxt)
    return visited


class Ant:
    """
    Reusable DAG constructor.

    Unlike a single-use ant, this one is created once per colony run and
    called once per construction: its random stream must carry over from
    one construction to the next.

    Attributes:
        arcs     : NDArray[bool] (n×n) arcs committed by the last construction.
        n_steps  : int  number of arcs committed by the last construction.
        cache    : Optional[ArcCache]  cache of the last construction.
    """

    def __init__(
        self,
        scorer: LocalScorer,
        rng: np.random.Generator,
        pheromone0: float,
        alpha: float = ALPHA,
        beta: float = BETA,
        q0: float = Q0,
        exploration_coeff: float = EXPLORATION_COEFF,
    ) -> None:
        self._scorer = scorer
        self._rng = rng
        self._pheromone0 = pheromone0
        self._alpha = alpha
        self._beta = beta
        self._q0 = q0
        self._exploration_coeff = exploration_coeff

        # Populated by construct()
        self.arcs: Optional[NDArray[np.bool_]] = None
        self.n_steps: int = 0
        self.cache: Optional[ArcCache] = None

    # ── Construction ──────────────────────────────────────────────────────────

    def construct(
        self, structure: BayesNetStructure, pheromone: PheromoneField
    ) -> int:
        """
        Build one DAG into structure (reset first) and return its arc count.

        Writes to pheromone (local update on every committed arc).
        Scorer failures propagate and leave structure half-built; the
        colony never exposes a scratch structure to its caller.
        """
        n = structure.n_nodes
        structure.reset()
        self.arcs = np.zeros((n, n), dtype=bool)
        self.n_steps = 0
        cache = ArcCache(n, self._alpha, self._beta)
        self.cache = cache
        cache.initialize(structure, self._scorer, pheromone)

        while cache.eligible_count > 0:
            arc = self._select_arc(cache, structure, pheromone)
            if arc is None:
                break
            self._commit(arc, cache, structure, pheromone)

        logger.debug("Ant committed %d arcs", self.n_steps)
        return self.n_steps

    def _commit(
        self,
        arc: Arc,
        cache: ArcCache,
        structure: BayesNetStructure,
        pheromone: PheromoneField,
    ) -> None:
        tail, head = arc
        structure.add_parent(head, tail)
        cache.invalidate(tail, head)
        self.arcs[tail, head] = True
        self.n_steps += 1

        self._invalidate_through(tail, head, cache, structure)

        cache.refresh(head, structure, self._scorer, pheromone)
        cache.rescan(structure)

        pheromone.local_update(tail, head, self._exploration_coeff)

    def _invalidate_through(
        self,
        tail: int,
        head: int,
        cache: ArcCache,
        structure: BayesNetStructure,
    ) -> None:
        """Invalidate every arc between A = anc*(tail) and D = desc*(head)."""
        arcs = self.arcs
        ancestors = breadth_first(tail, structure.parents_of)
        descendants = breadth_first(head, lambda node: np.flatnonzero(arcs[node]))
        for a in ancestors:
            for d in descendants:
                cache.invalidate(a, d)

    # ── Arc selection ─────────────────────────────────────────────────────────

    def _select_arc(
        self,
        cache: ArcCache,
        structure: BayesNetStructure,
        pheromone: PheromoneField,
    ) -> Optional[Arc]:
        """One uniform draw decides exploitation vs exploration."""
        if self._rng.random() < self._q0:
            return self._best_arc(cache, structure, pheromone)
        return self._roulette_arc(cache)

    def _best_arc(
        self,
        cache: ArcCache,
        structure: BayesNetStructure,
        pheromone: PheromoneField,
    ) -> Optional[Arc]:
        """
        Exploitation: argmax of τ · Δ^β over legal arcs with Δ > 0.

        Scan order is head-major, tail-minor and the comparison is strict,
        so the first maximum found wins. Legality is asked of the structure
        only for arcs that would actually beat the current best.
        """
        best: Optional[Arc] = None
        best_value = 0.0
        n = cache.n_nodes
        delta = cache.delta_score
        for head in range(n):
            for tail in range(n):
                gain = delta[tail, head]
                if not gain > 0.0:
                    continue
                value = pheromone.value(tail, head) * gain ** self._beta
                if (best is None or value > best_value) and structure.legal_to_add(tail, head):
                    best = (tail, head)
                    best_value = value
        return best

    def _roulette_arc(self, cache: ArcCache) -> Optional[Arc]:
        """
        Exploration: proportional selection over eligible attractiveness.

        The candidates are the cells left positive by the last rescan (the
        structure has not changed since, so they are exactly the legal
        arcs with Δ > 0). Cumulative sum in head-major, tail-minor order,
        then the first index whose running total reaches r.
        """
        r = self._rng.random() * cache.eligible_sum

        # Transpose so that a C-order ravel walks head-major, tail-minor.
        weights = cache.attractiveness.T.ravel()
        candidates = np.flatnonzero(weights > 0.0)
        if candidates.size == 0:
            return None
        cumulative = np.cumsum(weights[candidates])
        position = int(np.searchsorted(cumulative, r, side="left"))
        if position >= candidates.size:
            # r landed past the last running total through rounding
            return None
        head, tail = divmod(int(candidates[position]), cache.n_nodes)
        return (tail, head)

    def __repr__(self) -> str:
        return (
            f"Ant(q0={self._q0}, alpha={self._alpha}, beta={self._beta}, "
            f"last_steps={self.n_steps})"
        )
