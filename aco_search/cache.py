"""
aco_search/cache.py
───────────────────
ArcCache: one ant's view of "what would each arc be worth right now?"

Two dense (n_nodes × n_nodes) matrices, indexed [tail][head]:

  delta_score[t][h]     score(h, Pa(h) ∪ {t}) − score(h, Pa(h))
                        −inf means "never a candidate again in this
                        construction" (committed, invalidated, diagonal).

  attractiveness[t][h]  τ[t][h]^α · Δ[t][h]^β   when Δ > 0
                        −1                       otherwise (ineligible)

and two aggregates over the currently eligible arcs:

  eligible_count        number of arcs with Δ > 0 that are legal to add
  eligible_sum          Σ attractiveness over those arcs
                        (the roulette-wheel denominator)

Why a full rescan after every commit?
──────────────────────────────────────
Legality is not local to the changed column. Adding t → h can make an arc
in a completely different column illegal (it would now close a cycle), and
can exhaust h's parent bound. Re-deriving eligibility for all N² pairs is
the simple way to keep count/sum exact.

Non-positive Δ
──────────────
Δ ≤ 0 is never eligible. It is also never raised to β: for a non-integer β
a negative base has no real power, so the power is only taken where Δ > 0
and every other cell holds the −1 sentinel.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from aco_search.pheromone import PheromoneField
from bayesnet.learning.scoring import LocalScorer
from bayesnet.learning.structure import BayesNetStructure

INVALID: float = float("-inf")
"""delta_score sentinel: not a candidate for the rest of the construction."""

INELIGIBLE: float = -1.0
"""attractiveness sentinel: excluded from selection and from the aggregates."""


class ArcCache:
    """
    Score-gain and attractiveness cache for one ant construction.

    Lifecycle:
        1. ArcCache(n_nodes, alpha, beta)
        2. initialize(structure, scorer, pheromone)
        3. after each commit: invalidate(...), refresh(head, ...), rescan(...)
        4. discarded at the end of the construction.
    """

    def __init__(self, n_nodes: int, alpha: float, beta: float) -> None:
        if n_nodes < 1:
            raise ValueError(f"ArcCache requires n_nodes≥1, got {n_nodes}")
        self._n_nodes = n_nodes
        self._alpha = alpha
        self._beta = beta
        self.delta_score: NDArray[np.float64] = np.full(
            (n_nodes, n_nodes), INVALID, dtype=np.float64
        )
        self.attractiveness: NDArray[np.float64] = np.full(
            (n_nodes, n_nodes), INELIGIBLE, dtype=np.float64
        )
        self.eligible_count: int = 0
        self.eligible_sum: float = 0.0

    # ── Attractiveness formula ────────────────────────────────────────────────

    def _attractiveness(
        self, tau: NDArray[np.float64], delta: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """τ^α · Δ^β where Δ > 0, INELIGIBLE elsewhere (no power of Δ ≤ 0)."""
        out = np.full(delta.shape, INELIGIBLE, dtype=np.float64)
        positive = delta > 0.0
        out[positive] = np.power(tau[positive], self._alpha) * np.power(
            delta[positive], self._beta
        )
        return out

    # ── Operations ────────────────────────────────────────────────────────────

    def initialize(
        self,
        structure: BayesNetStructure,
        scorer: LocalScorer,
        pheromone: PheromoneField,
    ) -> None:
        """
        Fill both matrices against the structure's current parent sets.

        Arcs already present in the structure start out INVALID, like the
        diagonal. Scorer exceptions propagate: a half-built cache is useless.
        """
        n = self._n_nodes
        self.delta_score.fill(INVALID)
        for head in range(n):
            parents = structure.parents_of(head)
            base = scorer.local_score(head, parents)
            for tail in range(n):
                if tail == head or tail in parents:
                    continue
                self.delta_score[tail, head] = (
                    scorer.score_with_extra_parent(head, parents, tail) - base
                )
        for head in range(n):
            self.attractiveness[:, head] = self._attractiveness(
                pheromone.column(head), self.delta_score[:, head]
            )
        self.rescan(structure)

    def rescan(self, structure: BayesNetStructure) -> None:
        """
        Recompute eligibility, eligible_count and eligible_sum from scratch.

        An arc is eligible iff Δ > 0 AND structure.legal_to_add(t, h).
        Ineligible arcs get attractiveness = INELIGIBLE.
        Legality is only asked for Δ > 0 cells; everything else is
        ineligible regardless.
        """
        count = 0
        total = 0.0
        n = self._n_nodes
        for head in range(n):
            for tail in range(n):
                if self.delta_score[tail, head] > 0.0 and structure.legal_to_add(tail, head):
                    count += 1
                    total += self.attractiveness[tail, head]
                else:
                    self.attractiveness[tail, head] = INELIGIBLE
        self.eligible_count = count
        self.eligible_sum = float(total)

    def invalidate(self, tail: int, head: int) -> None:
        """Remove (tail, head) from candidacy for the rest of the construction."""
        self.delta_score[tail, head] = INVALID

    def refresh(
        self,
        head: int,
        structure: BayesNetStructure,
        scorer: LocalScorer,
        pheromone: PheromoneField,
    ) -> None:
        """
        Re-derive column `head` after its parent set changed.

        INVALID entries stay INVALID; every other tail is rescored against
        the new parent set. Call rescan() afterwards to fix the aggregates.
        """
        parents = structure.parents_of(head)
        base = scorer.local_score(head, parents)
        column = self.delta_score[:, head]
        for tail in range(self._n_nodes):
            if column[tail] == INVALID:
                continue
            column[tail] = scorer.score_with_extra_parent(head, parents, tail) - base
        self.attractiveness[:, head] = self._attractiveness(pheromone.column(head), column)

    # ── Inspection ────────────────────────────────────────────────────────────

    def eligible_mask(self) -> NDArray[np.bool_]:
        """Bool matrix of arcs counted in the aggregates at the last rescan."""
        return self.attractiveness > 0.0

    @property
    def n_nodes(self) -> int:
        return self._n_nodes

    def __repr__(self) -> str:
        return (
            f"ArcCache(n_nodes={self._n_nodes}, eligible={self.eligible_count}, "
            f"sum={self.eligible_sum:.6g})"
        )
