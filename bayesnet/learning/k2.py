"""
bayesnet/learning/k2.py
───────────────────────
K2: greedy parent addition along a fixed node ordering.

The colony runs K2 exactly once, for two reasons:
  1. Its total score fixes the pheromone scale: τ0 = 1 / |score(K2)|.
  2. Its structure is the first incumbent every ant has to beat.

Algorithm
─────────
  for each node v in the ordering:
      repeat:
          among the nodes BEFORE v in the ordering, find the one whose
          addition to Pa(v) gives the highest local score
          if that score beats the current one and the bound allows: add it
          else: stop with v

Only predecessors in the ordering are candidates, so the result is acyclic
by construction and no cycle check is needed.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from bayesnet.learning.scoring import LocalScorer
from bayesnet.learning.structure import BayesNetStructure

logger = logging.getLogger(__name__)


class K2Search:
    """
    Greedy baseline structure learner.

    Args:
        scorer:       score oracle bound to the dataset.
        order:        explicit node ordering. Defaults to 0..N-1.
        random_order: if True (and no explicit order), shuffle with seed.
        seed:         seed for the shuffled ordering.
    """

    def __init__(
        self,
        scorer: LocalScorer,
        order: Optional[Sequence[int]] = None,
        random_order: bool = False,
        seed: int = 1,
    ) -> None:
        self._scorer = scorer
        self._order = list(order) if order is not None else None
        self._random_order = random_order
        self._seed = seed

    def _ordering(self, n_nodes: int) -> List[int]:
        if self._order is not None:
            if sorted(self._order) != list(range(n_nodes)):
                raise ValueError(
                    f"K2 order must be a permutation of 0..{n_nodes - 1}, got {self._order}"
                )
            return list(self._order)
        if self._random_order:
            return [int(i) for i in np.random.default_rng(self._seed).permutation(n_nodes)]
        return list(range(n_nodes))

    def build_structure(self, structure: BayesNetStructure) -> None:
        """Add parents to structure in place. Existing parents are kept."""
        order = self._ordering(structure.n_nodes)

        for position, node in enumerate(order):
            current = self._scorer.local_score(node, structure.parents_of(node))
            while structure.n_parents(node) < structure.max_parents:
                best_parent = -1
                best_score = current
                for candidate in order[:position]:
                    if structure.is_arc(candidate, node):
                        continue
                    score = self._scorer.score_with_extra_parent(
                        node, structure.parents_of(node), candidate
                    )
                    if score > best_score:
                        best_score = score
                        best_parent = candidate
                if best_parent == -1:
                    break
                structure.add_parent(node, best_parent)
                current = best_score

        logger.debug("K2 built %d arcs over %d nodes", structure.n_arcs, structure.n_nodes)
