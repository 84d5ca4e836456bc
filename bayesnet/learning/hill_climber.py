"""
bayesnet/learning/hill_climber.py
─────────────────────────────────
HillClimber: bounded local search over single-arc operations.

The colony applies it in place to ant-built structures on a fixed cadence
(every refine_every-th iteration). Ants are good at finding the right
neighbourhood; the climber polishes whatever greedy arcs an ant missed
and undoes arcs that only looked good early in a construction.

One step
────────
Evaluate every legal operation, apply the single best one if it improves
the total score:

  ADD     tail → head          Δ = s(h, Pa ∪ {t}) − s(h, Pa)
  DELETE  tail → head          Δ = s(h, Pa \\ {t}) − s(h, Pa)
  REVERSE tail → head          Δ = DELETE(t→h) + ADD(h→t on the reduced graph)

Operations are scanned ADD, DELETE, REVERSE, each head-major and
tail-minor; ties keep the first one found (strict >).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Tuple

from bayesnet.learning.scoring import LocalScorer
from bayesnet.learning.structure import BayesNetStructure

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    ADD = "add"
    DELETE = "delete"
    REVERSE = "reverse"


Move = Tuple[Operation, int, int, float]
"""(operation, tail, head, score delta)"""


class HillClimber:
    """
    Steepest-ascent hill climbing with add / delete / (optional) reverse.

    Args:
        scorer:           score oracle bound to the dataset.
        use_arc_reversal: also consider reversing existing arcs.
        max_steps:        upper bound on applied operations. None = until
                          no operation improves the score.
    """

    def __init__(
        self,
        scorer: LocalScorer,
        use_arc_reversal: bool = True,
        max_steps: Optional[int] = None,
    ) -> None:
        if max_steps is not None and max_steps < 0:
            raise ValueError(f"max_steps must be ≥0, got {max_steps}")
        self._scorer = scorer
        self._use_arc_reversal = use_arc_reversal
        self._max_steps = max_steps
        self.last_steps: int = 0

    def build_structure(self, structure: BayesNetStructure) -> None:
        """Improve structure in place until a local optimum (or max_steps)."""
        steps = 0
        while self._max_steps is None or steps < self._max_steps:
            move = self._best_move(structure)
            if move is None:
                break
            self._apply(structure, move)
            steps += 1
        self.last_steps = steps
        logger.debug("Hill climber applied %d operations", steps)

    # ── Move evaluation ───────────────────────────────────────────────────────

    def _best_move(self, structure: BayesNetStructure) -> Optional[Move]:
        best: Optional[Move] = None
        best_delta = 0.0
        n = structure.n_nodes
        scorer = self._scorer

        for head in range(n):
            parents = structure.parents_of(head)
            base = scorer.local_score(head, parents)
            for tail in range(n):
                if not structure.legal_to_add(tail, head):
                    continue
                delta = scorer.score_with_extra_parent(head, parents, tail) - base
                if delta > best_delta:
                    best_delta = delta
                    best = (Operation.ADD, tail, head, delta)

        for head in range(n):
            parents = structure.parents_of(head)
            base = scorer.local_score(head, parents)
            for tail in parents:
                reduced = tuple(p for p in parents if p != tail)
                delta = scorer.local_score(head, reduced) - base
                if delta > best_delta:
                    best_delta = delta
                    best = (Operation.DELETE, tail, head, delta)

        if self._use_arc_reversal:
            for head in range(n):
                parents = structure.parents_of(head)
                for tail in parents:
                    delta = self._reversal_delta(structure, tail, head)
                    if delta is not None and delta > best_delta:
                        best_delta = delta
                        best = (Operation.REVERSE, tail, head, delta)

        return best

    def _reversal_delta(
        self, structure: BayesNetStructure, tail: int, head: int
    ) -> Optional[float]:
        """Score delta of turning tail → head into head → tail, None if illegal."""
        if structure.n_parents(tail) >= structure.max_parents:
            return None
        head_parents = structure.parents_of(head)
        reduced = tuple(p for p in head_parents if p != tail)
        # Any other path tail ⇝ head would become a cycle with head → tail.
        for parent in reduced:
            if tail in structure.ancestors(parent):
                return None

        scorer = self._scorer
        tail_parents = structure.parents_of(tail)
        return (
            scorer.local_score(head, reduced)
            - scorer.local_score(head, head_parents)
            + scorer.score_with_extra_parent(tail, tail_parents, head)
            - scorer.local_score(tail, tail_parents)
        )

    @staticmethod
    def _apply(structure: BayesNetStructure, move: Move) -> None:
        operation, tail, head, _ = move
        if operation is Operation.ADD:
            structure.add_parent(head, tail)
        elif operation is Operation.DELETE:
            structure.delete_parent(head, tail)
        else:
            structure.delete_parent(head, tail)
            structure.add_parent(tail, head)
