"""
aco_search/colony.py
────────────────────
The Colony: orchestrates the baseline, every ant and every pheromone update.

How the colony works
─────────────────────
  1. Runs K2 once on a scratch structure. Its total score S_K2 sets the
     pheromone scale, τ0 = 1/|S_K2|, and its structure is the first
     incumbent.
  2. Creates ONE PheromoneField (uniform τ0) and ONE Ant (one random
     stream, seeded from the config) for the whole run.
  3. For each iteration:
       a. each of n_ants constructions resets a scratch structure and
          builds a DAG into it; on every refine_every-th iteration the
          hill climber polishes it before scoring.
       b. any structure scoring ≥ the incumbent replaces it. Ties replace
          too, which favours the most recent of equally good structures.
       c. global pheromone update on the arcs of the LAST ant run:
              τ ← (1 − ρ)·τ + ρ/|incumbent|
  4. Copies the incumbent's parent sets into the caller's structure.

Note: the deposit goes on the LAST ant's arcs, not the iteration's best
ant. The deposit size still comes from the incumbent score.

Failure semantics
──────────────────
All work happens on scratch structures. The caller's structure is written
exactly once, at the very end, so any exception (degenerate score, scorer
failure) leaves it untouched.
"""

from __future__ import annotations

import logging
import math
import time
from typing import List, Optional

import numpy as np

from aco_search.ant import Ant
from aco_search.pheromone import PheromoneField
from bayesnet.learning.hill_climber import HillClimber
from bayesnet.learning.k2 import K2Search
from bayesnet.learning.scoring import LocalScorer
from bayesnet.learning.structure import BayesNetStructure
from bayesnet.shared.dataset import Dataset
from bayesnet.shared.models import ACOConfig, SearchResult

logger = logging.getLogger(__name__)


class DegenerateScoreError(Exception):
    """
    Raised when a total score cannot serve as a pheromone scale.

    When is this raised?
        • The baseline structure scores exactly 0 (τ0 = 1/0) or a
          non-finite value. Raised before any pheromone exists.
        • The incumbent score is 0 or non-finite at a global update.

    Caller contract:
        The search is aborted and the caller's structure is unchanged.
        Pick a different score metric or check the dataset.

    Attributes:
        score: The offending total score.
        stage: "baseline" or "global update".
    """

    def __init__(self, score: float, stage: str, message: str = "") -> None:
        self.score = score
        self.stage = stage
        default_msg = (
            f"Cannot derive a pheromone scale from {stage} score {score!r}: "
            f"1/|score| is undefined or not finite."
        )
        super().__init__(message or default_msg)


def _reciprocal(score: float, stage: str) -> float:
    if not math.isfinite(score) or score == 0.0:
        raise DegenerateScoreError(score, stage)
    value = 1.0 / abs(score)
    if not math.isfinite(value):
        raise DegenerateScoreError(score, stage)
    return value


class Colony:
    """
    Runs the full ACO structure search and returns a SearchResult.

    Usage:
        colony  = Colony(dataset, ACOConfig(n_iterations=20))
        network = BayesNetStructure(dataset.n_vars)
        result  = colony.run(network)     # network now holds the best DAG

    Collaborators default to the in-repo implementations and can be
    replaced by anything with the same methods:
        scorer   → local_score / score_with_extra_parent / total_score
        baseline → build_structure(structure)
        refiner  → build_structure(structure)

    After run():
        colony.pheromone   → the field of the last run (for inspection).
        colony.last_run_ms → wall-clock time of the last run.
    """

    def __init__(
        self,
        dataset: Dataset,
        config: Optional[ACOConfig] = None,
        scorer: Optional[LocalScorer] = None,
        baseline: Optional[K2Search] = None,
        refiner: Optional[HillClimber] = None,
    ) -> None:
        self._dataset = dataset
        self._config = config if config is not None else ACOConfig()
        self._scorer = scorer if scorer is not None else LocalScorer(
            dataset, self._config.score_type, self._config.prior_alpha
        )
        self._baseline = baseline if baseline is not None else K2Search(self._scorer)
        self._refiner = refiner if refiner is not None else HillClimber(
            self._scorer, use_arc_reversal=True
        )

        self.pheromone: Optional[PheromoneField] = None
        self.last_run_ms: float = 0.0

    def _new_structure(self) -> BayesNetStructure:
        return BayesNetStructure(self._dataset.n_vars, self._config.max_parents)

    def run(self, network: BayesNetStructure) -> SearchResult:
        """
        Search for the best DAG and copy it into network.

        Returns:
            SearchResult describing the returned structure.

        Raises:
            ValueError:           network has the wrong number of nodes.
            DegenerateScoreError: baseline or incumbent score of zero.
            Any scorer/collaborator exception, unchanged.
        """
        cfg = self._config
        n_nodes = self._dataset.n_vars
        if network.n_nodes != n_nodes:
            raise ValueError(
                f"Network has {network.n_nodes} nodes but the dataset has {n_nodes} variables"
            )

        start = time.perf_counter()
        logger.info(
            "ACO search over %d variables: %d iterations x %d ants (seed=%d)",
            n_nodes, cfg.n_iterations, cfg.n_ants, cfg.seed,
        )

        # ── Baseline: pheromone scale + first incumbent ────────────────────
        best = self._new_structure()
        self._baseline.build_structure(best)
        baseline_score = self._scorer.total_score(best)
        pheromone0 = _reciprocal(baseline_score, "baseline")
        logger.info(
            "Baseline scored %.4f with %d arcs (pheromone0=%.6g)",
            baseline_score, best.n_arcs, pheromone0,
        )

        pheromone = PheromoneField(n_nodes, pheromone0)
        self.pheromone = pheromone
        best_score = baseline_score
        trace: List[float] = [best_score]

        ant = Ant(
            self._scorer,
            np.random.default_rng(cfg.seed),
            pheromone0,
            alpha=cfg.alpha,
            beta=cfg.beta,
            q0=cfg.q0,
            exploration_coeff=cfg.exploration_coeff,
        )
        current = self._new_structure()

        # ── Main loop ──────────────────────────────────────────────────────
        for iteration in range(cfg.n_iterations):
            refine = cfg.refine_every > 0 and iteration % cfg.refine_every == 0

            for _ant in range(cfg.n_ants):
                current.reset()
                ant.construct(current, pheromone)
                if refine:
                    self._refiner.build_structure(current)

                score = self._scorer.total_score(current)
                if score >= best_score:
                    best_score = score
                    best.copy_from(current)
                trace.append(best_score)

            # Global update from the last ant's committed arcs
            if ant.arcs is not None:
                pheromone.global_update(
                    ant.arcs,
                    cfg.evaporation_coeff,
                    _reciprocal(best_score, "global update"),
                )

            logger.debug(
                "Iteration %d: incumbent %.4f%s", iteration, best_score,
                " (refined)" if refine else "",
            )

        # ── Restore the best structure into the caller's network ───────────
        network.copy_from(best)
        self.last_run_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "ACO search finished: score %.4f (baseline %.4f), %d arcs, %.1f ms",
            best_score, baseline_score, best.n_arcs, self.last_run_ms,
        )

        return SearchResult(
            parent_sets=best.parent_sets(),
            best_score=best_score,
            baseline_score=baseline_score,
            pheromone0=pheromone0,
            n_iterations=cfg.n_iterations,
            n_ants=cfg.n_ants,
            incumbent_trace=trace,
            elapsed_ms=self.last_run_ms,
        )

    @property
    def config(self) -> ACOConfig:
        return self._config

    @property
    def scorer(self) -> LocalScorer:
        return self._scorer

    def __repr__(self) -> str:
        return (
            f"Colony(n_vars={self._dataset.n_vars}, iterations={self._config.n_iterations}, "
            f"ants={self._config.n_ants}, last_run_ms={self.last_run_ms:.2f})"
        )
