"""
bayesnet/learning/scoring.py
────────────────────────────
LocalScorer: the score oracle every search algorithm consults.

A Bayesian-network score decomposes over nodes:

    score(G) = Σ_v  local_score(v, parents_G(v))

so a search only ever asks "how good is node v with this parent set?"
That question is answered here from count tables over the dataset.

Count tables
────────────
For a node v with r states and a parent set Pa:
    n[j][k] = number of rows where Pa takes its j-th observed
              configuration and v takes state k.

Only OBSERVED parent configurations get a row. np.unique(..., axis=0)
numbers them, np.bincount fills the table in one pass. Unobserved
configurations contribute exactly zero to BAYES and BDEU, and nothing to
the log-likelihood, so skipping them is exact. The penalised metrics use
q = Π cardinality(Pa), the full configuration count, for their penalty.

Metrics (all "higher is better")
────────────────────────────────
  BAYES   Σ_j [ lnΓ(r·a) − lnΓ(r·a + n_j) + Σ_k (lnΓ(a + n_jk) − lnΓ(a)) ]
          a = prior_alpha pseudo-count per cell.
  BDEU    same with a = 1 / (q·r)  (equivalent sample size 1).
  ENTROPY Σ_jk n_jk · ln(n_jk / n_j)
  MDL     ENTROPY − ½ · q · (r − 1) · ln(N)
  AIC     ENTROPY − q · (r − 1)

Memoisation
───────────
An ant construction asks for the same (node, parents) pairs over and over
(every refresh rescored a whole column). Scores are cached per
(node, sorted parents); the dataset is immutable so entries never go stale.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from bayesnet.shared.dataset import Dataset
from bayesnet.shared.models import PRIOR_ALPHA, ScoreType
from bayesnet.learning.structure import BayesNetStructure

_log_gamma = np.vectorize(math.lgamma, otypes=[np.float64])


class LocalScorer:
    """
    Deterministic, memoised local score for one dataset and one metric.

    Usage:
        scorer = LocalScorer(dataset, ScoreType.BAYES)
        s  = scorer.local_score(2, (0, 1))
        s2 = scorer.score_with_extra_parent(2, (0, 1), 3)
        total = scorer.total_score(structure)
    """

    def __init__(
        self,
        dataset: Dataset,
        score_type: ScoreType = ScoreType.BAYES,
        prior_alpha: float = PRIOR_ALPHA,
    ) -> None:
        if prior_alpha <= 0.0:
            raise ValueError(f"prior_alpha must be > 0, got {prior_alpha}")
        self._dataset = dataset
        self._score_type = ScoreType(score_type)
        self._prior_alpha = prior_alpha
        self._cache: Dict[Tuple[int, Tuple[int, ...]], float] = {}

    # ── Oracle API ────────────────────────────────────────────────────────────

    def local_score(self, node: int, parents: Iterable[int]) -> float:
        """Score of node given exactly this parent set."""
        key = (node, tuple(sorted(parents)))
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        score = self._compute(node, key[1])
        self._cache[key] = score
        return score

    def score_with_extra_parent(
        self, node: int, parents: Sequence[int], candidate: int
    ) -> float:
        """Score of node if candidate were added to its parent set."""
        return self.local_score(node, tuple(parents) + (candidate,))

    def node_score(self, structure: BayesNetStructure, node: int) -> float:
        return self.local_score(node, structure.parents_of(node))

    def total_score(self, structure: BayesNetStructure) -> float:
        """Sum of local scores over every node of the structure."""
        return float(sum(
            self.node_score(structure, node) for node in range(structure.n_nodes)
        ))

    # ── Computation ───────────────────────────────────────────────────────────

    def _counts(self, node: int, parents: Tuple[int, ...]) -> NDArray[np.int64]:
        """Count table n[j][k]: one row per observed parent configuration."""
        child = self._dataset.column(node)
        r = self._dataset.cardinalities[node]
        if not parents:
            return np.bincount(child, minlength=r).reshape(1, r)

        _, config = np.unique(
            self._dataset.values[:, list(parents)], axis=0, return_inverse=True
        )
        config = config.reshape(-1)
        n_configs = int(config.max()) + 1
        flat = np.bincount(config * r + child, minlength=n_configs * r)
        return flat.reshape(n_configs, r)

    def _compute(self, node: int, parents: Tuple[int, ...]) -> float:
        for parent in parents:
            if parent == node:
                raise ValueError(f"Node {node} cannot be its own parent")
        counts = self._counts(node, parents).astype(np.float64)
        r = self._dataset.cardinalities[node]
        q = float(math.prod(self._dataset.cardinalities[p] for p in parents))

        if self._score_type is ScoreType.BAYES:
            return self._dirichlet(counts, self._prior_alpha, r)
        if self._score_type is ScoreType.BDEU:
            return self._dirichlet(counts, 1.0 / (q * r), r)

        log_likelihood = self._log_likelihood(counts)
        if self._score_type is ScoreType.ENTROPY:
            return log_likelihood
        if self._score_type is ScoreType.MDL:
            return log_likelihood - 0.5 * q * (r - 1) * math.log(self._dataset.n_instances)
        if self._score_type is ScoreType.AIC:
            return log_likelihood - q * (r - 1)
        raise ValueError(f"Unsupported score type: {self._score_type}")

    @staticmethod
    def _dirichlet(counts: NDArray[np.float64], a: float, r: int) -> float:
        """Bayesian Dirichlet log marginal likelihood with cell prior a."""
        row_totals = counts.sum(axis=1)
        score = _log_gamma(counts + a).sum() - counts.size * math.lgamma(a)
        score += counts.shape[0] * math.lgamma(r * a) - _log_gamma(row_totals + r * a).sum()
        return float(score)

    @staticmethod
    def _log_likelihood(counts: NDArray[np.float64]) -> float:
        row_totals = counts.sum(axis=1, keepdims=True)
        mask = counts > 0
        ratios = np.divide(counts, row_totals, out=np.ones_like(counts), where=mask)
        return float(np.sum(counts[mask] * np.log(ratios[mask])))

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    @property
    def score_type(self) -> ScoreType:
        return self._score_type

    @property
    def n_cached(self) -> int:
        """Number of memoised (node, parents) scores."""
        return len(self._cache)

    def __repr__(self) -> str:
        return (
            f"LocalScorer(score_type={self._score_type.value}, "
            f"n_vars={self._dataset.n_vars}, cached={len(self._cache)})"
        )
