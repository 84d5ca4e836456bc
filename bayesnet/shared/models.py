"""
bayesnet/shared/models.py
─────────────────────────
Configuration and result models shared by the ACO search and the CLI.

Design philosophy
-----------------
Every knob the colony reads lives on ACOConfig, validated by pydantic
before a single score is computed. A bad hyperparameter (negative ant
count, q0 outside [0, 1]) is a caller bug: it is rejected up front with
a ValidationError instead of surfacing halfway through a long run.

Reading guide
-------------
Read top-to-bottom. Defaults first, then the enum, then the models.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: DEFAULTS
# Module-level so tests and the CLI can import and assert against them.
# ─────────────────────────────────────────────────────────────────────────────

ALPHA: float = 1.0
"""Pheromone exponent α in τ^α · Δ^β."""

BETA: float = 2.0
"""Score-gain exponent β in τ^α · Δ^β.
β=2 squares each gain, so an arc worth 0.9 is 9× more attractive than
one worth 0.3 when pheromone is still uniform.
"""

Q0: float = 0.8
"""Probability of exploitation (greedy best arc) for each selection."""

EXPLORATION_COEFF: float = 0.4
"""Local decay x: τ ← (1 − x)·τ + x·τ0 on every committed arc."""

EVAPORATION_COEFF: float = 0.4
"""Global decay ρ: τ ← (1 − ρ)·τ + ρ/|best score| once per iteration."""

N_ITERATIONS: int = 100
N_ANTS: int = 10
SEED: int = 1

MAX_PARENTS: int = 100000
"""Effectively unbounded parent sets."""

REFINE_EVERY: int = 10
"""Hill-climb the ant structures on iterations 0, 10, 20, ..."""

PRIOR_ALPHA: float = 0.5
"""Dirichlet pseudo-count for the BAYES metric."""


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: ENUMERATIONS
# ─────────────────────────────────────────────────────────────────────────────

class ScoreType(str, Enum):
    """
    The local score metrics a LocalScorer can compute.

    BAYES   → Bayesian Dirichlet score with a uniform pseudo-count.
    BDEU    → Bayesian Dirichlet equivalent uniform (sample size 1).
    MDL     → log-likelihood minus ½·q·(r−1)·ln(n).
    AIC     → log-likelihood minus q·(r−1).
    ENTROPY → plain log-likelihood, no complexity penalty.

    All are "higher is better" and usually negative.
    """
    BAYES = "bayes"
    BDEU = "bdeu"
    MDL = "mdl"
    AIC = "aic"
    ENTROPY = "entropy"


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

class ACOConfig(BaseModel):
    """
    Hyperparameters of one colony run.

    Fields:
        alpha, beta        → exponents of the attractiveness formula.
        q0                 → exploitation probability per arc selection.
        exploration_coeff  → local (per committed arc) decay toward τ0.
        evaporation_coeff  → global (per iteration) decay toward 1/|best|.
        n_iterations       → outer loop bound. 0 returns the baseline.
        n_ants             → constructions per iteration.
        seed               → seeds the single random stream of the run (≥ 0).
        max_parents        → parent-set bound enforced by the structure.
        refine_every       → hill-climbing cadence; 0 disables refinement.
        score_type         → local score metric.
        prior_alpha        → pseudo-count for ScoreType.BAYES.
    """
    alpha: float = Field(ALPHA, ge=0.0, description="Pheromone exponent")
    beta: float = Field(BETA, ge=0.0, description="Score-gain exponent")
    q0: float = Field(
        Q0, ge=0.0, le=1.0,
        description="Probability of greedy (exploitation) arc selection"
    )
    exploration_coeff: float = Field(
        EXPLORATION_COEFF, ge=0.0, le=1.0,
        description="Local pheromone decay applied to each committed arc"
    )
    evaporation_coeff: float = Field(
        EVAPORATION_COEFF, ge=0.0, le=1.0,
        description="Global pheromone decay applied once per iteration"
    )
    n_iterations: int = Field(N_ITERATIONS, ge=0, description="Number of iterations")
    n_ants: int = Field(N_ANTS, ge=0, description="Ants per iteration")
    seed: int = Field(SEED, ge=0, description="Seed of the shared random stream")
    max_parents: int = Field(
        MAX_PARENTS, ge=0,
        description="Maximum number of parents per node"
    )
    refine_every: int = Field(
        REFINE_EVERY, ge=0,
        description="Run the hill climber every N-th iteration (0 = never)"
    )
    score_type: ScoreType = Field(ScoreType.BAYES, description="Local score metric")
    prior_alpha: float = Field(
        PRIOR_ALPHA, gt=0.0,
        description="Dirichlet pseudo-count used by the BAYES metric"
    )


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: RESULT
# ─────────────────────────────────────────────────────────────────────────────

class SearchResult(BaseModel):
    """
    Summary of one Colony.run() call.

    parent_sets is the same assignment that was copied into the caller's
    structure. incumbent_trace holds the incumbent score after every ant
    (baseline first), so it is non-decreasing by construction.
    """
    parent_sets: Dict[int, List[int]]
    best_score: float
    baseline_score: float
    pheromone0: float = Field(..., gt=0.0)
    n_iterations: int = Field(..., ge=0)
    n_ants: int = Field(..., ge=0)
    incumbent_trace: List[float] = Field(default_factory=list)
    elapsed_ms: float = Field(0.0, ge=0.0)

    @property
    def n_arcs(self) -> int:
        """Total number of arcs in the returned structure."""
        return sum(len(parents) for parents in self.parent_sets.values())
