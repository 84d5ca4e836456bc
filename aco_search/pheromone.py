"""
aco_search/pheromone.py
───────────────────────
The pheromone field: the colony's shared, persistent memory.

In this search:
  • "Path"    = a DAG, built one arc at a time.
  • "Better"  = higher total network score.
  • τ[t][h]   = pheromone on the arc "t becomes a parent of h".

Two update rules pull in opposite directions:
  1. Local update   : applied by an ant to every arc it commits:
                         τ ← (1 − x)·τ + x·τ0
                      Pulls a just-used arc back toward the initial level,
                      so later ants in the same iteration are nudged
                      toward other arcs (diversity inside an iteration).
  2. Global update  : applied by the colony once per iteration to the
                      arcs of the last ant run:
                         τ ← (1 − ρ)·τ + ρ·(1/|best score|)
                      Pulls those arcs toward the scale of the incumbent
                      (learning across iterations).

Both are convex combinations of a positive current value and a positive
target, so τ can never reach zero or go negative. No clipping is needed.

Matrix layout
─────────────
  Shape : (n_nodes, n_nodes), float64
  τ[t][h]: row = tail (parent), column = head (child).
  The diagonal is never read (no self-loops) but is kept for simple indexing.

Thread safety
─────────────
Not thread-safe. Ants run sequentially and the field is passed explicitly
into each construction. Concurrent ants would need either a snapshot per
ant or a lock around local_update().
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray


class PheromoneField:
    """
    A 2D numpy array τ[n_nodes][n_nodes] of positive pheromone levels.

    Used by:
        ArcCache.initialize()/refresh() → reads column(head) / value().
        Ant.construct()                 → local_update() per committed arc.
        Colony.run()                    → global_update() per iteration.
        Tests                           → snapshot() to inspect state.
    """

    def __init__(self, n_nodes: int, tau0: float) -> None:
        """
        Initialise a uniform field at τ0.

        Raises:
            ValueError: n_nodes < 1, or τ0 not a finite positive number.
        """
        if n_nodes < 1:
            raise ValueError(f"PheromoneField requires n_nodes≥1, got n_nodes={n_nodes}")
        if not (math.isfinite(tau0) and tau0 > 0.0):
            raise ValueError(f"Initial pheromone must be finite and > 0, got {tau0}")
        self._n_nodes = n_nodes
        self._tau0 = float(tau0)
        self._matrix: NDArray[np.float64] = np.full(
            (n_nodes, n_nodes), self._tau0, dtype=np.float64
        )

    # ── Update rules ──────────────────────────────────────────────────────────

    def local_update(self, tail: int, head: int, decay: float) -> None:
        """
        Decay one arc back toward τ0.

        Formula:
            τ[t][h] = (1 − decay)·τ[t][h] + decay·τ0
        """
        self._matrix[tail, head] = (
            (1.0 - decay) * self._matrix[tail, head] + decay * self._tau0
        )

    def global_update(
        self, arcs: NDArray[np.bool_], evaporation: float, target: float
    ) -> None:
        """
        Pull every arc in the boolean mask toward target. Others untouched.

        Formula (masked, in place):
            τ[arcs] = (1 − ρ)·τ[arcs] + ρ·target

        Args:
            arcs:        (n_nodes, n_nodes) bool mask of arcs to update.
            evaporation: ρ in [0, 1].
            target:      usually 1/|incumbent score|. Must be > 0.
        """
        if arcs.shape != self._matrix.shape:
            raise ValueError(
                f"Arc mask shape {arcs.shape} does not match field {self._matrix.shape}"
            )
        if not (math.isfinite(target) and target > 0.0):
            raise ValueError(f"Global update target must be finite and > 0, got {target}")
        self._matrix[arcs] = (1.0 - evaporation) * self._matrix[arcs] + evaporation * target

    # ── Reads ─────────────────────────────────────────────────────────────────

    def value(self, tail: int, head: int) -> float:
        return float(self._matrix[tail, head])

    def column(self, head: int) -> NDArray[np.float64]:
        """
        Pheromone on every arc INTO head, indexed by tail.

        ⚠️ A view, not a copy. Callers build new arrays from it
        (τ ** α etc.) and must never write through it.
        """
        return self._matrix[:, head]

    def snapshot(self) -> NDArray[np.float64]:
        """Deep copy of the current field."""
        return self._matrix.copy()

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def tau0(self) -> float:
        """Initial pheromone level τ0 = 1/|baseline score|."""
        return self._tau0

    @property
    def n_nodes(self) -> int:
        return self._n_nodes

    @property
    def shape(self) -> tuple[int, int]:
        return (self._n_nodes, self._n_nodes)

    def __repr__(self) -> str:
        return (
            f"PheromoneField(n_nodes={self._n_nodes}, tau0={self._tau0:.6g}, "
            f"min={self._matrix.min():.6g}, max={self._matrix.max():.6g})"
        )
