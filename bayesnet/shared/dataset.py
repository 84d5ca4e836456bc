"""
bayesnet/shared/dataset.py
──────────────────────────
Discrete data the score metrics count over.

Every variable is nominal. Values are stored integer-coded in a single
(n_instances, n_vars) int64 matrix so that the scorer can build count
tables with np.unique / np.bincount instead of Python loops. The original
labels are kept per variable for printing.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Hashable, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray


class Dataset:
    """
    Integer-coded discrete dataset.

    Attributes:
        values        : NDArray[np.int64] (n_instances, n_vars), read-only.
        cardinalities : Tuple[int, ...]   number of states per variable.
        names         : Tuple[str, ...]   variable names.
        categories    : Tuple[Tuple[str, ...], ...]  labels per variable,
                        categories[v][k] is the label coded as k.
    """

    def __init__(
        self,
        values: Union[NDArray[np.int64], Sequence[Sequence[int]]],
        cardinalities: Optional[Sequence[int]] = None,
        names: Optional[Sequence[str]] = None,
        categories: Optional[Sequence[Sequence[str]]] = None,
    ) -> None:
        """
        Args:
            values:        integer codes, one row per instance.
            cardinalities: states per variable. Defaults to max code + 1.
            names:         variable names. Defaults to X0, X1, ...
            categories:    labels per variable. Defaults to the codes as str.

        Raises:
            ValueError: empty data, negative codes, codes outside the
                        declared cardinality, or mismatched lengths.
        """
        matrix = np.asarray(values)
        if matrix.ndim != 2 or matrix.shape[0] == 0 or matrix.shape[1] == 0:
            raise ValueError(
                f"Dataset requires a non-empty 2D value matrix, got shape {matrix.shape}"
            )
        if not np.issubdtype(matrix.dtype, np.integer):
            raise ValueError(f"Dataset values must be integer codes, got {matrix.dtype}")
        matrix = matrix.astype(np.int64)
        if matrix.min() < 0:
            raise ValueError("Dataset values must be non-negative codes")

        n_vars = matrix.shape[1]
        if cardinalities is None:
            cardinalities = [int(c) + 1 for c in matrix.max(axis=0)]
        if len(cardinalities) != n_vars:
            raise ValueError(
                f"Expected {n_vars} cardinalities, got {len(cardinalities)}"
            )
        for var, card in enumerate(cardinalities):
            if card < 1:
                raise ValueError(f"Variable {var} has an empty domain")
            if matrix[:, var].max() >= card:
                raise ValueError(
                    f"Variable {var} has a code outside its domain of {card} states"
                )

        if names is None:
            names = [f"X{i}" for i in range(n_vars)]
        if len(names) != n_vars:
            raise ValueError(f"Expected {n_vars} names, got {len(names)}")

        if categories is None:
            categories = [[str(k) for k in range(card)] for card in cardinalities]
        if len(categories) != n_vars or any(
            len(labels) != card for labels, card in zip(categories, cardinalities)
        ):
            raise ValueError("categories must list one label per state of every variable")

        matrix.flags.writeable = False
        self._values: NDArray[np.int64] = matrix
        self._cardinalities: Tuple[int, ...] = tuple(int(c) for c in cardinalities)
        self._names: Tuple[str, ...] = tuple(str(n) for n in names)
        self._categories: Tuple[Tuple[str, ...], ...] = tuple(
            tuple(str(label) for label in labels) for labels in categories
        )

    # ── Constructors ──────────────────────────────────────────────────────────

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Sequence[Hashable]],
        names: Optional[Sequence[str]] = None,
    ) -> "Dataset":
        """
        Build a dataset from raw nominal rows.

        Each column is coded independently: its distinct values are sorted
        by their string form and numbered 0..k-1.

        Raises:
            ValueError: no rows, or rows of different lengths.
        """
        if not rows:
            raise ValueError("Dataset.from_rows requires at least one row")
        width = len(rows[0])
        if any(len(row) != width for row in rows):
            raise ValueError("All rows must have the same number of values")

        columns: List[List[str]] = [[str(row[i]) for row in rows] for i in range(width)]
        categories: List[List[str]] = []
        codes = np.empty((len(rows), width), dtype=np.int64)
        for var, column in enumerate(columns):
            labels = sorted(set(column))
            index = {label: k for k, label in enumerate(labels)}
            codes[:, var] = [index[value] for value in column]
            categories.append(labels)

        return cls(
            codes,
            cardinalities=[len(labels) for labels in categories],
            names=names,
            categories=categories,
        )

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> "Dataset":
        """Read a CSV file whose first row holds the variable names."""
        with open(path, newline="") as handle:
            reader = csv.reader(handle)
            try:
                header = next(reader)
            except StopIteration:
                raise ValueError(f"{path} is empty") from None
            rows = [row for row in reader if row]
        return cls.from_rows(rows, names=[name.strip() for name in header])

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def values(self) -> NDArray[np.int64]:
        return self._values

    @property
    def cardinalities(self) -> Tuple[int, ...]:
        return self._cardinalities

    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    @property
    def categories(self) -> Tuple[Tuple[str, ...], ...]:
        return self._categories

    @property
    def n_instances(self) -> int:
        return self._values.shape[0]

    @property
    def n_vars(self) -> int:
        return self._values.shape[1]

    def column(self, var: int) -> NDArray[np.int64]:
        """Integer codes of one variable (read-only view)."""
        return self._values[:, var]

    def __repr__(self) -> str:
        return (
            f"Dataset(n_instances={self.n_instances}, n_vars={self.n_vars}, "
            f"cardinalities={list(self._cardinalities)})"
        )
