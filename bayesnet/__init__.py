"""
bayesnet : discrete Bayesian-network data, scores and structure search.

    Dataset            : integer-coded discrete data (shared/dataset.py)
    ACOConfig          : validated search hyperparameters (shared/models.py)
    SearchResult       : summary of one colony run
    ScoreType          : local score metrics
    BayesNetStructure  : mutable DAG of parent sets (learning/structure.py)
    LocalScorer        : memoised local score oracle
    K2Search           : greedy baseline
    HillClimber        : add / delete / reverse local search
"""

from bayesnet.shared.dataset import Dataset
from bayesnet.shared.models import ACOConfig, ScoreType, SearchResult
from bayesnet.learning import (
    BayesNetStructure,
    HillClimber,
    K2Search,
    LocalScorer,
)

__all__ = [
    "Dataset",
    "ACOConfig",
    "ScoreType",
    "SearchResult",
    "BayesNetStructure",
    "HillClimber",
    "K2Search",
    "LocalScorer",
]
