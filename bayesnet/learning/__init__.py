"""
bayesnet/learning : the collaborators the ACO search is built on.

    BayesNetStructure : parent sets + legality checks
    LocalScorer       : BAYES / BDEU / MDL / AIC / ENTROPY local scores
    K2Search          : greedy baseline, seeds the pheromone scale
    HillClimber       : periodic refinement of ant structures
"""

from bayesnet.learning.structure import BayesNetStructure
from bayesnet.learning.scoring import LocalScorer
from bayesnet.learning.k2 import K2Search
from bayesnet.learning.hill_climber import HillClimber, Operation

__all__ = [
    "BayesNetStructure",
    "LocalScorer",
    "K2Search",
    "HillClimber",
    "Operation",
]
