"""
aco_search : Ant Colony Optimisation for Bayesian-network structure search.

Public API:
    Colony               : run the colony, returns SearchResult
    DegenerateScoreError : raised when a score cannot scale the pheromone

Usage:
    from aco_search import Colony
    from bayesnet import ACOConfig, BayesNetStructure, Dataset

    dataset = Dataset.from_csv("data.csv")
    network = BayesNetStructure(dataset.n_vars)
    result  = Colony(dataset, ACOConfig(n_iterations=50)).run(network)
"""

from aco_search.colony import Colony, DegenerateScoreError

__all__ = ["Colony", "DegenerateScoreError"]
