"""
bayesnet/cli.py
───────────────
Command line entry point: learn a network structure from a CSV file.

    aco-bn data.csv -I 50 -M 10 -S 7 --score mdl -v

Short options follow the classic ACO search option letters:

    -A alpha         -B beta          -Q q0
    -X exploration   -V evaporation   -I iterations
    -M ants          -S seed          -P max parents

Output: one line per variable, "name <- parent, parent", then the score.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence

from pydantic import ValidationError

from aco_search import Colony, DegenerateScoreError
from bayesnet.learning.structure import BayesNetStructure
from bayesnet.shared.dataset import Dataset
from bayesnet.shared.models import ACOConfig, ScoreType

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    defaults = ACOConfig()
    parser = argparse.ArgumentParser(
        prog="aco-bn",
        description="Learn a Bayesian network structure with Ant Colony Optimization.",
    )
    parser.add_argument("data", help="CSV file with a header row of variable names")
    parser.add_argument("-A", "--alpha", type=float, default=defaults.alpha,
                        help="pheromone exponent (default: %(default)s)")
    parser.add_argument("-B", "--beta", type=float, default=defaults.beta,
                        help="score-gain exponent (default: %(default)s)")
    parser.add_argument("-Q", "--q0", type=float, default=defaults.q0,
                        help="exploitation probability (default: %(default)s)")
    parser.add_argument("-X", "--exploration", type=float, default=defaults.exploration_coeff,
                        help="local pheromone decay (default: %(default)s)")
    parser.add_argument("-V", "--evaporation", type=float, default=defaults.evaporation_coeff,
                        help="global pheromone decay (default: %(default)s)")
    parser.add_argument("-I", "--iterations", type=int, default=defaults.n_iterations,
                        help="number of iterations (default: %(default)s)")
    parser.add_argument("-M", "--ants", type=int, default=defaults.n_ants,
                        help="ants per iteration (default: %(default)s)")
    parser.add_argument("-S", "--seed", type=int, default=defaults.seed,
                        help="random seed (default: %(default)s)")
    parser.add_argument("-P", "--max-parents", type=int, default=defaults.max_parents,
                        help="maximum parents per node (default: %(default)s)")
    parser.add_argument("--refine-every", type=int, default=defaults.refine_every,
                        help="hill-climb every N-th iteration, 0 = never (default: %(default)s)")
    parser.add_argument("--score", choices=[s.value for s in ScoreType],
                        default=defaults.score_type.value,
                        help="local score metric (default: %(default)s)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="-v for INFO, -vv for DEBUG logging")
    return parser


def config_from_args(args: argparse.Namespace) -> ACOConfig:
    """Raises pydantic.ValidationError on out-of-range values."""
    return ACOConfig(
        alpha=args.alpha,
        beta=args.beta,
        q0=args.q0,
        exploration_coeff=args.exploration,
        evaporation_coeff=args.evaporation,
        n_iterations=args.iterations,
        n_ants=args.ants,
        seed=args.seed,
        max_parents=args.max_parents,
        refine_every=args.refine_every,
        score_type=ScoreType(args.score),
    )


def format_structure(dataset: Dataset, network: BayesNetStructure) -> List[str]:
    lines = []
    for node, name in enumerate(dataset.names):
        parents = ", ".join(dataset.names[p] for p in network.parents_of(node))
        lines.append(f"{name} <- {parents}" if parents else f"{name} <-")
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = config_from_args(args)
    except ValidationError as exc:
        parser.error(f"invalid configuration:\n{exc}")

    try:
        dataset = Dataset.from_csv(args.data)
    except (OSError, ValueError) as exc:
        logger.error("Could not load %s: %s", args.data, exc)
        return 1

    network = BayesNetStructure(dataset.n_vars, config.max_parents)
    try:
        result = Colony(dataset, config).run(network)
    except DegenerateScoreError as exc:
        logger.error("Search aborted: %s", exc)
        return 1

    for line in format_structure(dataset, network):
        print(line)
    print(f"score: {result.best_score:.6f} (baseline {result.baseline_score:.6f})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
