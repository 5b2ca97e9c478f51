import argparse
import json
import logging
from pathlib import Path
import sys

from cflp.base_model.exceptions import CFLPError
from cflp.base_model.solution import build_problem
from cflp.config import ACCEPTOR_KINDS, CONSTRUCTION_KINDS, AcceptorConfig, SolverConfig, TerminationConfig
from cflp.local_search.solver import run_local_search, run_multi_start
from cflp.util.data_generator import generate_test_data_parsed

logger = logging.getLogger("cflp.main")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Capacitated Facility Location Solver')

    parser.add_argument('--test', nargs=2, type=int, required=True, metavar=('N_FACILITIES', 'N_CONSUMERS'),
                        help='Generate a demo instance with [n_facilities] [n_consumers]')

    parser.add_argument('--acceptor', type=str, choices=ACCEPTOR_KINDS, default='simulated_annealing',
                        help='Acceptance strategy for the local search (default: simulated_annealing)')

    parser.add_argument('--construction', type=str, choices=CONSTRUCTION_KINDS, default='greedy',
                        help='Initial solution construction (default: greedy)')

    parser.add_argument('--max-steps', type=int, default=None,
                        help='Stop after this many local search steps (default: 100000 when no limit is given)')

    parser.add_argument('--max-seconds', type=float, default=None,
                        help='Stop after this many seconds')

    parser.add_argument('--seed', type=int, default=13062025,
                        help='Seed for the instance generator and the search')

    parser.add_argument('--starts', type=int, default=1,
                        help='Number of independent searches, the best one is kept (default: 1)')

    parser.add_argument('--output', type=str, default=None,
                        help='Path to output JSON file')

    parser.add_argument('--log', type=str, help='Path to log file for the local search output')

    parser.add_argument('--verbose', action='store_true', help='Log new best scores as well')

    return parser.parse_args(argv)


def build_config(args) -> SolverConfig:
    max_steps = args.max_steps
    if max_steps is None and args.max_seconds is None:
        max_steps = 100_000
    return SolverConfig(
        termination=TerminationConfig(max_steps=max_steps, max_seconds=args.max_seconds),
        acceptor=AcceptorConfig(kind=args.acceptor),
        construction=args.construction,
        seed=args.seed,
        log_file_path=args.log,
    )


def main(argv=None):
    """Main entry point for the solver."""
    args = parse_arguments(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        n_facilities, n_consumers = args.test
        parsed_data = generate_test_data_parsed(n_facilities, n_consumers, seed=args.seed)
        logger.info("Generated %d facilities (capacity %d) and %d consumers (demand %d)",
                    n_facilities, parsed_data["total_capacity"], n_consumers, parsed_data["total_demand"])

        config = build_config(args)
        solution = build_problem(parsed_data["facilities"], parsed_data["consumers"], config.weights)

        if args.starts > 1:
            result = run_multi_start(solution, config, n_starts=args.starts)
        else:
            result = run_local_search(solution, config)

        logger.info("Final score: %s (%s)", result.score, "feasible" if result.is_feasible else "infeasible")
        logger.info("Used facilities: %d/%d, total distance: %d m, total setup cost: %d",
                    sum(1 for f in solution.get_all_facilities() if solution.is_used(f.facility_id)),
                    n_facilities, solution.total_distance(), solution.total_setup_cost())

        # Write result to output file
        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w') as f:
                json.dump(result.to_json(), f, indent=2)
            logger.info("Result written to %s", args.output)

        return 0

    except (CFLPError, ValueError) as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
