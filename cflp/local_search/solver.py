import logging
import random
import time
from copy import deepcopy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from cflp.base_model.consumer import Consumer
from cflp.base_model.exceptions import ScoreDriftDetected
from cflp.base_model.facility import Facility
from cflp.base_model.score import Score
from cflp.base_model.solution import Solution, DistanceFunction, build_problem
from cflp.config import SolverConfig
from cflp.local_search.SolutionSnapshot import SolutionSnapshot
from cflp.local_search.acceptors import build_acceptor
from cflp.local_search.move import do_move, undo_move
from cflp.local_search.move_generator import generate_random_move, has_any_move
from cflp.local_search.ruin_and_recreate import apply_ruin_and_recreate
from cflp.local_search.rules_engine import calculate_constraint_weights, calculate_delta_score, calculate_full_score
from cflp.local_search.termination import build_termination
from cflp.util.search_logger import SearchLogger

logger = logging.getLogger(__name__)


class SolverState(Enum):
    INITIALIZING = "initializing"
    SEARCHING = "searching"
    TERMINATED = "terminated"


@dataclass
class SolveResult:
    """The best assignment found by a run and how the run went."""
    assignment: dict[int, Optional[int]]
    score: Score
    is_feasible: bool
    steps: int
    accepted_moves: int
    elapsed_seconds: float
    best_score_history: list[tuple[int, Score]] = field(default_factory=list)

    def to_json(self) -> dict:
        return {
            "assignment": {str(cid): fid for cid, fid in self.assignment.items()},
            "score": self.score.to_json(),
            "feasible": self.is_feasible,
            "steps": self.steps,
            "accepted_moves": self.accepted_moves,
            "elapsed_seconds": self.elapsed_seconds,
            "best_score_history": [[step, score.to_json()] for step, score in self.best_score_history],
        }


class LocalSearch:
    """
    Single threaded local search over one solution.

    Every step draws a random move, computes its delta score, applies it and asks the acceptor
    whether to keep it. Rejected moves are undone. The best solution seen is kept as a snapshot
    and put back onto the solution when the search terminates.
    """

    def __init__(self, solution: Solution, config: SolverConfig = None, rng: random.Random = None,
                 search_logger: SearchLogger = None):
        self.solution = solution
        self.config = config if config is not None else SolverConfig()
        self.rng = rng if rng is not None else random.Random(self.config.seed)
        self.search_logger = search_logger
        self.state = SolverState.INITIALIZING

        self.acceptor = None
        self.termination = None
        self.hard_weight: Optional[int] = None
        self.current_score: Optional[Score] = None
        self.best_score: Optional[Score] = None
        self.best_snapshot: Optional[SolutionSnapshot] = None
        self.best_score_history: list[tuple[int, Score]] = []
        self.step = 0
        self.accepted_moves = 0
        self.last_improvement_step = 0
        self.last_ruin_step = 0
        self.start_time: Optional[float] = None

    def solve(self) -> SolveResult:
        if self.state != SolverState.INITIALIZING:
            raise RuntimeError(f"LocalSearch can only be solved once, state is {self.state.value}")

        self.start_time = time.monotonic()
        package_logger = logging.getLogger("cflp")
        previous_level = package_logger.level
        file_handler = self._open_log_file(package_logger)
        try:
            self._initialize()
            self.state = SolverState.SEARCHING
            self._search()
            self.state = SolverState.TERMINATED
            self.best_snapshot.restore_solution(self.solution)
            self.current_score = self.best_score
            self._check_score()
            elapsed = time.monotonic() - self.start_time
            logger.info("Search terminated after %d steps in %.2fs, accepted %d moves. Best score: %s",
                        self.step, elapsed, self.accepted_moves, self.best_score)
        finally:
            if file_handler is not None:
                package_logger.removeHandler(file_handler)
                package_logger.setLevel(previous_level)
                file_handler.close()

        return SolveResult(
            assignment=self.solution.to_assignment(),
            score=self.best_score,
            is_feasible=self.best_score.is_feasible(),
            steps=self.step,
            accepted_moves=self.accepted_moves,
            elapsed_seconds=elapsed,
            best_score_history=list(self.best_score_history),
        )

    def _open_log_file(self, package_logger: logging.Logger) -> Optional[logging.FileHandler]:
        if not self.config.log_file_path:
            return None
        file_handler = logging.FileHandler(self.config.log_file_path, mode="w")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(file_handler)
        # the log file gets the progress lines even when the application logs at WARNING
        if package_logger.getEffectiveLevel() > logging.INFO:
            package_logger.setLevel(logging.INFO)
        return file_handler

    def _initialize(self) -> None:
        config = self.config
        self._construct()

        self.current_score = calculate_full_score(self.solution)
        self.solution.score = self.current_score
        self.best_score = self.current_score
        self.best_snapshot = SolutionSnapshot(self.solution, self.current_score)
        self.best_score_history.append((0, self.current_score))

        self.hard_weight = calculate_constraint_weights(self.solution)
        self.acceptor = build_acceptor(config.acceptor, self.hard_weight, self.rng)
        self.termination = build_termination(config.termination)
        self.acceptor.phase_started(self.current_score)
        self.termination.phase_started(self.start_time)

        logger.info("Starting local search with parameters:")
        logger.info("Acceptor: %s", config.acceptor)
        logger.info("Termination: %s", config.termination)
        logger.info("Moves: %s", config.moves)
        logger.info("Weights: %s (unassigned penalty %d)", config.weights, self.solution.unassigned_penalty)
        logger.info("Initial score: %s", self.current_score)

    def _construct(self) -> None:
        # construction imports the local search moves, so import it here to keep the package import acyclic
        from cflp.construction.heuristic.greedy_assignment import generate_greedy_solution, generate_random_solution

        construction = self.config.construction
        if construction == "unassigned":
            self.solution.unassign_all()
        elif construction == "random":
            generate_random_solution(self.solution, self.rng)
        elif construction == "greedy":
            generate_greedy_solution(self.solution)
        elif construction == "ilp":
            # imported here so pulp is only loaded when the warm start is used
            from cflp.construction.ilp.ilp_solver import generate_solution_using_ilp
            generate_solution_using_ilp(self.solution, time_limit=self.config.ilp_time_limit)
            # anything the ILP could not place goes in greedily
            generate_greedy_solution(self.solution)

    def _search(self) -> None:
        config = self.config
        solution = self.solution

        if not has_any_move(solution, config.moves):
            logger.info("No moves exist for this solution, nothing to search.")
            return

        moves_explored = 0
        moves_accepted = 0
        while not self.termination.is_terminated(self.step, self.best_score, self.last_improvement_step):
            if not has_any_move(solution, config.moves):
                logger.info("No moves left at step %d, stopping the search.", self.step)
                break
            move = generate_random_move(solution, self.rng, config.moves)
            delta = calculate_delta_score(solution, move)
            do_move(move, solution)

            new_score = self.current_score + delta
            accepted = self.acceptor.is_accepted(move, delta, self.current_score, new_score, self.best_score)
            if accepted:
                self.current_score = new_score
                solution.score = new_score
                self.accepted_moves += 1
                moves_accepted += 1
            else:
                undo_move(move, solution)
            moves_explored += 1

            reheats_before = self._reheat_count()
            self.acceptor.step_ended(move, accepted, self.current_score)
            self.step += 1

            is_new_best = accepted and self.current_score > self.best_score
            if is_new_best:
                self._update_best()

            if self.search_logger is not None:
                event_type = "reheat" if self._reheat_count() > reheats_before else None
                self.search_logger.log_state(solution, self.current_score, self._current_temperature(),
                                             move.move_type, accepted, event_type=event_type)

            if config.score_check_interval is not None and self.step % config.score_check_interval == 0:
                self._check_score()

            if config.plateau_limit is not None and \
                    self.step - max(self.last_improvement_step, self.last_ruin_step) >= config.plateau_limit:
                self._ruin_and_recreate()

            if self.step % config.log_interval == 0:
                logger.info("Step: %d, Time: %.1fs, Temp: %s, Accepted: %d/%d, Score: %s, Best: %s",
                            self.step, time.monotonic() - self.start_time, self._format_temperature(),
                            moves_accepted, moves_explored, self.current_score, self.best_score)
                moves_explored = 0
                moves_accepted = 0

    def _update_best(self) -> None:
        self.best_score = self.current_score
        self.best_snapshot = SolutionSnapshot(self.solution, self.current_score)
        self.best_score_history.append((self.step, self.current_score))
        self.last_improvement_step = self.step
        logger.debug("New best score at step %d: %s", self.step, self.best_score)

    def _check_score(self) -> None:
        """Compare the tracked score with a full recomputation."""
        full_score = calculate_full_score(self.solution)
        if full_score == self.current_score:
            return
        if self.config.strict_score_check:
            raise ScoreDriftDetected(full_score, self.current_score, self.step)
        logger.warning("Score drift at step %d: tracked %s, full %s. Resyncing to the full score.",
                       self.step, self.current_score, full_score)
        self.current_score = full_score
        self.solution.score = full_score
        if self.state == SolverState.TERMINATED:
            self.best_score = full_score

    def _ruin_and_recreate(self) -> None:
        """Plateau escape: restart from the best snapshot with part of it ruined and rebuilt."""
        self.last_ruin_step = self.step
        self.best_snapshot.restore_solution(self.solution)
        move = apply_ruin_and_recreate(self.solution, self.config.ruin_percentage, self.rng)
        self.current_score = calculate_full_score(self.solution)
        self.solution.score = self.current_score
        self.acceptor.restart(self.current_score)

        if move is None:
            return
        logger.info("Ruin and recreate at step %d: %d moves, score %s (best %s)",
                    self.step, len(move.moves), self.current_score, self.best_score)
        if self.search_logger is not None:
            self.search_logger.log_state(self.solution, self.current_score, self._current_temperature(),
                                         move.move_type, True, event_type="ruin_recreate")
        if self.current_score > self.best_score:
            self._update_best()

    def _current_temperature(self) -> Optional[float]:
        acceptor = getattr(self.acceptor, "inner", self.acceptor)
        return getattr(acceptor, "current_temperature", None)

    def _reheat_count(self) -> int:
        acceptor = getattr(self.acceptor, "inner", self.acceptor)
        return getattr(acceptor, "reheat_count", 0)

    def _format_temperature(self) -> str:
        temperature = self._current_temperature()
        return "-" if temperature is None else f"{temperature:.2f}"


def run_local_search(solution: Solution, config: SolverConfig = None, search_logger: SearchLogger = None) -> SolveResult:
    return LocalSearch(solution, config, search_logger=search_logger).solve()


def run_multi_start(solution: Solution, config: SolverConfig = None, n_starts: int = 4) -> SolveResult:
    """
    Run n_starts independent searches, each on a private copy of the solution with its own seed,
    and keep the best. The winning assignment is loaded back into the given solution.
    Ties go to the earliest start.
    """
    if n_starts <= 0:
        raise ValueError("n_starts must be positive")
    config = config if config is not None else SolverConfig()

    best_result: Optional[SolveResult] = None
    for start in range(n_starts):
        seed = None if config.seed is None else config.seed + start
        private_solution = deepcopy(solution)
        result = LocalSearch(private_solution, replace(config, seed=seed)).solve()
        logger.info("Start %d/%d finished with score %s", start + 1, n_starts, result.score)
        if best_result is None or result.score > best_result.score:
            best_result = result

    solution.load_assignment(best_result.assignment)
    solution.score = best_result.score
    return best_result


def solve(facilities: list[Facility], consumers: list[Consumer], config: SolverConfig = None,
          distance_function: DistanceFunction = None) -> SolveResult:
    """Validate the instance, build the solution and run one local search on it."""
    config = config if config is not None else SolverConfig()
    solution = build_problem(facilities, consumers, config.weights, distance_function)
    return run_local_search(solution, config)
