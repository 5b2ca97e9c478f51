import logging
import math
import random
from collections import deque
from dataclasses import replace
from typing import Optional

from cflp.base_model.score import Score
from cflp.config import AcceptorConfig
from cflp.local_search.move import Move

logger = logging.getLogger(__name__)


class Acceptor:
    """Decides whether the search keeps a move it just applied."""

    def phase_started(self, score: Score) -> None:
        pass

    def restart(self, score: Score) -> None:
        """The search jumped to a different solution (ruin and recreate). Drop state tied to the old one."""
        pass

    def is_accepted(self, move: Move, delta: Score, last_score: Score, new_score: Score, best_score: Score) -> bool:
        raise NotImplementedError

    def step_ended(self, move: Move, accepted: bool, new_score: Score) -> None:
        pass


class HillClimbingAcceptor(Acceptor):
    """Accept every move that does not make the score worse."""

    def is_accepted(self, move, delta, last_score, new_score, best_score):
        return new_score >= last_score


class SimulatedAnnealingAcceptor(Acceptor):
    """
    Accept improving moves, and worsening moves with probability exp(-cost / T).
    The score is collapsed into a single cost with hard_weight so a hard violation
    always costs more than any soft difference.

    The temperature cools geometrically from start_temperature to end_temperature over
    temperature_steps levels, each lasting iterations_per_temperature steps, and is reheated
    to start_temperature when it drops below end_temperature.
    """

    def __init__(self, start_temperature: float, end_temperature: float, temperature_steps: int,
                 iterations_per_temperature: int, hard_weight: int, rng: random.Random):
        self.start_temperature = start_temperature
        self.end_temperature = end_temperature
        self.iterations_per_temperature = iterations_per_temperature
        self.hard_weight = hard_weight
        self.rng = rng
        self.cooling_rate = _calculate_cooling_rate(temperature_steps, start_temperature, end_temperature)
        self.current_temperature = start_temperature
        self.steps_at_temperature = 0
        self.reheat_count = 0

    def phase_started(self, score):
        self.current_temperature = self.start_temperature
        self.steps_at_temperature = 0

    def is_accepted(self, move, delta, last_score, new_score, best_score):
        cost = -(delta.hard * self.hard_weight + delta.soft)
        if cost <= 0:
            return True
        return self.rng.random() < math.exp(-cost / self.current_temperature)

    def step_ended(self, move, accepted, new_score):
        self.steps_at_temperature += 1
        if self.steps_at_temperature < self.iterations_per_temperature:
            return
        self.steps_at_temperature = 0
        self.current_temperature *= self.cooling_rate
        # reheat if temperature gets too low but we still have budget
        if self.current_temperature < self.end_temperature:
            logger.info("Reheating to %.2f", self.start_temperature)
            self.current_temperature = self.start_temperature
            self.reheat_count += 1

    @property
    def is_new_temperature(self) -> bool:
        return self.steps_at_temperature == 0


def _calculate_cooling_rate(K: int, start_temperature: float, end_temperature: float) -> float:
    """
    Calculate the cooling rate alpha for simulated annealing.

    Args:
        K: Number of temperature steps
        start_temperature: Starting temperature
        end_temperature: Ending temperature
    """
    return (end_temperature / start_temperature) ** (1 / (K - 1))


class LateAcceptanceAcceptor(Acceptor):
    """Accept a move if it is no worse than the current score, or than the score late_acceptance_size steps ago."""

    def __init__(self, late_acceptance_size: int):
        self.late_acceptance_size = late_acceptance_size
        self.previous_scores: deque = deque(maxlen=late_acceptance_size)

    def phase_started(self, score):
        self.previous_scores.clear()
        self.previous_scores.extend([score] * self.late_acceptance_size)

    def is_accepted(self, move, delta, last_score, new_score, best_score):
        return new_score >= self.previous_scores[0] or new_score >= last_score

    def step_ended(self, move, accepted, new_score):
        # the deque drops the oldest entry by itself
        self.previous_scores.append(new_score)

    def restart(self, score):
        self.phase_started(score)


class TabuAcceptor(Acceptor):
    """
    Reject moves that send a consumer back to a facility it recently left, unless the move
    leads to a new best score (aspiration). Moves that are not tabu go to the inner acceptor.
    """

    def __init__(self, tabu_tenure: int, inner: Optional[Acceptor] = None):
        self.tabu_tenure = tabu_tenure
        self.inner = inner if inner is not None else HillClimbingAcceptor()
        self.tabu_list: deque = deque(maxlen=tabu_tenure)

    def phase_started(self, score):
        self.tabu_list.clear()
        self.inner.phase_started(score)

    def restart(self, score):
        self.tabu_list.clear()
        self.inner.restart(score)

    def is_tabu(self, move: Move) -> bool:
        planned = move.planned_attributes()
        return any(not planned.isdisjoint(attributes) for attributes in self.tabu_list)

    def is_accepted(self, move, delta, last_score, new_score, best_score):
        if self.is_tabu(move) and not new_score > best_score:
            return False
        return self.inner.is_accepted(move, delta, last_score, new_score, best_score)

    def step_ended(self, move, accepted, new_score):
        if accepted:
            # one entry per accepted move
            self.tabu_list.append(frozenset(move.reverse_attributes()))
        self.inner.step_ended(move, accepted, new_score)


def build_acceptor(config: AcceptorConfig, hard_weight: int, rng: random.Random) -> Acceptor:
    """Translate the acceptor configuration into an acceptor instance."""
    if config.kind == "tabu":
        inner = None
        if config.tabu_inner is not None:
            inner = build_acceptor(_with_kind(config, config.tabu_inner), hard_weight, rng)
        return TabuAcceptor(config.tabu_tenure, inner)
    if config.kind == "simulated_annealing":
        return SimulatedAnnealingAcceptor(config.start_temperature, config.end_temperature, config.temperature_steps,
                                          config.iterations_per_temperature, hard_weight, rng)
    if config.kind == "late_acceptance":
        return LateAcceptanceAcceptor(config.late_acceptance_size)
    return HillClimbingAcceptor()


def _with_kind(config: AcceptorConfig, kind: str) -> AcceptorConfig:
    return replace(config, kind=kind, tabu_inner=None)
