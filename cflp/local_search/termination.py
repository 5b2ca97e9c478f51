import time
from typing import Optional

from cflp.base_model.score import Score
from cflp.config import TerminationConfig


class Termination:
    """Decides, between two complete steps, whether the search stops."""

    def phase_started(self, start_time: float) -> None:
        pass

    def is_terminated(self, step: int, best_score: Score, last_improvement_step: int) -> bool:
        raise NotImplementedError


class StepCountTermination(Termination):
    """Stop after exactly max_steps steps."""

    def __init__(self, max_steps: int):
        self.max_steps = max_steps

    def is_terminated(self, step, best_score, last_improvement_step):
        return step >= self.max_steps


class TimeTermination(Termination):
    def __init__(self, max_seconds: float, clock=time.monotonic):
        self.max_seconds = max_seconds
        self.clock = clock
        self.start_time: Optional[float] = None

    def phase_started(self, start_time):
        self.start_time = start_time

    def is_terminated(self, step, best_score, last_improvement_step):
        if self.start_time is None:
            self.start_time = self.clock()
        return self.clock() - self.start_time >= self.max_seconds


class UnimprovedStepCountTermination(Termination):
    """Stop when the best score has not improved for unimproved_step_limit steps."""

    def __init__(self, unimproved_step_limit: int):
        self.unimproved_step_limit = unimproved_step_limit

    def is_terminated(self, step, best_score, last_improvement_step):
        return step - last_improvement_step >= self.unimproved_step_limit


class BestScoreTermination(Termination):
    """Stop as soon as the best score reaches the target."""

    def __init__(self, best_score_limit: Score):
        self.best_score_limit = best_score_limit

    def is_terminated(self, step, best_score, last_improvement_step):
        return best_score >= self.best_score_limit


class CompositeTermination(Termination):
    """Stop when any of the child terminations says so."""

    def __init__(self, terminations: list[Termination]):
        self.terminations = terminations

    def phase_started(self, start_time):
        for termination in self.terminations:
            termination.phase_started(start_time)

    def is_terminated(self, step, best_score, last_improvement_step):
        return any(t.is_terminated(step, best_score, last_improvement_step) for t in self.terminations)


def build_termination(config: TerminationConfig) -> Termination:
    terminations: list[Termination] = []
    if config.max_steps is not None:
        terminations.append(StepCountTermination(config.max_steps))
    if config.max_seconds is not None:
        terminations.append(TimeTermination(config.max_seconds))
    if config.unimproved_step_limit is not None:
        terminations.append(UnimprovedStepCountTermination(config.unimproved_step_limit))
    if config.best_score_limit is not None:
        terminations.append(BestScoreTermination(config.best_score_limit))

    if len(terminations) == 1:
        return terminations[0]
    return CompositeTermination(terminations)
