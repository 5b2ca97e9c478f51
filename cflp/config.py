"""Configuration surface of the solver: score weights, acceptor, moves and termination."""

from dataclasses import dataclass, field
from typing import Optional

from cflp.base_model.score import Score

ACCEPTOR_KINDS = ("simulated_annealing", "hill_climbing", "late_acceptance", "tabu")
CONSTRUCTION_KINDS = ("none", "unassigned", "random", "greedy", "ilp")


@dataclass(frozen=True)
class ConstraintWeights:
    """Weights of the score terms.

    Attributes:
        distance_weight: Soft penalty per meter between a consumer and its facility.
        setup_weight: Soft penalty per unit of setup cost of a used facility.
        capacity_weight: Hard penalty per unit of demand above a facility's capacity.
        unassigned_penalty: Soft penalty per unassigned consumer. None derives it from
            the instance so that it exceeds the cost of any single real assignment.
    """

    distance_weight: int = 5
    setup_weight: int = 2
    capacity_weight: int = 1
    unassigned_penalty: Optional[int] = None

    def __post_init__(self):
        for name in ("distance_weight", "setup_weight", "capacity_weight"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if self.capacity_weight == 0:
            raise ValueError("capacity_weight must be positive, capacity is a hard constraint")
        if self.unassigned_penalty is not None and (not isinstance(self.unassigned_penalty, int) or self.unassigned_penalty < 0):
            raise ValueError(f"unassigned_penalty must be a non-negative integer, got {self.unassigned_penalty!r}")


@dataclass(frozen=True)
class TerminationConfig:
    max_steps: Optional[int] = None
    max_seconds: Optional[float] = None
    unimproved_step_limit: Optional[int] = None  # plateau detection
    best_score_limit: Optional[Score] = None

    def __post_init__(self):
        if all(limit is None for limit in (self.max_steps, self.max_seconds, self.unimproved_step_limit, self.best_score_limit)):
            raise ValueError("At least one termination limit must be set.")
        if self.max_steps is not None and self.max_steps < 0:
            raise ValueError("max_steps must be non-negative")
        if self.max_seconds is not None and self.max_seconds < 0:
            raise ValueError("max_seconds must be non-negative")
        if self.unimproved_step_limit is not None and self.unimproved_step_limit <= 0:
            raise ValueError("unimproved_step_limit must be positive")


@dataclass(frozen=True)
class AcceptorConfig:
    """Acceptance strategy and its hyperparameters.

    Attributes:
        kind: One of simulated_annealing, hill_climbing, late_acceptance, tabu.
        start_temperature: Simulated annealing temperature at the first step.
        end_temperature: Temperature at which simulated annealing reheats.
        temperature_steps: Number of temperature levels between start and end (K).
        iterations_per_temperature: Steps spent at each temperature level.
        late_acceptance_size: Length of the late acceptance score history.
        tabu_tenure: Number of accepted moves the attributes undoing a move stay tabu.
        tabu_inner: Acceptor kind used for non-tabu moves (None is hill climbing).
    """

    kind: str = "simulated_annealing"
    start_temperature: float = 500.0
    end_temperature: float = 1.0
    temperature_steps: int = 75
    iterations_per_temperature: int = 1000
    late_acceptance_size: int = 400
    tabu_tenure: int = 20
    tabu_inner: Optional[str] = None

    def __post_init__(self):
        if self.kind not in ACCEPTOR_KINDS:
            raise ValueError(f"Unknown acceptor kind {self.kind!r}, expected one of {ACCEPTOR_KINDS}")
        if self.tabu_inner is not None and self.tabu_inner not in ACCEPTOR_KINDS[:3]:
            raise ValueError(f"tabu_inner must be one of {ACCEPTOR_KINDS[:3]} or None")
        if not 0 < self.end_temperature <= self.start_temperature:
            raise ValueError("Temperatures must satisfy 0 < end_temperature <= start_temperature")
        if self.temperature_steps < 2:
            raise ValueError("temperature_steps must be at least 2")
        if self.iterations_per_temperature <= 0:
            raise ValueError("iterations_per_temperature must be positive")
        if self.late_acceptance_size <= 0:
            raise ValueError("late_acceptance_size must be positive")
        if self.tabu_tenure <= 0:
            raise ValueError("tabu_tenure must be positive")


@dataclass(frozen=True)
class MoveConfig:
    swap_probability: float = 0.3
    unassign_probability: float = 0.01
    nearby_probability: float = 0.5
    nearby_facility_count: int = 5

    def __post_init__(self):
        for name in ("swap_probability", "unassign_probability", "nearby_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value!r}")
        if self.nearby_facility_count <= 0:
            raise ValueError("nearby_facility_count must be positive")


@dataclass(frozen=True)
class SolverConfig:
    termination: TerminationConfig = field(default_factory=lambda: TerminationConfig(max_steps=100_000))
    acceptor: AcceptorConfig = field(default_factory=AcceptorConfig)
    moves: MoveConfig = field(default_factory=MoveConfig)
    weights: ConstraintWeights = field(default_factory=ConstraintWeights)
    construction: str = "greedy"
    seed: Optional[int] = 13062025
    score_check_interval: Optional[int] = 10_000
    strict_score_check: bool = False
    plateau_limit: Optional[int] = 5_000
    ruin_percentage: float = 0.05
    ilp_time_limit: int = 60
    log_interval: int = 10_000
    log_file_path: Optional[str] = None

    def __post_init__(self):
        if self.construction not in CONSTRUCTION_KINDS:
            raise ValueError(f"Unknown construction {self.construction!r}, expected one of {CONSTRUCTION_KINDS}")
        if self.score_check_interval is not None and self.score_check_interval <= 0:
            raise ValueError("score_check_interval must be positive or None")
        if self.plateau_limit is not None and self.plateau_limit <= 0:
            raise ValueError("plateau_limit must be positive or None")
        if not 0.0 < self.ruin_percentage <= 1.0:
            raise ValueError("ruin_percentage must be within (0, 1]")
        if self.log_interval <= 0:
            raise ValueError("log_interval must be positive")
