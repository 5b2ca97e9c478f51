import math

from cflp.base_model.score import Score
from cflp.base_model.solution import Solution, UNASSIGNED
from cflp.local_search.move import Move
from cflp.local_search.rules_engine_helpers import consumer_distance, count_unassigned, get_facility_changes, overload


def calculate_constraint_weights(solution: Solution) -> int:
    """
    Weight that turns one unit of hard score into soft units, so a score can be
    collapsed into a single cost for simulated annealing.
    Rounded up to a power of 10 for readability.

    Ensures the constraint hierarchy is kept:
    - All soft penalties combined < one hard violation
    """
    weights = solution.weights
    max_distance_cost = sum(max(row, default=0) for row in solution.distances) * weights.distance_weight
    max_setup_cost = sum(solution.setup_costs) * weights.setup_weight
    max_unassigned_cost = len(solution.all_consumers) * solution.unassigned_penalty

    exact_hard_weight = (max_distance_cost + max_setup_cost + max_unassigned_cost + 1) * 10
    return 10 ** math.ceil(math.log10(exact_hard_weight))


def calculate_full_score(solution: Solution) -> Score:
    """Score of the whole solution, computed from scratch. O(consumers + facilities)."""
    weights = solution.weights

    # Hard
    hard_violations = facility_capacity_full(solution)

    # Soft
    soft_penalty = 0
    soft_penalty += weights.setup_weight * facility_setup_cost_full(solution)
    soft_penalty += weights.distance_weight * distance_from_facility_full(solution)
    soft_penalty += solution.unassigned_penalty * unassigned_consumer_full(solution)

    return Score(-weights.capacity_weight * hard_violations, -soft_penalty)


def calculate_delta_score(solution: Solution, move: Move) -> Score:
    """
    Score change the move would cause.
    Call BEFORE doing the move, the solution is left untouched.
    """
    if move is None or move.is_applied:
        raise ValueError("Move is None or already applied.")

    weights = solution.weights
    facility_changes = get_facility_changes(solution, move)

    # Hard
    hard_violations = facility_capacity_delta(solution, move, facility_changes)

    # Soft
    soft_penalty = 0
    soft_penalty += weights.setup_weight * facility_setup_cost_delta(solution, move, facility_changes)
    soft_penalty += weights.distance_weight * distance_from_facility_delta(solution, move)
    soft_penalty += solution.unassigned_penalty * unassigned_consumer_delta(solution, move)

    return Score(-weights.capacity_weight * hard_violations, -soft_penalty)


def explain_score(solution: Solution) -> dict[str, Score]:
    """Weighted contribution of every constraint to the full score."""
    weights = solution.weights
    return {
        "facility_capacity": Score(-weights.capacity_weight * facility_capacity_full(solution), 0),
        "facility_setup_cost": Score(0, -weights.setup_weight * facility_setup_cost_full(solution)),
        "distance_from_facility": Score(0, -weights.distance_weight * distance_from_facility_full(solution)),
        "unassigned_consumer": Score(0, -solution.unassigned_penalty * unassigned_consumer_full(solution)),
    }


def facility_capacity_full(solution: Solution) -> int:
    """
    Total demand above capacity, summed over all facilities.
    """
    return sum(overload(load, capacity) for load, capacity in zip(solution.loads, solution.capacities))


def facility_capacity_delta(solution: Solution, move: Move, facility_changes: dict = None) -> int:
    if facility_changes is None:
        facility_changes = get_facility_changes(solution, move)

    violations_before = 0
    violations_after = 0
    for fi, (load_change, _) in facility_changes.items():
        load = solution.loads[fi]
        capacity = solution.capacities[fi]
        violations_before += overload(load, capacity)
        violations_after += overload(load + load_change, capacity)

    return violations_after - violations_before


def facility_setup_cost_full(solution: Solution) -> int:
    """
    Setup cost is charged once for every facility with at least one consumer.
    """
    return solution.total_setup_cost()


def facility_setup_cost_delta(solution: Solution, move: Move, facility_changes: dict = None) -> int:
    if facility_changes is None:
        facility_changes = get_facility_changes(solution, move)

    delta = 0
    for fi, (_, count_change) in facility_changes.items():
        count = solution.consumer_counts[fi]
        used_before = count > 0
        used_after = count + count_change > 0
        if used_before != used_after:
            delta += solution.setup_costs[fi] if used_after else -solution.setup_costs[fi]

    return delta


def distance_from_facility_full(solution: Solution) -> int:
    return solution.total_distance()


def distance_from_facility_delta(solution: Solution, move: Move) -> int:
    delta = 0
    for consumer_id, old_facility_id, new_facility_id in move.consumer_changes():
        ci = solution.consumer_position(consumer_id)
        delta += consumer_distance(solution, ci, new_facility_id) - consumer_distance(solution, ci, old_facility_id)
    return delta


def unassigned_consumer_full(solution: Solution) -> int:
    return count_unassigned(solution)


def unassigned_consumer_delta(solution: Solution, move: Move) -> int:
    delta = 0
    for _, old_facility_id, new_facility_id in move.consumer_changes():
        if old_facility_id is None and new_facility_id is not None:
            delta -= 1
        elif old_facility_id is not None and new_facility_id is None:
            delta += 1
    return delta


def consumer_cost(solution: Solution, consumer_position: int) -> int:
    """Soft penalty a single consumer is responsible for through its distance (or its being unassigned)."""
    fi = solution.assigned_index[consumer_position]
    if fi == UNASSIGNED:
        return solution.unassigned_penalty
    return solution.weights.distance_weight * solution.distances[consumer_position][fi]
