from cflp.base_model.solution import Solution, UNASSIGNED
from cflp.local_search.move import Move


def overload(load: int, capacity: int) -> int:
    """Demand above capacity, zero when the facility is not overloaded."""
    return load - capacity if load > capacity else 0


def get_facility_changes(solution: Solution, move: Move) -> dict[int, list[int]]:
    """
    Net change of load and consumer count per facility position if the move was applied.
    Returns {facility_position: [load_change, count_change]} for every facility the move touches.
    """
    changes: dict[int, list[int]] = {}
    for consumer_id, old_facility_id, new_facility_id in move.consumer_changes():
        demand = solution.demands[solution.consumer_position(consumer_id)]
        if old_facility_id is not None:
            entry = changes.setdefault(solution.facility_position(old_facility_id), [0, 0])
            entry[0] -= demand
            entry[1] -= 1
        if new_facility_id is not None:
            entry = changes.setdefault(solution.facility_position(new_facility_id), [0, 0])
            entry[0] += demand
            entry[1] += 1
    return changes


def consumer_distance(solution: Solution, consumer_position: int, facility_id) -> int:
    """Distance of a consumer to a facility id, zero for None (the unassigned term covers that case)."""
    if facility_id is None:
        return 0
    return solution.distances[consumer_position][solution.facility_position(facility_id)]


def count_unassigned(solution: Solution) -> int:
    return sum(1 for fi in solution.assigned_index if fi == UNASSIGNED)
