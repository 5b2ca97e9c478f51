import logging
import random
import time
from typing import Optional

from cflp.base_model.solution import Solution, UNASSIGNED
from cflp.local_search.move import CompositeMove, ReassignMove, do_move
from cflp.local_search.rules_engine import calculate_delta_score, consumer_cost

logger = logging.getLogger(__name__)


def apply_ruin_and_recreate(solution: Solution, percentage: float, rng: random.Random) -> Optional[CompositeMove]:
    """Apply cost-based ruin and greedy recreate.

    The most expensive consumers (by their own distance cost) are unassigned, then put back one
    by one on the facility that scores best at that moment.

    Args:
        solution: The solution to modify
        percentage: Fraction of the assigned consumers to remove
        rng: Random generator used to break ties between equally expensive consumers

    Returns:
        The applied move (undo_move reverts it), or None if nothing was ruined
    """
    start_time = time.time()

    # Ruin phase - remove consumers with the highest cost
    ruin_moves = _cost_based_ruin(solution, percentage, rng)
    if not ruin_moves:
        return None

    composite = CompositeMove(ruin_moves)
    do_move(composite, solution)
    ruined_consumer_ids = [move.consumer_id for move in ruin_moves]
    logger.debug("Ruined %d consumers in %.3f seconds", len(ruin_moves), time.time() - start_time)

    # Recreate phase - cheapest insertion, largest demand first
    recreate_start = time.time()
    ruined_consumer_ids.sort(key=solution.demand_of, reverse=True)
    for consumer_id in ruined_consumer_ids:
        move = _best_insert_move(solution, consumer_id)
        if move is None:
            continue
        do_move(move, solution)
        composite.moves.append(move)

    logger.debug("Recreated %d consumers in %.3f seconds", len(composite.moves) - len(ruin_moves), time.time() - recreate_start)
    return composite


def _cost_based_ruin(solution: Solution, percentage: float, rng: random.Random) -> list[ReassignMove]:
    """
    Pick the assigned consumers with the largest cost. Returns unassign moves, not applied yet.
    """
    assigned = [ci for ci, fi in enumerate(solution.assigned_index) if fi != UNASSIGNED]
    if not assigned:
        return []

    n_remove = max(1, int(len(assigned) * percentage))
    # random tie breaker so equal costs do not always ruin the same consumers
    assigned.sort(key=lambda ci: (consumer_cost(solution, ci), rng.random()), reverse=True)

    moves = []
    for ci in assigned[:n_remove]:
        consumer_id = solution.all_consumers[ci].consumer_id
        facility_id = solution.all_facilities[solution.assigned_index[ci]].facility_id
        moves.append(ReassignMove(consumer_id, facility_id, None))
    return moves


def _best_insert_move(solution: Solution, consumer_id: int) -> Optional[ReassignMove]:
    best_move = None
    best_delta = None
    for facility in solution.all_facilities:
        move = ReassignMove(consumer_id, None, facility.facility_id)
        delta = calculate_delta_score(solution, move)
        if best_delta is None or delta > best_delta:
            best_move = move
            best_delta = delta
    return best_move
