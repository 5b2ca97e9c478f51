import random
from typing import Optional

from cflp.base_model.solution import Solution, UNASSIGNED
from cflp.config import MoveConfig
from cflp.local_search.move import Move, ReassignMove, SwapMove


def generate_reassign_move(solution: Solution, rng: random.Random, unassign_probability: float = 0.0) -> ReassignMove:
    """
    Pick a random consumer and a different facility for it. With unassign_probability an
    assigned consumer is proposed to become unassigned instead.
    """
    consumers = solution.all_consumers
    facilities = solution.all_facilities
    if not consumers:
        raise ValueError("No consumers found in the solution.")
    if not facilities:
        raise ValueError("No facilities found in the solution.")

    ci = rng.randrange(len(consumers))
    current_fi = solution.assigned_index[ci]
    consumer_id = consumers[ci].consumer_id
    old_facility_id = None if current_fi == UNASSIGNED else facilities[current_fi].facility_id

    if current_fi != UNASSIGNED and (len(facilities) == 1 or rng.random() < unassign_probability):
        if len(facilities) == 1 and unassign_probability <= 0.0:
            raise ValueError("No valid reassign moves with a single facility.")
        return ReassignMove(consumer_id, old_facility_id, None)

    # draw from all other facilities without building a list
    new_fi = rng.randrange(len(facilities) - (0 if current_fi == UNASSIGNED else 1))
    if current_fi != UNASSIGNED and new_fi >= current_fi:
        new_fi += 1
    return ReassignMove(consumer_id, old_facility_id, facilities[new_fi].facility_id)


def generate_nearby_reassign_move(solution: Solution, rng: random.Random, nearby_facility_count: int) -> ReassignMove:
    """Reassign a random consumer to one of its nearby_facility_count closest facilities."""
    consumers = solution.all_consumers
    if not consumers:
        raise ValueError("No consumers found in the solution.")
    if not solution.all_facilities:
        raise ValueError("No facilities found in the solution.")

    consumer = consumers[rng.randrange(len(consumers))]
    old_facility_id = solution.facility_of(consumer.consumer_id)
    nearby = [fid for fid in solution.get_nearby_facility_ids(consumer.consumer_id, nearby_facility_count)
              if fid != old_facility_id]
    if not nearby:
        # every nearby facility is the current one, fall back to any other facility
        return generate_reassign_move(solution, rng)
    return ReassignMove(consumer.consumer_id, old_facility_id, rng.choice(nearby))


def generate_swap_move(solution: Solution, rng: random.Random, max_attempts: int = 20) -> Optional[SwapMove]:
    """
    Pick two consumers assigned to different facilities and swap their facilities.
    Returns None when no such pair was found within max_attempts draws.
    """
    consumers = solution.all_consumers
    if len(consumers) < 2:
        return None

    facilities = solution.all_facilities
    for _ in range(max_attempts):
        left_ci, right_ci = rng.sample(range(len(consumers)), 2)
        left_fi = solution.assigned_index[left_ci]
        right_fi = solution.assigned_index[right_ci]
        if left_fi == UNASSIGNED or right_fi == UNASSIGNED or left_fi == right_fi:
            continue
        return SwapMove(consumers[left_ci].consumer_id, consumers[right_ci].consumer_id,
                        facilities[left_fi].facility_id, facilities[right_fi].facility_id)
    return None


def has_any_move(solution: Solution, move_config: MoveConfig) -> bool:
    """False when there is nothing to search: no consumer, no facility, or one facility and nothing to unassign."""
    if not solution.all_consumers or not solution.all_facilities:
        return False
    if len(solution.all_facilities) == 1:
        all_assigned = all(fi != UNASSIGNED for fi in solution.assigned_index)
        return not all_assigned or move_config.unassign_probability > 0.0
    return True


def generate_random_move(solution: Solution, rng: random.Random, move_config: MoveConfig) -> Move:
    """
    Generate one random move of a random kind. Every kind has a fixed positive probability
    whenever it is applicable, so any assignment stays reachable.
    """
    if not has_any_move(solution, move_config):
        raise ValueError("No valid moves exist for this solution.")

    if rng.random() < move_config.swap_probability:
        move = generate_swap_move(solution, rng)
        if move is not None:
            return move

    if len(solution.all_facilities) > 1 and rng.random() < move_config.nearby_probability:
        return generate_nearby_reassign_move(solution, rng, move_config.nearby_facility_count)

    if len(solution.all_facilities) == 1:
        # the only option is to toggle a consumer between the facility and unassigned
        return _generate_single_facility_move(solution, rng, move_config.unassign_probability)

    return generate_reassign_move(solution, rng, move_config.unassign_probability)


def _generate_single_facility_move(solution: Solution, rng: random.Random, unassign_probability: float) -> ReassignMove:
    facility_id = solution.all_facilities[0].facility_id
    unassigned = [ci for ci, fi in enumerate(solution.assigned_index) if fi == UNASSIGNED]
    assigned_exists = len(unassigned) < len(solution.all_consumers)
    if unassigned and (not assigned_exists or rng.random() >= unassign_probability):
        consumer = solution.all_consumers[rng.choice(unassigned)]
        return ReassignMove(consumer.consumer_id, None, facility_id)

    assigned = [ci for ci, fi in enumerate(solution.assigned_index) if fi != UNASSIGNED]
    consumer = solution.all_consumers[rng.choice(assigned)]
    return ReassignMove(consumer.consumer_id, facility_id, None)


def generate_specific_reassign_move(solution: Solution, consumer_id: int, facility_id: Optional[int]) -> ReassignMove:
    """
    Generate a move of a specific consumer to a specific facility (None to unassign).
    """
    old_facility_id = solution.facility_of(consumer_id)
    if facility_id is not None:
        solution.facility_position(facility_id)
    return ReassignMove(consumer_id, old_facility_id, facility_id)


def generate_all_reassign_moves(solution: Solution, consumer_id: int) -> list[ReassignMove]:
    """Every reassign move for one consumer, including unassigning it when it is assigned."""
    old_facility_id = solution.facility_of(consumer_id)
    moves = [ReassignMove(consumer_id, old_facility_id, f.facility_id)
             for f in solution.all_facilities if f.facility_id != old_facility_id]
    if old_facility_id is not None:
        moves.append(ReassignMove(consumer_id, old_facility_id, None))
    return moves
