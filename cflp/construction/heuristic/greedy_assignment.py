import logging
import random

from cflp.base_model.solution import Solution, UNASSIGNED
from cflp.local_search.move import ReassignMove
from cflp.local_search.rules_engine import calculate_delta_score

logger = logging.getLogger(__name__)


def add_consumer_to_solution(solution: Solution, consumer_position: int) -> None:
    """Assign the consumer to the facility whose assignment scores best right now (cheapest insertion)."""
    consumer = solution.all_consumers[consumer_position]
    best_facility_id = None
    best_delta = None
    for facility in solution.all_facilities:
        move = ReassignMove(consumer.consumer_id, None, facility.facility_id)
        delta = calculate_delta_score(solution, move)
        # the delta includes the capacity term, so facilities with room left win over full ones
        if best_delta is None or delta > best_delta:
            best_delta = delta
            best_facility_id = facility.facility_id

    solution.assign(consumer.consumer_id, best_facility_id)


def generate_greedy_solution(solution: Solution) -> Solution:
    """
    First fit decreasing: place the consumers with the largest demand first, each on the
    facility that gives the best score at that moment. Consumers that are already
    assigned keep their facility.
    """
    if not solution.all_facilities:
        logger.warning("No facilities in the solution, every consumer stays unassigned.")
        return solution

    to_place = [ci for ci, fi in enumerate(solution.assigned_index) if fi == UNASSIGNED]
    to_place.sort(key=lambda ci: solution.demands[ci], reverse=True)
    logger.info("Greedy construction of %d consumers over %d facilities", len(to_place), len(solution.all_facilities))

    for ci in to_place:
        add_consumer_to_solution(solution, ci)

    return solution


def generate_random_solution(solution: Solution, rng: random.Random) -> Solution:
    """Assign every consumer to a uniformly random facility, ignoring capacity."""
    if not solution.all_facilities:
        logger.warning("No facilities in the solution, every consumer stays unassigned.")
        return solution

    for ci in range(len(solution.all_consumers)):
        solution.assign_position(ci, rng.randrange(len(solution.all_facilities)))

    return solution
