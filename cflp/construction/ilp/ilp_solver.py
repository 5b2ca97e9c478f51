import logging
import time

import pulp

from cflp.base_model.solution import Solution

logger = logging.getLogger(__name__)


def generate_solution_using_ilp(solution: Solution, time_limit: int = 60, gap_rel: float = 0.005) -> str:
    """
    Warm start the solution with a time limited mixed integer model.
    The incumbent the solver finds is written into the solution, nothing is claimed about optimality.

    Args:
        solution: The solution to fill. Existing assignments are replaced when an incumbent is found.
        time_limit: Maximum time in seconds for the solver (default: 60)
        gap_rel: Relative optimality gap for early termination (default: 0.005 = 0.5%)

    Returns:
        The PuLP status string of the solve ("Optimal", "Infeasible", "Not Solved", ...).
    """
    facilities = solution.all_facilities
    consumers = solution.all_consumers
    weights = solution.weights

    if not facilities or not consumers:
        return pulp.LpStatus[pulp.LpStatusNotSolved]

    problem = pulp.LpProblem("CapacitatedFacilityLocation", pulp.LpMinimize)
    start_time = time.time()

    # x[(ci, fi)] = 1 if consumer ci is served by facility fi
    x = {}
    for ci in range(len(consumers)):
        for fi in range(len(facilities)):
            x[(ci, fi)] = pulp.LpVariable(f"x_{ci}_{fi}", cat=pulp.LpBinary)

    # y[fi] = 1 if facility fi is used
    y = {fi: pulp.LpVariable(f"y_{fi}", cat=pulp.LpBinary) for fi in range(len(facilities))}

    # Objective: weighted distance + weighted setup cost
    problem += (
        weights.distance_weight * pulp.lpSum(solution.distances[ci][fi] * x[(ci, fi)] for (ci, fi) in x)
        + weights.setup_weight * pulp.lpSum(solution.setup_costs[fi] * y[fi] for fi in y)
    )

    # Constraint 1: Each consumer is served by exactly one facility
    for ci in range(len(consumers)):
        problem += (
            pulp.lpSum(x[(ci, fi)] for fi in range(len(facilities))) == 1,
            f"Assign_Consumer_Once_{ci}"
        )

    # Constraint 2: Demand served by a facility fits its capacity, and only used facilities serve demand
    for fi in range(len(facilities)):
        problem += (
            pulp.lpSum(solution.demands[ci] * x[(ci, fi)] for ci in range(len(consumers))) <= solution.capacities[fi] * y[fi],
            f"Capacity_{fi}"
        )

    # Constraint 3: Linking (tightens the relaxation)
    for (ci, fi), var in x.items():
        problem += var <= y[fi], f"Link_{ci}_{fi}"

    logger.info("ILP model with %d variables built in %.2f seconds", len(x) + len(y), time.time() - start_time)

    solver = pulp.PULP_CBC_CMD(timeLimit=time_limit, gapRel=gap_rel, msg=0)
    start_time = time.time()
    problem.solve(solver)
    status = pulp.LpStatus[problem.status]
    logger.info("ILP solved in %.2f seconds with status: %s", time.time() - start_time, status)

    if problem.status != pulp.LpStatusOptimal and problem.sol_status != pulp.LpSolutionIntegerFeasible:
        logger.warning("No incumbent from the ILP warm start (status: %s), keeping the current assignment", status)
        return status

    assignment = {}
    for (ci, fi), var in x.items():
        value = pulp.value(var)
        if value is not None and value > 0.5:
            assignment[consumers[ci].consumer_id] = facilities[fi].facility_id
    if len(assignment) != len(consumers):
        logger.warning("ILP incumbent assigns %d of %d consumers, keeping the current assignment", len(assignment), len(consumers))
        return status

    solution.load_assignment(assignment)
    return status
