from cflp.base_model.score import Score
from cflp.base_model.solution import Solution, UNASSIGNED


class SolutionSnapshot:
    def __init__(self, solution: Solution, score: Score):
        self.score = score
        # Store the assignment as a tuple of facility positions, one per consumer (-1 = unassigned)
        self.assigned_index: tuple[int, ...] = tuple(solution.assigned_index)

    def restore_solution(self, solution: Solution) -> Solution:
        """Put the snapshot's assignment back onto the solution, including loads and counters"""
        if len(self.assigned_index) != len(solution.all_consumers):
            raise ValueError("Snapshot was taken from a solution with a different number of consumers.")

        for ci, fi in enumerate(self.assigned_index):
            solution.assign_position(ci, fi)
        solution.score = self.score
        return solution

    def to_assignment(self, solution: Solution) -> dict:
        """Map consumer id -> facility id (None if unassigned) for the snapshot"""
        facilities = solution.all_facilities
        return {consumer.consumer_id: (None if fi == UNASSIGNED else facilities[fi].facility_id)
                for consumer, fi in zip(solution.all_consumers, self.assigned_index)}
