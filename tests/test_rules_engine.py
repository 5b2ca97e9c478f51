import random
import unittest
from copy import deepcopy

from cflp.base_model.consumer import Consumer
from cflp.base_model.facility import Facility
from cflp.base_model.location import Location, euclidean_distance
from cflp.base_model.score import Score
from cflp.base_model.solution import build_problem
from cflp.config import ConstraintWeights, MoveConfig
from cflp.construction.heuristic.greedy_assignment import generate_greedy_solution
from cflp.local_search.move import CompositeMove, Move, ReassignMove, SwapMove, do_move, undo_move
from cflp.local_search.move_generator import generate_random_move
from cflp.local_search.rules_engine import *
from cflp.util.data_generator import generate_test_data_parsed


class TestRulesEngine(unittest.TestCase):

    def setUp(self):
        # generate a random instance for every test, slightly too little capacity so overloads happen
        parsed_data = generate_test_data_parsed(n_facilities=8, n_consumers=60, capacity_ratio=0.9, seed=42)
        self.solution = build_problem(parsed_data["facilities"], parsed_data["consumers"])
        generate_greedy_solution(self.solution)
        self.rng = random.Random(42)
        # high probabilities so every move kind shows up often
        self.move_config = MoveConfig(swap_probability=0.4, unassign_probability=0.2, nearby_probability=0.3)

        self.rule_functions = [
            (facility_capacity_delta, facility_capacity_full),
            (facility_setup_cost_delta, facility_setup_cost_full),
            (distance_from_facility_delta, distance_from_facility_full),
            (unassigned_consumer_delta, unassigned_consumer_full),
        ]

    def test_full_score_vs_delta_score_and_move_reversibility(self):
        """
        Tests if delta score matches full score difference
        and if undo_move correctly reverts the solution state over multiple iterations.
        """
        iterations = 500

        for i in range(iterations):
            solution_initial = deepcopy(self.solution)
            full_score_initial = calculate_full_score(self.solution)

            move: Move = generate_random_move(self.solution, self.rng, self.move_config)
            delta_score = calculate_delta_score(self.solution, move)
            do_move(move, self.solution)

            full_score_after_do = calculate_full_score(self.solution)
            score_diff = full_score_after_do - full_score_initial
            self.assertEqual(score_diff, delta_score, f"Iteration {i}: Delta score ({delta_score}) != Full score difference ({score_diff}). Move: {move}")

            undo_move(move, self.solution)
            self.assertEqual(self.solution, solution_initial, f"Iteration {i}: undo_move did not restore the solution. Move: {move}")
            self.assertEqual(calculate_full_score(self.solution), full_score_initial)

            # keep half of the moves so the walk visits different states
            if i % 2 == 0:
                do_move(move, self.solution)

    def test_each_rule_delta_matches_full(self):
        iterations = 300

        for i in range(iterations):
            move = generate_random_move(self.solution, self.rng, self.move_config)
            before = [full(self.solution) for _, full in self.rule_functions]
            deltas = [delta(self.solution, move) for delta, _ in self.rule_functions]
            do_move(move, self.solution)
            after = [full(self.solution) for _, full in self.rule_functions]

            for (delta_function, _), b, d, a in zip(self.rule_functions, before, deltas, after):
                self.assertEqual(a - b, d, f"Iteration {i}: {delta_function.__name__} is off for {move}")

    def test_composite_move_delta(self):
        consumers = self.solution.get_all_consumers()
        first, second = consumers[0], consumers[1]
        first_facility = self.solution.facility_of(first.consumer_id)
        second_facility = self.solution.facility_of(second.consumer_id)
        other_facility = next(f.facility_id for f in self.solution.get_all_facilities() if f.facility_id != first_facility)

        # the same consumer is changed twice inside one composite
        move = CompositeMove([
            ReassignMove(first.consumer_id, first_facility, None),
            ReassignMove(second.consumer_id, second_facility, None),
            ReassignMove(first.consumer_id, None, other_facility),
        ])
        score_before = calculate_full_score(self.solution)
        delta = calculate_delta_score(self.solution, move)
        do_move(move, self.solution)
        self.assertEqual(calculate_full_score(self.solution) - score_before, delta)

    def test_delta_of_applied_move_raises(self):
        move = generate_random_move(self.solution, self.rng, self.move_config)
        do_move(move, self.solution)
        with self.assertRaises(ValueError):
            calculate_delta_score(self.solution, move)
        with self.assertRaises(ValueError):
            calculate_delta_score(self.solution, None)

    def test_explain_score_sums_to_full_score(self):
        self.solution.assign(self.solution.get_all_consumers()[0].consumer_id, None)
        explanation = explain_score(self.solution)
        self.assertEqual(set(explanation), {"facility_capacity", "facility_setup_cost",
                                            "distance_from_facility", "unassigned_consumer"})
        total = Score()
        for part in explanation.values():
            total = total + part
        self.assertEqual(total, calculate_full_score(self.solution))
        self.assertLess(explanation["unassigned_consumer"].soft, 0)

    def test_constraint_weight_dominates_soft_score(self):
        hard_weight = calculate_constraint_weights(self.solution)
        self.solution.unassign_all()
        worst_soft = -calculate_full_score(self.solution).soft
        generate_greedy_solution(self.solution)
        self.assertGreater(hard_weight, worst_soft)
        self.assertEqual(str(hard_weight).rstrip("0"), "1")


class TestScoreScenarios(unittest.TestCase):

    def test_two_facility_scenario(self):
        facilities = [
            Facility(1, Location(0, 0), capacity=10, setup_cost=100),
            Facility(2, Location(10, 0), capacity=10, setup_cost=50),
        ]
        consumers = [
            Consumer(1, Location(0, 0), demand=4),
            Consumer(2, Location(1, 0), demand=4),
            Consumer(3, Location(9, 0), demand=4),
        ]
        solution = build_problem(facilities, consumers, distance_function=euclidean_distance)
        solution.load_assignment({1: 1, 2: 1, 3: 2})
        # distances 0 + 1 + 1, both facilities used
        self.assertEqual(calculate_full_score(solution), Score(0, -(5 * 2 + 2 * 150)))

        solution.load_assignment({1: 1, 2: 1, 3: 1})
        self.assertEqual(calculate_full_score(solution).hard, -2)

    def test_single_facility_overload(self):
        facilities = [Facility(1, Location(0, 0), capacity=5, setup_cost=0)]
        consumers = [Consumer(1, Location(0, 0), demand=4), Consumer(2, Location(0, 0), demand=4)]
        solution = build_problem(facilities, consumers)
        solution.load_assignment({1: 1, 2: 1})
        self.assertEqual(calculate_full_score(solution).hard, -3)

    def test_unassigned_consumers_cost_more_than_any_assignment(self):
        facilities = [Facility(1, Location(0, 0), capacity=10, setup_cost=30)]
        consumers = [Consumer(1, Location(0, 0.5), demand=1)]
        solution = build_problem(facilities, consumers)
        unassigned_score = calculate_full_score(solution)
        solution.assign(1, 1)
        self.assertGreater(calculate_full_score(solution), unassigned_score)

    def test_weights_are_applied(self):
        facilities = [Facility(1, Location(0, 0), capacity=1, setup_cost=10)]
        consumers = [Consumer(1, Location(0, 3), demand=3)]
        weights = ConstraintWeights(distance_weight=1, setup_weight=3, capacity_weight=7, unassigned_penalty=1000)
        solution = build_problem(facilities, consumers, weights, distance_function=euclidean_distance)
        self.assertEqual(calculate_full_score(solution), Score(0, -1000))
        solution.assign(1, 1)
        self.assertEqual(calculate_full_score(solution), Score(-7 * 2, -(3 + 3 * 10)))

    def test_swap_between_loaded_facilities(self):
        facilities = [Facility(1, Location(0, 0), 5, 0), Facility(2, Location(10, 0), 5, 0)]
        consumers = [Consumer(1, Location(0, 0), 5), Consumer(2, Location(10, 0), 2)]
        solution = build_problem(facilities, consumers, distance_function=euclidean_distance)
        solution.load_assignment({1: 2, 2: 1})
        move = SwapMove(1, 2, 2, 1)
        before = calculate_full_score(solution)
        delta = calculate_delta_score(solution, move)
        do_move(move, solution)
        self.assertEqual(calculate_full_score(solution) - before, delta)
        self.assertEqual(calculate_full_score(solution), Score(0, 0))


if __name__ == '__main__':
    unittest.main()
