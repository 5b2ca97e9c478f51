import random
import unittest
from copy import deepcopy

from cflp.base_model.consumer import Consumer
from cflp.base_model.exceptions import InvalidReference
from cflp.base_model.facility import Facility
from cflp.base_model.location import Location, euclidean_distance
from cflp.base_model.solution import build_problem
from cflp.config import MoveConfig
from cflp.local_search.move import CompositeMove, ReassignMove, SwapMove, do_move, undo_move
from cflp.local_search.move_generator import (
    generate_all_reassign_moves,
    generate_nearby_reassign_move,
    generate_random_move,
    generate_reassign_move,
    generate_specific_reassign_move,
    generate_swap_move,
    has_any_move,
)


class TestMoves(unittest.TestCase):

    def setUp(self):
        self.facilities = [
            Facility(1, Location(0, 0), capacity=10, setup_cost=100),
            Facility(2, Location(10, 0), capacity=10, setup_cost=50),
            Facility(3, Location(5, 5), capacity=10, setup_cost=70),
        ]
        self.consumers = [
            Consumer(1, Location(0, 0), demand=4),
            Consumer(2, Location(1, 0), demand=3),
            Consumer(3, Location(9, 0), demand=5),
        ]
        self.solution = build_problem(self.facilities, self.consumers, distance_function=euclidean_distance)
        self.solution.load_assignment({1: 1, 2: 1, 3: 2})

    def test_reassign_do_and_undo(self):
        before = deepcopy(self.solution)
        move = ReassignMove(2, 1, 3)
        do_move(move, self.solution)
        self.assertTrue(move.is_applied)
        self.assertEqual(self.solution.facility_of(2), 3)
        self.assertEqual(self.solution.loads, [4, 5, 3])

        undo_move(move, self.solution)
        self.assertFalse(move.is_applied)
        self.assertEqual(self.solution, before)

    def test_swap_do_and_undo(self):
        before = deepcopy(self.solution)
        move = SwapMove(1, 3, 1, 2)
        do_move(move, self.solution)
        self.assertEqual(self.solution.facility_of(1), 2)
        self.assertEqual(self.solution.facility_of(3), 1)
        self.assertEqual(self.solution.loads, [8, 4, 0])

        undo_move(move, self.solution)
        self.assertEqual(self.solution, before)

    def test_composite_is_undone_in_reverse_order(self):
        before = deepcopy(self.solution)
        move = CompositeMove([ReassignMove(1, 1, None), ReassignMove(2, 1, 2), ReassignMove(1, None, 3)])
        do_move(move, self.solution)
        self.assertEqual(self.solution.to_assignment(), {1: 3, 2: 2, 3: 2})

        undo_move(move, self.solution)
        self.assertEqual(self.solution, before)
        self.assertTrue(all(not sub_move.is_applied for sub_move in move.moves))

    def test_double_do_and_double_undo_are_no_ops(self):
        move = ReassignMove(1, 1, 2)
        do_move(move, self.solution)
        after_do = deepcopy(self.solution)
        do_move(move, self.solution)
        self.assertEqual(self.solution, after_do)

        undo_move(move, self.solution)
        after_undo = deepcopy(self.solution)
        undo_move(move, self.solution)
        self.assertEqual(self.solution, after_undo)

    def test_stale_move_is_rejected_without_changes(self):
        before = deepcopy(self.solution)
        with self.assertRaises(ValueError):
            do_move(SwapMove(1, 3, 1, 3), self.solution)
        self.assertEqual(self.solution, before)

    def test_unknown_ids_are_fatal(self):
        before = deepcopy(self.solution)
        with self.assertRaises(InvalidReference):
            do_move(ReassignMove(1, 1, 99), self.solution)
        with self.assertRaises(InvalidReference):
            do_move(ReassignMove(42, None, 1), self.solution)
        self.assertEqual(self.solution, before)

    def test_tabu_attributes(self):
        move = SwapMove(1, 3, 1, 2)
        self.assertEqual(move.planned_attributes(), {(1, 2), (3, 1)})
        self.assertEqual(move.reverse_attributes(), {(1, 1), (3, 2)})


class TestMoveGeneration(unittest.TestCase):

    def setUp(self):
        facilities = [Facility(fid, Location(fid, 0), capacity=10, setup_cost=10) for fid in range(1, 5)]
        consumers = [Consumer(cid, Location(cid, 1), demand=2) for cid in range(1, 7)]
        self.solution = build_problem(facilities, consumers, distance_function=euclidean_distance)
        self.solution.load_assignment({1: 1, 2: 1, 3: 2, 4: 3, 5: 4})  # consumer 6 unassigned
        self.rng = random.Random(1)

    def _assert_valid(self, move):
        for consumer_id, old_facility_id, new_facility_id in move.consumer_changes():
            self.assertEqual(self.solution.facility_of(consumer_id), old_facility_id)
            self.assertNotEqual(old_facility_id, new_facility_id)

    def test_reassign_moves_cover_every_target(self):
        seen = set()
        for _ in range(2000):
            move = generate_reassign_move(self.solution, self.rng, unassign_probability=0.1)
            self._assert_valid(move)
            seen.add((move.consumer_id, move.new_facility_id))

        expected = set()
        for consumer in self.solution.get_all_consumers():
            for move in generate_all_reassign_moves(self.solution, consumer.consumer_id):
                expected.add((move.consumer_id, move.new_facility_id))
        self.assertEqual(seen, expected)

    def test_random_moves_are_valid_and_mixed(self):
        move_config = MoveConfig(swap_probability=0.3, unassign_probability=0.05, nearby_probability=0.5,
                                 nearby_facility_count=2)
        move_types = set()
        for _ in range(500):
            move = generate_random_move(self.solution, self.rng, move_config)
            self._assert_valid(move)
            move_types.add(move.move_type)
        self.assertEqual(move_types, {"reassign", "swap"})

    def test_nearby_move_picks_a_close_facility(self):
        for _ in range(200):
            move = generate_nearby_reassign_move(self.solution, self.rng, nearby_facility_count=2)
            self._assert_valid(move)
            nearby = self.solution.get_nearby_facility_ids(move.consumer_id, 2)
            if move.old_facility_id not in nearby:
                self.assertIn(move.new_facility_id, nearby)

    def test_swap_moves_use_different_facilities(self):
        for _ in range(200):
            move = generate_swap_move(self.solution, self.rng)
            self.assertIsNotNone(move)
            self._assert_valid(move)
            self.assertNotEqual(move.left_facility_id, move.right_facility_id)

    def test_swap_returns_none_when_no_pair_exists(self):
        self.solution.load_assignment({cid: 1 for cid in range(1, 7)})
        self.assertIsNone(generate_swap_move(self.solution, self.rng))

    def test_specific_moves(self):
        move = generate_specific_reassign_move(self.solution, 6, 2)
        self.assertEqual((move.old_facility_id, move.new_facility_id), (None, 2))
        with self.assertRaises(InvalidReference):
            generate_specific_reassign_move(self.solution, 6, 99)

        moves = generate_all_reassign_moves(self.solution, 1)
        self.assertEqual(sorted(m.new_facility_id for m in moves if m.new_facility_id is not None), [2, 3, 4])
        self.assertIn(None, [m.new_facility_id for m in moves])

    def test_no_moves_without_consumers_or_facilities(self):
        rng = random.Random(0)
        empty = build_problem([], [Consumer(1, Location(0, 0), 1)])
        self.assertFalse(has_any_move(empty, MoveConfig()))
        with self.assertRaises(ValueError):
            generate_random_move(empty, rng, MoveConfig())

        no_consumers = build_problem([Facility(1, Location(0, 0), 1, 0)], [])
        with self.assertRaises(ValueError):
            generate_reassign_move(no_consumers, rng)

    def test_single_facility(self):
        rng = random.Random(0)
        solution = build_problem([Facility(1, Location(0, 0), 5, 0)],
                                 [Consumer(1, Location(0, 0), 4), Consumer(2, Location(0, 0), 4)])
        solution.load_assignment({1: 1, 2: 1})

        self.assertFalse(has_any_move(solution, MoveConfig(unassign_probability=0.0)))
        with self.assertRaises(ValueError):
            generate_reassign_move(solution, rng)

        # with unassigning allowed the consumers can toggle
        move_config = MoveConfig(unassign_probability=0.5)
        self.assertTrue(has_any_move(solution, move_config))
        for _ in range(50):
            move = generate_random_move(solution, rng, move_config)
            self._assert_single_facility_toggle(solution, move)
            do_move(move, solution)

    def _assert_single_facility_toggle(self, solution, move):
        self.assertEqual(solution.facility_of(move.consumer_id), move.old_facility_id)
        self.assertIn(move.new_facility_id, (None, 1))
        self.assertNotEqual(move.old_facility_id, move.new_facility_id)


if __name__ == '__main__':
    unittest.main()
