"""
Local search optimization module for capacitated facility location.
Includes the search engine, moves, score calculation and acceptance policies.
"""

from cflp.local_search.solver import LocalSearch, SolveResult, SolverState, run_local_search, run_multi_start, solve
from cflp.local_search.move import Move, ReassignMove, SwapMove, CompositeMove, do_move, undo_move
from cflp.local_search.move_generator import generate_random_move, generate_reassign_move, generate_swap_move
from cflp.local_search.rules_engine import calculate_full_score, calculate_delta_score, explain_score

__all__ = [
    'LocalSearch',
    'SolveResult',
    'SolverState',
    'run_local_search',
    'run_multi_start',
    'solve',
    'Move',
    'ReassignMove',
    'SwapMove',
    'CompositeMove',
    'do_move',
    'undo_move',
    'generate_random_move',
    'generate_reassign_move',
    'generate_swap_move',
    'calculate_full_score',
    'calculate_delta_score',
    'explain_score',
]
