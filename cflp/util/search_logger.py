import json
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from cflp.base_model.score import Score
from cflp.base_model.solution import Solution


@dataclass
class SearchState:
    """Represents a state in the search process"""
    step: int
    score: Score
    temperature: Optional[float]
    features: np.ndarray  # load / capacity per facility
    move_type: str
    is_accepted: bool
    is_best: bool
    event_type: Optional[str] = None  # 'reheat', 'ruin_recreate', etc.


def extract_solution_features(solution: Solution) -> np.ndarray:
    """Load ratio of every facility. A facility without capacity reports its raw load."""
    loads = np.asarray(solution.loads, dtype=float)
    capacities = np.asarray(solution.capacities, dtype=float)
    return np.divide(loads, capacities, out=loads.copy(), where=capacities > 0)


class SearchLogger:
    """Logger for capturing search states during the local search"""

    def __init__(self, log_every_n_steps: int = 10):
        self.states: List[SearchState] = []
        self.log_every_n_steps = log_every_n_steps
        self.step_count = 0
        self.best_score: Optional[Score] = None

    def log_state(self,
                  solution: Solution,
                  score: Score,
                  temperature: Optional[float],
                  move_type: str,
                  is_accepted: bool,
                  event_type: Optional[str] = None):
        """Log a search state"""

        self.step_count += 1

        is_best = self.best_score is None or score > self.best_score

        # Only log every n steps to avoid too much data
        if self.step_count % self.log_every_n_steps != 0:
            # But always log special events and best solutions
            if event_type is None and not is_best:
                return

        if is_best:
            self.best_score = score

        state = SearchState(
            step=self.step_count,
            score=score,
            temperature=temperature,
            features=extract_solution_features(solution),
            move_type=move_type,
            is_accepted=is_accepted,
            is_best=is_best,
            event_type=event_type
        )

        self.states.append(state)

    def save_log(self, filepath: str):
        """Save the log data to a JSON file"""
        data = []
        for state in self.states:
            data.append({
                'step': state.step,
                'score': state.score.to_json(),
                'temperature': state.temperature,
                'features': state.features.tolist(),
                'move_type': state.move_type,
                'is_accepted': state.is_accepted,
                'is_best': state.is_best,
                'event_type': state.event_type
            })

        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)

    @staticmethod
    def load_log(filepath: str) -> 'SearchLogger':
        """Load log data from a JSON file"""
        logger = SearchLogger()

        with open(filepath, 'r') as f:
            data = json.load(f)

        for item in data:
            state = SearchState(
                step=item['step'],
                score=Score(item['score']['hard'], item['score']['soft']),
                temperature=item['temperature'],
                features=np.array(item['features']),
                move_type=item['move_type'],
                is_accepted=item['is_accepted'],
                is_best=item['is_best'],
                event_type=item.get('event_type')
            )
            logger.states.append(state)
            if state.is_best and (logger.best_score is None or state.score > logger.best_score):
                logger.best_score = state.score
        logger.step_count = data[-1]['step'] if data else 0

        return logger
