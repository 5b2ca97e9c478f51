from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Score:
    """
    Two level score. Compared lexicographically: the hard level first, then the soft level.
    Higher is better, a hard score of 0 means no capacity is exceeded.
    """
    hard: int = 0
    soft: int = 0

    def __add__(self, other: "Score") -> "Score":
        return Score(self.hard + other.hard, self.soft + other.soft)

    def __sub__(self, other: "Score") -> "Score":
        return Score(self.hard - other.hard, self.soft - other.soft)

    def __neg__(self) -> "Score":
        return Score(-self.hard, -self.soft)

    def is_feasible(self) -> bool:
        return self.hard >= 0

    def to_json(self) -> dict:
        return {"hard": self.hard, "soft": self.soft}

    def __str__(self):
        return f"{self.hard}hard/{self.soft}soft"


ZERO = Score(0, 0)
