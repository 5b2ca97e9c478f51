from typing import Optional

from cflp.base_model.solution import Solution


class Move:
    """Base class for a reversible change of the assignment. Value object: ids only, no references."""

    move_type = "move"

    def __init__(self):
        self.is_applied = False

    def consumer_changes(self) -> list[tuple[int, Optional[int], Optional[int]]]:
        """(consumer_id, old_facility_id, new_facility_id) for every consumer the move touches, in apply order."""
        raise NotImplementedError

    def planned_attributes(self) -> set:
        """Tabu attributes the move would create: (consumer_id, facility it moves to)."""
        return {(cid, new_fid) for cid, _, new_fid in self.consumer_changes()}

    def reverse_attributes(self) -> set:
        """Tabu attributes that would undo the move: (consumer_id, facility it leaves)."""
        return {(cid, old_fid) for cid, old_fid, _ in self.consumer_changes()}


class ReassignMove(Move):
    move_type = "reassign"

    def __init__(self, consumer_id: int, old_facility_id: Optional[int], new_facility_id: Optional[int]):
        super().__init__()
        self.consumer_id = consumer_id
        self.old_facility_id = old_facility_id
        self.new_facility_id = new_facility_id

    def consumer_changes(self):
        return [(self.consumer_id, self.old_facility_id, self.new_facility_id)]

    def __str__(self):
        return f"ReassignMove(consumer {self.consumer_id}: {self.old_facility_id} → {self.new_facility_id})"

    def __repr__(self):
        return str(self)


class SwapMove(Move):
    """Exchange the facilities of two consumers that are assigned to different facilities."""

    move_type = "swap"

    def __init__(self, left_consumer_id: int, right_consumer_id: int,
                 left_facility_id: Optional[int], right_facility_id: Optional[int]):
        super().__init__()
        self.left_consumer_id = left_consumer_id
        self.right_consumer_id = right_consumer_id
        self.left_facility_id = left_facility_id
        self.right_facility_id = right_facility_id

    def consumer_changes(self):
        return [(self.left_consumer_id, self.left_facility_id, self.right_facility_id),
                (self.right_consumer_id, self.right_facility_id, self.left_facility_id)]

    def __str__(self):
        return (f"SwapMove(consumer {self.left_consumer_id} @ {self.left_facility_id} ⇄ "
                f"consumer {self.right_consumer_id} @ {self.right_facility_id})")

    def __repr__(self):
        return str(self)


class CompositeMove(Move):
    """A sequence of moves applied in order and undone in reverse order."""

    move_type = "composite"

    def __init__(self, moves: list[Move]):
        super().__init__()
        self.moves = moves

    def consumer_changes(self):
        changes = []
        for move in self.moves:
            changes.extend(move.consumer_changes())
        return changes

    def __str__(self):
        return f"CompositeMove({len(self.moves)} moves)"


def do_move(move: Move, solution: Solution) -> None:
    """Apply the move to the solution. Doing an already applied move does nothing."""
    if move.is_applied:
        return

    if isinstance(move, CompositeMove):
        for sub_move in move.moves:
            do_move(sub_move, solution)
        move.is_applied = True
        return

    # check every consumer first so a stale move never leaves the solution half changed
    for consumer_id, old_facility_id, _ in move.consumer_changes():
        current = solution.facility_of(consumer_id)
        if current != old_facility_id:
            raise ValueError(f"{move} is stale: consumer {consumer_id} is assigned to {current}, not {old_facility_id}")
    for _, _, new_facility_id in move.consumer_changes():
        if new_facility_id is not None:
            solution.facility_position(new_facility_id)

    for consumer_id, _, new_facility_id in move.consumer_changes():
        solution.assign(consumer_id, new_facility_id)
    move.is_applied = True


def undo_move(move: Move, solution: Solution) -> None:
    """Restore the solution to the state before do_move. Undoing an unapplied move does nothing."""
    if not move.is_applied:
        return

    if isinstance(move, CompositeMove):
        for sub_move in reversed(move.moves):
            undo_move(sub_move, solution)
        move.is_applied = False
        return

    for consumer_id, old_facility_id, _ in reversed(move.consumer_changes()):
        solution.assign(consumer_id, old_facility_id)
    move.is_applied = False
