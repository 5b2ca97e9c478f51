from dataclasses import dataclass
from numbers import Integral
from typing import Callable, Dict, Iterable, Optional

import numpy as np

from cflp.base_model.consumer import Consumer
from cflp.base_model.exceptions import InvalidInput, InvalidReference
from cflp.base_model.facility import Facility
from cflp.base_model.location import Location, METERS_PER_DEGREE
from cflp.base_model.score import Score
from cflp.config import ConstraintWeights

UNASSIGNED = -1

DistanceFunction = Callable[[Location, Location], int]


@dataclass(frozen=True)
class AppliedChange:
    """What a single assign() changed. Enough to put the consumer back with revert()."""
    consumer_id: int
    old_facility_id: Optional[int]
    new_facility_id: Optional[int]
    demand: int


class Solution:
    """Class that holds the problem instance and the current assignment of consumers to facilities."""

    def __init__(self, facilities: list[Facility], consumers: list[Consumer],
                 weights: ConstraintWeights = None, distance_function: DistanceFunction = None):
        self.all_facilities: list[Facility] = list(facilities)
        self.all_consumers: list[Consumer] = list(consumers)
        self.weights: ConstraintWeights = weights if weights is not None else ConstraintWeights()
        self.distance_function: Optional[DistanceFunction] = distance_function

        self.facility_index: dict[int, int] = {f.facility_id: i for i, f in enumerate(self.all_facilities)}
        self.consumer_index: dict[int, int] = {c.consumer_id: i for i, c in enumerate(self.all_consumers)}

        # consumers x facilities, in meters (or whatever unit the distance function returns)
        self.distance_matrix: np.ndarray = self._build_distance_matrix()
        # plain python ints for the hot path, numpy scalars are slow to index one at a time
        self.distances: list[list[int]] = self.distance_matrix.tolist()

        self.loads: list[int] = [0] * len(self.all_facilities)
        self.consumer_counts: list[int] = [0] * len(self.all_facilities)  # facility is used when > 0
        self.assigned_index: list[int] = [UNASSIGNED] * len(self.all_consumers)
        self.demands: list[int] = [c.demand for c in self.all_consumers]
        self.capacities: list[int] = [f.capacity for f in self.all_facilities]
        self.setup_costs: list[int] = [f.setup_cost for f in self.all_facilities]

        self.unassigned_penalty: int = self._resolve_unassigned_penalty()
        self.score: Optional[Score] = None  # tracked by the local search, not by assign()
        self._nearby_cache: dict[int, list[list[int]]] = {}

        for consumer in self.all_consumers:
            consumer.facility = None

    def _build_distance_matrix(self) -> np.ndarray:
        n_consumers = len(self.all_consumers)
        n_facilities = len(self.all_facilities)
        if n_consumers == 0 or n_facilities == 0:
            return np.zeros((n_consumers, n_facilities), dtype=np.int64)

        if self.distance_function is None:
            consumer_coords = np.array([(c.location.latitude, c.location.longitude) for c in self.all_consumers], dtype=float)
            facility_coords = np.array([(f.location.latitude, f.location.longitude) for f in self.all_facilities], dtype=float)
            diff = consumer_coords[:, None, :] - facility_coords[None, :, :]
            meters = np.ceil(np.sqrt((diff * diff).sum(axis=2)) * METERS_PER_DEGREE)
            return meters.astype(np.int64)

        matrix = np.zeros((n_consumers, n_facilities), dtype=np.int64)
        for ci, consumer in enumerate(self.all_consumers):
            for fi, facility in enumerate(self.all_facilities):
                distance = self.distance_function(consumer.location, facility.location)
                if isinstance(distance, bool) or not isinstance(distance, Integral) or distance < 0:
                    raise InvalidInput(f"Distance function must return a non-negative integer, got {distance!r} "
                                       f"for consumer {consumer.consumer_id} and facility {facility.facility_id}")
                matrix[ci, fi] = distance
        return matrix

    def _resolve_unassigned_penalty(self) -> int:
        if self.weights.unassigned_penalty is not None:
            return self.weights.unassigned_penalty
        max_distance = int(self.distance_matrix.max()) if self.distance_matrix.size else 0
        max_setup_cost = max(self.setup_costs, default=0)
        return self.weights.distance_weight * max_distance + self.weights.setup_weight * max_setup_cost + 1

    # ------------------------------------------------------------------
    # lookups

    def facility_position(self, facility_id: int) -> int:
        try:
            return self.facility_index[facility_id]
        except KeyError:
            raise InvalidReference("facility", facility_id) from None

    def consumer_position(self, consumer_id: int) -> int:
        try:
            return self.consumer_index[consumer_id]
        except KeyError:
            raise InvalidReference("consumer", consumer_id) from None

    def get_facility(self, facility_id: int) -> Facility:
        return self.all_facilities[self.facility_position(facility_id)]

    def get_consumer(self, consumer_id: int) -> Consumer:
        return self.all_consumers[self.consumer_position(consumer_id)]

    def get_all_facilities(self) -> list[Facility]:
        return self.all_facilities

    def get_all_consumers(self) -> list[Consumer]:
        return self.all_consumers

    def get_unassigned_consumers(self) -> list[Consumer]:
        return [c for i, c in enumerate(self.all_consumers) if self.assigned_index[i] == UNASSIGNED]

    def get_assigned_consumers(self) -> list[Consumer]:
        return [c for i, c in enumerate(self.all_consumers) if self.assigned_index[i] != UNASSIGNED]

    def load_of(self, facility_id: int) -> int:
        return self.loads[self.facility_position(facility_id)]

    def is_used(self, facility_id: int) -> bool:
        return self.consumer_counts[self.facility_position(facility_id)] > 0

    def demand_of(self, consumer_id: int) -> int:
        return self.demands[self.consumer_position(consumer_id)]

    def facility_of(self, consumer_id: int) -> Optional[int]:
        """Id of the facility the consumer is assigned to, None when unassigned."""
        fi = self.assigned_index[self.consumer_position(consumer_id)]
        return None if fi == UNASSIGNED else self.all_facilities[fi].facility_id

    def distance(self, consumer_id: int, facility_id: int) -> int:
        return self.distances[self.consumer_position(consumer_id)][self.facility_position(facility_id)]

    def get_nearby_facility_ids(self, consumer_id: int, count: int) -> list[int]:
        """The ids of the count facilities closest to the consumer, closest first."""
        ci = self.consumer_position(consumer_id)
        if count not in self._nearby_cache:
            count_clipped = min(count, len(self.all_facilities))
            order = np.argsort(self.distance_matrix, axis=1, kind="stable")[:, :count_clipped]
            self._nearby_cache[count] = [[self.all_facilities[fi].facility_id for fi in row] for row in order.tolist()]
        return self._nearby_cache[count][ci]

    # ------------------------------------------------------------------
    # mutation

    def assign(self, consumer_id: int, facility_id: Optional[int]) -> AppliedChange:
        """
        Point the consumer at a facility (or None to unassign it) and update the loads of both
        the old and the new facility.
        """
        ci = self.consumer_position(consumer_id)
        new_fi = UNASSIGNED if facility_id is None else self.facility_position(facility_id)
        old_fi = self.assigned_index[ci]
        old_facility_id = None if old_fi == UNASSIGNED else self.all_facilities[old_fi].facility_id
        self.assign_position(ci, new_fi)
        return AppliedChange(consumer_id, old_facility_id, facility_id, self.demands[ci])

    def revert(self, change: AppliedChange) -> None:
        current = self.facility_of(change.consumer_id)
        if current != change.new_facility_id:
            raise ValueError(f"Cannot revert {change}: consumer is now assigned to {current}")
        self.assign(change.consumer_id, change.old_facility_id)

    def assign_position(self, ci: int, new_fi: int) -> None:
        old_fi = self.assigned_index[ci]
        if old_fi == new_fi:
            return
        demand = self.demands[ci]
        if old_fi != UNASSIGNED:
            self.loads[old_fi] -= demand
            self.consumer_counts[old_fi] -= 1
        if new_fi != UNASSIGNED:
            self.loads[new_fi] += demand
            self.consumer_counts[new_fi] += 1
        self.assigned_index[ci] = new_fi
        self.all_consumers[ci].facility = None if new_fi == UNASSIGNED else self.all_facilities[new_fi]

    def unassign_all(self) -> None:
        for ci in range(len(self.all_consumers)):
            self.assign_position(ci, UNASSIGNED)

    def load_assignment(self, assignment: Dict[int, Optional[int]]) -> None:
        """Bulk assign from a consumer id -> facility id mapping. Consumers not in the mapping are unassigned."""
        positions = [(self.consumer_position(cid), UNASSIGNED if fid is None else self.facility_position(fid))
                     for cid, fid in assignment.items()]
        self.unassign_all()
        for ci, fi in positions:
            self.assign_position(ci, fi)

    def to_assignment(self) -> dict[int, Optional[int]]:
        return {c.consumer_id: (None if fi == UNASSIGNED else self.all_facilities[fi].facility_id)
                for c, fi in zip(self.all_consumers, self.assigned_index)}

    # ------------------------------------------------------------------
    # aggregates

    def total_capacity(self) -> int:
        return sum(self.capacities)

    def total_demand(self) -> int:
        return sum(self.demands)

    def total_setup_cost(self) -> int:
        """Setup cost of the facilities that have at least one consumer."""
        return sum(cost for cost, count in zip(self.setup_costs, self.consumer_counts) if count > 0)

    def total_distance(self) -> int:
        """Summed distance between every assigned consumer and its facility."""
        return sum(self.distances[ci][fi] for ci, fi in enumerate(self.assigned_index) if fi != UNASSIGNED)

    def used_capacity_percentage(self, facility_id: int) -> float:
        fi = self.facility_position(facility_id)
        capacity = self.capacities[fi]
        if capacity == 0:
            return 0.0 if self.loads[fi] == 0 else float("inf")
        return 100.0 * self.loads[fi] / capacity

    def to_json(self) -> Dict:
        """
        Convert the solution to a JSON-serializable dictionary.
        """
        result = {
            "score": self.score.to_json() if self.score is not None else None,
            "total_distance": self.total_distance(),
            "total_setup_cost": self.total_setup_cost(),
            "facilities": [],
            "consumers": []
        }
        for fi, facility in enumerate(self.all_facilities):
            result["facilities"].append({
                "id": facility.facility_id,
                "location": [facility.location.latitude, facility.location.longitude],
                "capacity": facility.capacity,
                "setup_cost": facility.setup_cost,
                "load": self.loads[fi],
                "used": self.consumer_counts[fi] > 0,
            })
        for consumer, fi in zip(self.all_consumers, self.assigned_index):
            result["consumers"].append({
                "id": consumer.consumer_id,
                "location": [consumer.location.latitude, consumer.location.longitude],
                "demand": consumer.demand,
                "facility": None if fi == UNASSIGNED else self.all_facilities[fi].facility_id,
            })
        return result

    def __eq__(self, other):
        """Two solutions are equal when they describe the same instance with the same assignment and counters."""
        if not isinstance(other, Solution):
            return False
        return (self.all_facilities == other.all_facilities and
                self.all_consumers == other.all_consumers and
                self.assigned_index == other.assigned_index and
                self.loads == other.loads and
                self.consumer_counts == other.consumer_counts)

    def __str__(self):
        n_assigned = sum(1 for fi in self.assigned_index if fi != UNASSIGNED)
        return (f"Solution({len(self.all_facilities)} facilities, {n_assigned}/{len(self.all_consumers)} consumers assigned, "
                f"score={self.score})")


def _check_non_negative_int(value, what: str) -> None:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidInput(f"{what} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidInput(f"{what} must be non-negative, got {value}")


def _check_ids(ids: Iterable, kind: str) -> None:
    seen = set()
    for ref_id in ids:
        if isinstance(ref_id, bool) or not isinstance(ref_id, Integral):
            raise InvalidInput(f"{kind} id must be an integer, got {ref_id!r}")
        if ref_id in seen:
            raise InvalidInput(f"Duplicate {kind} id: {ref_id}")
        seen.add(ref_id)


def build_problem(facilities: list[Facility], consumers: list[Consumer],
                  weights: ConstraintWeights = None, distance_function: DistanceFunction = None) -> Solution:
    """
    Validate the instance and build a solution where every consumer is unassigned.

    Raises:
        InvalidInput: on duplicate ids, negative or non-integer capacity/demand/setup cost,
            or locations that are not Location objects.
    """
    for facility in facilities:
        if not isinstance(facility, Facility):
            raise InvalidInput(f"Expected a Facility, got {type(facility).__name__}")
    for consumer in consumers:
        if not isinstance(consumer, Consumer):
            raise InvalidInput(f"Expected a Consumer, got {type(consumer).__name__}")

    _check_ids((f.facility_id for f in facilities), "facility")
    _check_ids((c.consumer_id for c in consumers), "consumer")

    for facility in facilities:
        if not isinstance(facility.location, Location):
            raise InvalidInput(f"Facility {facility.facility_id} has an invalid location: {facility.location!r}")
        _check_non_negative_int(facility.capacity, f"Capacity of facility {facility.facility_id}")
        _check_non_negative_int(facility.setup_cost, f"Setup cost of facility {facility.facility_id}")
    for consumer in consumers:
        if not isinstance(consumer.location, Location):
            raise InvalidInput(f"Consumer {consumer.consumer_id} has an invalid location: {consumer.location!r}")
        _check_non_negative_int(consumer.demand, f"Demand of consumer {consumer.consumer_id}")

    return Solution(facilities, consumers, weights, distance_function)
