from dataclasses import dataclass
from typing import Optional

from cflp.base_model.facility import Facility
from cflp.base_model.location import Location


@dataclass
class Consumer:
    """
    Class representing a consumer with a demand that any facility with enough
    capacity can satisfy. The facility field is the only thing the search changes.
    """
    consumer_id: int
    location: Location
    demand: int
    facility: Optional[Facility] = None

    def is_assigned(self) -> bool:
        return self.facility is not None

    def distance_from_facility(self) -> int:
        """Distance to the assigned facility in meters."""
        if self.facility is None:
            raise ValueError(f"No facility is assigned to consumer {self.consumer_id}.")
        return self.facility.location.distance_to(self.location)

    def __str__(self):
        return f"Consumer {self.consumer_id} ({self.demand} dem)"

    def __eq__(self, other):
        if not isinstance(other, Consumer):
            return False

        # compare the facility by id only, facilities are shared between copies
        self_facility_id = self.facility.facility_id if self.facility else None
        other_facility_id = other.facility.facility_id if other.facility else None

        return (self.consumer_id == other.consumer_id and
                self.location == other.location and
                self.demand == other.demand and
                self_facility_id == other_facility_id)

    def __hash__(self):
        return hash(self.consumer_id)
