from dataclasses import dataclass

from cflp.base_model.location import Location


@dataclass
class Facility:
    """Class representing a facility that consumers can be assigned to"""
    facility_id: int
    location: Location
    capacity: int
    setup_cost: int

    def __str__(self):
        return f"Facility {self.facility_id} ({self.capacity} cap, {self.setup_cost} setup)"

    def __eq__(self, other):
        if not isinstance(other, Facility):
            return False

        return (self.facility_id == other.facility_id and
                self.location == other.location and
                self.capacity == other.capacity and
                self.setup_cost == other.setup_cost)

    def __hash__(self):
        return hash(self.facility_id)
