import math
from dataclasses import dataclass

from cflp.base_model.exceptions import InvalidInput

METERS_PER_DEGREE = 111_000


@dataclass(frozen=True)
class Location:
    """A coordinate pair. Latitude/longitude in degrees, or planar x/y."""
    latitude: float
    longitude: float

    def __post_init__(self):
        for name in ("latitude", "longitude"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidInput(f"Location {name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidInput(f"Location {name} must be finite, got {value!r}")

    def distance_to(self, other: "Location") -> int:
        """Distance in meters, rounded up. Uses a flat approximation of the earth surface."""
        latitude_diff = other.latitude - self.latitude
        longitude_diff = other.longitude - self.longitude
        return math.ceil(math.sqrt(latitude_diff * latitude_diff + longitude_diff * longitude_diff) * METERS_PER_DEGREE)

    def __str__(self):
        return f"[{self.latitude}, {self.longitude}]"


def meters_distance(a: Location, b: Location) -> int:
    return a.distance_to(b)


def euclidean_distance(a: Location, b: Location) -> int:
    """Plain euclidean distance rounded up, for instances given in planar units."""
    return math.ceil(math.hypot(b.latitude - a.latitude, b.longitude - a.longitude))
