import random
from typing import Any, Dict, Tuple

from cflp.base_model.consumer import Consumer
from cflp.base_model.facility import Facility
from cflp.base_model.location import Location

# Bounding box of the demo area (latitude, longitude)
SOUTH_WEST_CORNER: Tuple[float, float] = (51.44, -0.16)
NORTH_EAST_CORNER: Tuple[float, float] = (51.56, 0.0)


def generate_test_data(n_facilities: int, n_consumers: int,
                       capacity_ratio: float = 1.5,
                       average_setup_cost: int = 50_000,
                       setup_cost_std: int = 10_000,
                       max_demand: int = 20,
                       south_west_corner: Tuple[float, float] = SOUTH_WEST_CORNER,
                       north_east_corner: Tuple[float, float] = NORTH_EAST_CORNER,
                       seed: int = 13062025) -> Dict[str, Any]:
    """Generate raw test data for facility location.

    Total capacity is capacity_ratio times the total demand, split evenly over the facilities
    (the remainder goes to the first ones), so a ratio >= 1 always allows a feasible solution
    when demands are small compared to a single facility.
    """
    if n_facilities < 0 or n_consumers < 0:
        raise ValueError("n_facilities and n_consumers must be non-negative")
    if capacity_ratio <= 0:
        raise ValueError("capacity_ratio must be positive")
    if max_demand < 1:
        raise ValueError("max_demand must be at least 1")

    # Initialize random generator with a fixed seed for reproducibility
    gen = random.Random(seed)

    def random_location() -> Tuple[float, float]:
        latitude = gen.uniform(south_west_corner[0], north_east_corner[0])
        longitude = gen.uniform(south_west_corner[1], north_east_corner[1])
        return round(latitude, 6), round(longitude, 6)

    consumers = []
    for consumer_id in range(1, n_consumers + 1):
        consumers.append({
            "id": consumer_id,
            "location": random_location(),
            "demand": gen.randint(1, max_demand),
        })

    total_demand = sum(c["demand"] for c in consumers)
    total_capacity = int(total_demand * capacity_ratio + 0.5)

    facilities = []
    for i in range(n_facilities):
        capacity = total_capacity // n_facilities + (1 if i < total_capacity % n_facilities else 0)
        setup_cost = max(0, int(gen.gauss(average_setup_cost, setup_cost_std)))
        facilities.append({
            "id": i + 1,
            "location": random_location(),
            "capacity": capacity,
            "setup_cost": setup_cost,
        })

    return {
        "south_west_corner": south_west_corner,
        "north_east_corner": north_east_corner,
        "total_demand": total_demand,
        "total_capacity": total_capacity,
        "facilities": facilities,
        "consumers": consumers,
    }


def generate_test_data_parsed(n_facilities: int, n_consumers: int, **kwargs) -> Dict[str, Any]:
    """Generate and parse test data into model objects."""
    test_data = generate_test_data(n_facilities, n_consumers, **kwargs)

    parsed_data = {
        "total_demand": test_data["total_demand"],
        "total_capacity": test_data["total_capacity"],
        "facilities": [],
        "consumers": [],
    }

    for f in test_data["facilities"]:
        parsed_data["facilities"].append(Facility(
            facility_id=f["id"],
            location=Location(*f["location"]),
            capacity=f["capacity"],
            setup_cost=f["setup_cost"],
        ))

    for c in test_data["consumers"]:
        parsed_data["consumers"].append(Consumer(
            consumer_id=c["id"],
            location=Location(*c["location"]),
            demand=c["demand"],
        ))

    return parsed_data
