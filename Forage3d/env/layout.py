"""
Flower layouts: the explicit list of flowers a scene is built from.

A layout is a list of `FlowerSpec`s. Flowers grow on plants; the plant base is
the pivot every flower on it rotates about when the area is reset.
"""
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from Forage3d.constants import (
    AREA_CENTER,
    FLOWERS_PER_PLANT,
    NUM_FLOWER_PLANTS,
    PLANT_RING_RADIUS_MAX,
    PLANT_RING_RADIUS_MIN,
    WORLD_FORWARD,
    WORLD_UP,
)
from Forage3d.env.helper import normalize_vector, rotate_about_y


@dataclass
class FlowerSpec:
    position: np.ndarray
    up: np.ndarray
    pivot: np.ndarray


def plant_flowers(pivot: np.ndarray, facing: float, flowers_per_plant: int = FLOWERS_PER_PLANT,
                  first_height: float = 0.8, height_step: float = 0.5, stem_offset: float = 0.15) -> List[FlowerSpec]:
    """
    Flowers of a single plant, stacked up its stem and spread around it.

    Each flower points away from the stem and slightly upward.
    """
    specs = []
    for k in range(flowers_per_plant):
        direction = rotate_about_y(WORLD_FORWARD, facing + k * 360.0 / flowers_per_plant)
        position = pivot + WORLD_UP * (first_height + k * height_step) + direction * stem_offset
        up = normalize_vector(direction + 0.3 * WORLD_UP)
        specs.append(FlowerSpec(position=position, up=up, pivot=pivot.copy()))
    return specs


def default_layout(seed: Optional[int] = 0,
                   num_plants: int = NUM_FLOWER_PLANTS,
                   flowers_per_plant: int = FLOWERS_PER_PLANT,
                   center: np.ndarray = AREA_CENTER) -> List[FlowerSpec]:
    """
    Plants spread evenly around a ring about the area centre, with some jitter.

    The layout is fixed for a given seed; episodes only re-tilt the plants.
    """
    rng = np.random.default_rng(seed)
    center = np.asarray(center, dtype=float)
    specs = []
    angle_step = 360.0 / num_plants if num_plants > 0 else 0.0
    for i in range(num_plants):
        angle = -180.0 + i * angle_step + rng.uniform(-0.25, 0.25) * angle_step
        radius = rng.uniform(PLANT_RING_RADIUS_MIN, PLANT_RING_RADIUS_MAX)
        pivot = center + rotate_about_y(WORLD_FORWARD * radius, angle)
        facing = rng.uniform(-180.0, 180.0)
        specs.extend(plant_flowers(pivot, facing, flowers_per_plant))
    return specs
