import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Hashable, List, Optional

import numpy as np

from Forage3d.constants import (
    SPAWN_FRONT_DISTANCE,
    SPAWN_HEIGHT_RANGE,
    SPAWN_MAX_ATTEMPTS,
    SPAWN_PITCH_RANGE,
    SPAWN_PROBE_RADIUS,
    SPAWN_RADIUS_RANGE,
    SPAWN_YAW_RANGE,
    WORLD_FORWARD,
    WORLD_UP,
)
from Forage3d.env.errors import PlacementExhaustedError
from Forage3d.env.helper import look_rotation, rotate_about_y
from Forage3d.env.resources import ResourceArea

logger = logging.getLogger(__name__)

OverlapQuery = Callable[[np.ndarray, float], List[Hashable]]


@dataclass
class Pose:
    """A spawn pose: world position plus pitch/yaw in degrees (roll is always 0)."""
    position: np.ndarray
    pitch: float
    yaw: float


class PlacementState(Enum):
    SAMPLING = "sampling"
    FOUND = "found"
    EXHAUSTED = "exhausted"


class SpawnPlacer:
    """
    Finds a collision-free spawn pose for the agent by rejection sampling.

    Candidates come from one of two distributions: just in front of a random
    flower with the beak pointed at it, or anywhere in a ring around the area
    centre with a random heading. Each candidate is probed with a small sphere
    through `overlap_sphere`; the first one that touches nothing is accepted.

    Attributes:
        state (PlacementState): Outcome of the last `place` call.
        attempts (int): Number of candidates probed by the last `place` call.
    """

    def __init__(self,
                 area: ResourceArea,
                 overlap_sphere: OverlapQuery,
                 rng: np.random.Generator,
                 max_attempts: int = SPAWN_MAX_ATTEMPTS,
                 probe_radius: float = SPAWN_PROBE_RADIUS):
        self.area = area
        self.overlap_sphere = overlap_sphere
        self.rng = rng
        self.max_attempts = max_attempts
        self.probe_radius = probe_radius
        self.state = PlacementState.SAMPLING
        self.attempts = 0

    def _candidate_in_front_of_resource(self) -> Pose:
        resources = self.area.resources
        resource = resources[int(self.rng.integers(0, len(resources)))]

        # 10-20 cm in front of the flower, beak pointed at the nectar
        distance_from_flower = self.rng.uniform(*SPAWN_FRONT_DISTANCE)
        position = resource.position + resource.up * distance_from_flower
        pitch, yaw = look_rotation(resource.position - position)
        return Pose(position=position, pitch=pitch, yaw=yaw)

    def _candidate_in_area(self) -> Pose:
        height = self.rng.uniform(*SPAWN_HEIGHT_RANGE)
        radius = self.rng.uniform(*SPAWN_RADIUS_RANGE)
        direction = self.rng.uniform(-180.0, 180.0)

        position = self.area.center + WORLD_UP * height + rotate_about_y(WORLD_FORWARD * radius, direction)
        pitch = self.rng.uniform(*SPAWN_PITCH_RANGE)
        yaw = self.rng.uniform(*SPAWN_YAW_RANGE)
        return Pose(position=position, pitch=pitch, yaw=yaw)

    def place(self, in_front_of_resource: bool) -> Pose:
        """
        Samples candidate poses until one is free of collisions.

        Args:
            in_front_of_resource (bool): Spawn facing a random flower instead of
                                         anywhere in the area.

        Returns:
            Pose: The accepted pose.

        Raises:
            PlacementExhaustedError: If no free pose was found within `max_attempts`,
                                     or a flower spawn was requested with no flowers.
        """
        self.state = PlacementState.SAMPLING
        self.attempts = 0
        if in_front_of_resource and len(self.area) == 0:
            self.state = PlacementState.EXHAUSTED
            raise PlacementExhaustedError("Cannot spawn in front of a flower: the area has no flowers", attempts=0)

        candidate: Optional[Pose] = None
        while self.attempts < self.max_attempts:
            self.attempts += 1
            if in_front_of_resource:
                candidate = self._candidate_in_front_of_resource()
            else:
                candidate = self._candidate_in_area()

            if len(self.overlap_sphere(candidate.position, self.probe_radius)) == 0:
                self.state = PlacementState.FOUND
                logger.debug("Spawn pose found after %d attempt(s): %s", self.attempts, np.round(candidate.position, 3))
                return candidate

        self.state = PlacementState.EXHAUSTED
        logger.error("Could not find a safe spawn position after %d attempts", self.attempts)
        raise PlacementExhaustedError(
            f"Could not find a safe position to spawn after {self.attempts} attempts", attempts=self.attempts)
