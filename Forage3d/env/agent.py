"""
The foraging agent: a hummingbird that flies around the area and drinks nectar.

The agent turns numeric actions into a force and a new orientation for the
physics collaborator, encodes what it knows about its nearest flower into a
fixed 10-float observation, and reports reward deltas for feeding and for
bumping into the area boundary.
"""
import logging
from typing import Hashable, Optional, Sequence

import numpy as np

from Forage3d.constants import (
    ACTION_DIM,
    AREA_DIAMETER,
    BEAK_TIP_OFFSET,
    BEAK_TIP_RADIUS,
    FEED_AMOUNT,
    FIXED_DELTA_TIME,
    MAX_PITCH_ANGLE,
    MOVE_FORCE,
    OBS_DIM,
    PITCH_SPEED,
    TURN_SMOOTHING_RATE,
    WORLD_FORWARD,
    YAW_SPEED,
)
from Forage3d.env.errors import ActionContractError, PreconditionError
from Forage3d.env.helper import (
    distance,
    euler_rotation,
    forward_from_euler,
    move_towards,
    normalize_vector,
    normalized_distance,
    wrap_angle,
)
from Forage3d.env.physics import PhysicsBackend
from Forage3d.env.resources import NectarResource, ResourceArea
from Forage3d.env.rewards import RewardManager
from Forage3d.env.spawn import Pose, SpawnPlacer

logger = logging.getLogger(__name__)


class ForagingAgent:
    """
    A single hummingbird agent.

    The agent never holds a flower directly: it tracks its nearest flower by
    `resource_id` and re-checks `has_nectar` every time it resolves it, since a
    flower can run dry without this agent feeding from it.

    Attributes:
        position (np.ndarray): Body position, as last read from physics.
        velocity (np.ndarray): Body velocity, as last read from physics.
        pitch (float): Pitch in degrees, in [-max_pitch_angle, max_pitch_angle] after any action.
        yaw (float): Yaw in degrees, in (-180, 180].
        nectar_obtained (float): Nectar drunk this episode.
        frozen (bool): Whether actions are currently ignored (manual play only).
        training_mode (bool): Enables rewards and random spawn distributions, disables freezing.
    """
    def __init__(self,
                 area: ResourceArea,
                 physics: PhysicsBackend,
                 spawn_placer: SpawnPlacer,
                 reward_manager: Optional[RewardManager] = None,
                 rng: Optional[np.random.Generator] = None,
                 training_mode: bool = True,
                 move_force: float = MOVE_FORCE,
                 pitch_speed: float = PITCH_SPEED,
                 yaw_speed: float = YAW_SPEED,
                 max_pitch_angle: float = MAX_PITCH_ANGLE,
                 turn_smoothing_rate: float = TURN_SMOOTHING_RATE,
                 beak_tip_offset: float = BEAK_TIP_OFFSET,
                 beak_tip_radius: float = BEAK_TIP_RADIUS,
                 feed_amount: float = FEED_AMOUNT,
                 fixed_delta_time: float = FIXED_DELTA_TIME,
                 area_diameter: float = AREA_DIAMETER,
                 reset_turn_smoothing: bool = True):
        self.area = area
        self.physics = physics
        self.spawn_placer = spawn_placer
        self.reward_manager = reward_manager if reward_manager is not None else RewardManager()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.training_mode = training_mode

        self.move_force = move_force
        self.pitch_speed = pitch_speed
        self.yaw_speed = yaw_speed
        self.max_pitch_angle = max_pitch_angle
        self.turn_smoothing_rate = turn_smoothing_rate
        self.beak_tip_offset = beak_tip_offset
        self.beak_tip_radius = beak_tip_radius
        self.feed_amount = feed_amount
        self.fixed_delta_time = fixed_delta_time
        self.area_diameter = area_diameter
        self.reset_turn_smoothing = reset_turn_smoothing

        self.position = np.zeros(3)
        self.velocity = np.zeros(3)
        self.pitch = 0.0
        self.yaw = 0.0
        self.smooth_pitch_change = 0.0
        self.smooth_yaw_change = 0.0
        self.nearest_id: Optional[int] = None
        self.nectar_obtained = 0.0
        self.frozen = False

    # ------------------------------------------------------------------
    # Pose
    # ------------------------------------------------------------------
    @property
    def orientation(self):
        return euler_rotation(self.pitch, self.yaw)

    @property
    def forward(self) -> np.ndarray:
        return forward_from_euler(self.pitch, self.yaw)

    @property
    def sensor_point(self) -> np.ndarray:
        """World position of the beak tip, used for every proximity check."""
        return self.position + self.forward * self.beak_tip_offset

    def sync_from_physics(self) -> None:
        self.position, self.velocity = self.physics.agent_state()

    def teleport(self, pose: Pose) -> None:
        self.position = np.asarray(pose.position, dtype=float).copy()
        self.pitch = float(np.clip(wrap_angle(float(pose.pitch)), -self.max_pitch_angle, self.max_pitch_angle))
        self.yaw = wrap_angle(float(pose.yaw))
        self.physics.set_agent_pose(self.position, self.orientation.as_quat())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        self.sync_from_physics()

    def on_episode_begin(self) -> None:
        """
        Resets per-episode state and moves the agent to a fresh safe spawn pose.

        In training mode the agent spawns in front of a flower half of the time
        and anywhere in the area otherwise; outside training it always starts
        in front of a flower.
        """
        self.nectar_obtained = 0.0
        self.physics.stop_agent()
        self.velocity = np.zeros(3)
        if self.reset_turn_smoothing:
            self.smooth_pitch_change = 0.0
            self.smooth_yaw_change = 0.0

        in_front_of_flower = True
        if self.training_mode:
            in_front_of_flower = bool(self.rng.random() > 0.5)

        pose = self.spawn_placer.place(in_front_of_flower)
        self.teleport(pose)
        self.update_nearest()
        logger.debug("Episode begin: spawned %s flower at %s after %d attempt(s)",
                     "in front of a" if in_front_of_flower else "away from any",
                     np.round(self.position, 3), self.spawn_placer.attempts)

    def fixed_update(self) -> None:
        """Per-step safety net: drops a target that ran dry without this agent's help."""
        if self.nearest_id is not None and not self.area.get(self.nearest_id).has_nectar:
            self.update_nearest()

    # ------------------------------------------------------------------
    # Nearest flower tracking
    # ------------------------------------------------------------------
    @property
    def nearest(self) -> Optional[NectarResource]:
        """The tracked flower, or None if nothing is tracked or it has run dry."""
        if self.nearest_id is None:
            return None
        resource = self.area.get(self.nearest_id)
        return resource if resource.has_nectar else None

    def update_nearest(self) -> Optional[NectarResource]:
        """
        Re-selects the closest flower that still has nectar.

        The current target is kept unless it ran dry or another flower is
        strictly closer to the beak tip. If no flower has nectar the target is
        cleared.
        """
        sensor = self.sensor_point
        nearest = self.nearest
        nearest_distance = distance(nearest.position, sensor) if nearest is not None else np.inf

        for resource in self.area:
            if not resource.has_nectar:
                continue
            d = distance(resource.position, sensor)
            if nearest is None or d < nearest_distance:
                nearest = resource
                nearest_distance = d

        new_id = nearest.resource_id if nearest is not None else None
        if new_id != self.nearest_id:
            if new_id is None:
                logger.warning("No flower with nectar left")
            else:
                logger.debug("Nearest flower is now %d (%.3f away)", new_id, nearest_distance)
        self.nearest_id = new_id
        return nearest

    # ------------------------------------------------------------------
    # Perception
    # ------------------------------------------------------------------
    def observe(self) -> np.ndarray:
        """
        Encodes the agent's view of its nearest flower as 10 floats.

        0-3: orientation quaternion (x, y, z, w)
        4-6: unit vector from the beak tip to the flower
        7:   dot(that vector, -flower up), +1 when the beak tip is right in front of the flower
        8:   dot(beak forward, -flower up), +1 when the beak points straight into the flower
        9:   beak-to-flower distance divided by the area diameter

        With no flower to track the observation is all zeros.
        """
        obs = np.zeros(OBS_DIM, dtype=np.float32)
        nearest = self.nearest
        if nearest is None and self.nearest_id is not None:
            # Target was drained by someone else since the last update
            nearest = self.update_nearest()
        if nearest is None:
            return obs

        orientation = self.orientation
        to_flower = nearest.position - self.sensor_point
        to_flower_dir = normalize_vector(to_flower)
        flower_back = -normalize_vector(nearest.up)

        obs[0:4] = orientation.as_quat()
        obs[4:7] = to_flower_dir
        obs[7] = np.dot(to_flower_dir, flower_back)
        obs[8] = np.dot(normalize_vector(orientation.apply(WORLD_FORWARD)), flower_back)
        obs[9] = normalized_distance(float(np.linalg.norm(to_flower)), self.area_diameter)
        return obs

    # ------------------------------------------------------------------
    # Action
    # ------------------------------------------------------------------
    @staticmethod
    def validate_action(action: Sequence[float]) -> np.ndarray:
        try:
            vector = np.asarray(action, dtype=float)
        except (TypeError, ValueError) as e:
            raise ActionContractError(f"Action is not numeric: {action!r}") from e
        if vector.shape != (ACTION_DIM,):
            raise ActionContractError(f"Expected an action of shape ({ACTION_DIM},), got {vector.shape}")
        if not np.all(np.isfinite(vector)):
            raise ActionContractError(f"Action contains non-finite values: {vector}")
        return vector

    def act(self, action: Sequence[float]) -> None:
        """
        Applies one action.

        action[0:3]: move direction (x right, y up, z forward), each in [-1, 1]
        action[3]:   pitch rate in [-1, 1]
        action[4]:   yaw rate in [-1, 1]

        Turn inputs are eased in: the applied rate moves toward the requested
        one by at most `turn_smoothing_rate * dt` per step.

        Raises:
            ActionContractError: If the action is not 5 finite numbers.
        """
        vector = np.clip(self.validate_action(action), -1.0, 1.0)
        if self.frozen:
            return

        self.physics.apply_agent_force(vector[0:3] * self.move_force)

        max_delta = self.turn_smoothing_rate * self.fixed_delta_time
        self.smooth_pitch_change = move_towards(self.smooth_pitch_change, vector[3], max_delta)
        self.smooth_yaw_change = move_towards(self.smooth_yaw_change, vector[4], max_delta)

        pitch = wrap_angle(self.pitch + self.smooth_pitch_change * self.fixed_delta_time * self.pitch_speed)
        self.pitch = float(np.clip(pitch, -self.max_pitch_angle, self.max_pitch_angle))
        self.yaw = wrap_angle(self.yaw + self.smooth_yaw_change * self.fixed_delta_time * self.yaw_speed)

        self.physics.set_agent_orientation(self.orientation.as_quat())

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------
    def on_nectar_contact(self, contact_id: Hashable, sensor_distance: float) -> float:
        """
        Drinks from the flower behind `contact_id` if the beak tip is the part touching it.

        Returns the amount of nectar taken.

        Raises:
            ResourceNotFoundError: If `contact_id` does not belong to a registered flower.
        """
        if sensor_distance >= self.beak_tip_radius:
            return 0.0

        flower, nectar_received = self.area.feed(contact_id, self.feed_amount)
        self.nectar_obtained += nectar_received

        if self.training_mode:
            self.reward_manager.nectar_reward(self.forward, normalize_vector(flower.up))

        if not flower.has_nectar:
            self.update_nearest()
        return nectar_received

    def on_boundary_contact(self) -> None:
        if self.training_mode:
            self.reward_manager.boundary_penalty()

    # ------------------------------------------------------------------
    # Manual play
    # ------------------------------------------------------------------
    def freeze(self) -> None:
        """Stops the agent from moving and acting. Not available in training mode."""
        if self.training_mode:
            raise PreconditionError("Freeze/Unfreeze not supported in training")
        self.frozen = True
        self.physics.sleep_agent()

    def unfreeze(self) -> None:
        """Resumes movement and actions. Not available in training mode."""
        if self.training_mode:
            raise PreconditionError("Freeze/Unfreeze not supported in training")
        self.frozen = False
        self.physics.wake_agent()
