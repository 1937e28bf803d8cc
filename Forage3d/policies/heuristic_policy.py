import numpy as np
from scipy.spatial.transform import Rotation

from Forage3d.constants import ACTION_DIM, AREA_DIAMETER
from Forage3d.env.helper import look_rotation, wrap_angle


class HeuristicPolicy:
    def __init__(self, action_space, area_diameter: float = AREA_DIAMETER):
        """
        A greedy rule-based policy for the Forage3d environment.

        It only reads the 10-float observation:
        1. No flower left: hover and slowly turn on the spot.
        2. Otherwise: turn the beak toward the nearest flower and fly at it,
           slowing down on the final approach.
        """
        self.action_space = action_space
        self.area_diameter = area_diameter
        # Constants for decision making
        self.turn_gain = 30.0        # Heading error (degrees) that maps to a full turn input
        self.facing_threshold = 45.0 # Only fly forward once roughly facing the flower
        self.slow_radius = 0.5       # Start braking inside this distance
        self.min_speed = 0.2

    def act(self, obs) -> np.ndarray:
        """
        Determines the action based on the current observation.

        Args:
            obs: The 10-float observation of the nearest flower.

        Returns:
            A 5-float action: world-space move direction, pitch rate, yaw rate.
        """
        obs = np.asarray(obs, dtype=float)
        if not np.any(obs):
            return self._explore()

        pitch, yaw = self._current_heading(obs[0:4])
        to_flower = obs[4:7]
        flower_distance = obs[9] * self.area_diameter

        target_pitch, target_yaw = look_rotation(to_flower)
        pitch_error = target_pitch - pitch
        yaw_error = wrap_angle(target_yaw - yaw)

        action = np.zeros(ACTION_DIM, dtype=np.float32)
        action[3] = np.clip(pitch_error / self.turn_gain, -1.0, 1.0)
        action[4] = np.clip(yaw_error / self.turn_gain, -1.0, 1.0)

        if abs(yaw_error) < self.facing_threshold:
            speed = np.clip(flower_distance / self.slow_radius, self.min_speed, 1.0)
            action[0:3] = to_flower * speed
        return action

    @staticmethod
    def _current_heading(quat):
        yaw, pitch, _ = Rotation.from_quat(quat).as_euler('YXZ', degrees=True)
        return pitch, yaw

    def _explore(self) -> np.ndarray:
        action = np.zeros(ACTION_DIM, dtype=np.float32)
        action[4] = 0.5
        return action
