"""
This module defines the Forage3d hummingbird foraging environment.

`Forage3DEnv` wires the flower area, spawn placement, the foraging agent and
the PyBullet physics adapter together behind the gymnasium.Env interface, so
that standard reinforcement learning libraries can drive it.
"""
import logging
from typing import Dict, List, Optional, Tuple

import gymnasium as gym
import numpy as np
from gymnasium import spaces

from Forage3d.constants import (
    ACTION_DIM,
    AREA_CENTER,
    AREA_DIAMETER,
    BEAK_TIP_OFFSET,
    BEAK_TIP_RADIUS,
    FEED_AMOUNT,
    FIXED_DELTA_TIME,
    FLOWERS_PER_PLANT,
    FPS,
    MAX_PITCH_ANGLE,
    MAX_STEPS,
    MOVE_FORCE,
    NUM_FLOWER_PLANTS,
    OBS_DIM,
    PITCH_SPEED,
    SPAWN_MAX_ATTEMPTS,
    SPAWN_PROBE_RADIUS,
    TURN_SMOOTHING_RATE,
    YAW_SPEED,
)
from Forage3d.env.agent import ForagingAgent
from Forage3d.env.episode import EpisodeController
from Forage3d.env.layout import FlowerSpec, default_layout
from Forage3d.env.physics import PhysicsBackend, PyBulletPhysics
from Forage3d.env.resources import ResourceArea
from Forage3d.env.rewards import RewardManager
from Forage3d.env.spawn import SpawnPlacer

logger = logging.getLogger(__name__)


###########################################
# Forage3DEnv: single hummingbird, one flower area
###########################################
class Forage3DEnv(gym.Env):
    """
    A single-agent 3D foraging environment.

    A hummingbird hovers in a walled, circular area full of flowers and has to
    find them and drink their nectar with the tip of its beak. Each step takes
    5 floats (move x/y/z, pitch rate, yaw rate) and returns a 10-float
    observation of the nearest flower that still has nectar.

    Every physical and reward constant can be overridden through keyword
    arguments, so an `env_config` dict can be splatted straight into the
    constructor.

    Attributes:
        area (ResourceArea): The flowers.
        agent (ForagingAgent): The hummingbird.
        controller (EpisodeController): Step/episode protocol.
        physics (PhysicsBackend): Physics collaborator, PyBullet unless one is injected.
        reward_manager (RewardManager): Reward components and multipliers.
    """
    metadata = {"render_modes": ["gui"], "render_fps": FPS}

    def __init__(self,
                 render_mode: Optional[str] = None,
                 training_mode: bool = True,
                 max_steps: int = MAX_STEPS,
                 area_diameter: float = AREA_DIAMETER,
                 move_force: float = MOVE_FORCE,
                 pitch_speed: float = PITCH_SPEED,
                 yaw_speed: float = YAW_SPEED,
                 max_pitch_angle: float = MAX_PITCH_ANGLE,
                 turn_smoothing_rate: float = TURN_SMOOTHING_RATE,
                 reset_turn_smoothing: bool = True,
                 beak_tip_offset: float = BEAK_TIP_OFFSET,
                 beak_tip_radius: float = BEAK_TIP_RADIUS,
                 feed_amount: float = FEED_AMOUNT,
                 spawn_max_attempts: int = SPAWN_MAX_ATTEMPTS,
                 spawn_probe_radius: float = SPAWN_PROBE_RADIUS,
                 num_flower_plants: int = NUM_FLOWER_PLANTS,
                 flowers_per_plant: int = FLOWERS_PER_PLANT,
                 layout_seed: Optional[int] = 0,
                 flower_specs: Optional[List[FlowerSpec]] = None,
                 reward_overrides: Optional[Dict[str, float]] = None,
                 physics: Optional[PhysicsBackend] = None):
        super().__init__()
        if render_mode is not None and render_mode not in self.metadata["render_modes"]:
            raise ValueError(f"Unsupported render_mode {render_mode!r}, expected one of {self.metadata['render_modes']}")
        self.render_mode = render_mode
        self.training_mode = training_mode

        # --- Physics ---
        if physics is None:
            physics = PyBulletPhysics(render_mode=render_mode,
                                      time_step=FIXED_DELTA_TIME,
                                      area_center=AREA_CENTER,
                                      area_diameter=area_diameter,
                                      beak_tip_offset=beak_tip_offset)
        self.physics = physics

        # --- Flowers ---
        if flower_specs is None:
            flower_specs = default_layout(seed=layout_seed,
                                          num_plants=num_flower_plants,
                                          flowers_per_plant=flowers_per_plant)
        self.area = ResourceArea(center=AREA_CENTER, diameter=area_diameter)
        self.area.populate(flower_specs, self.physics)

        # --- Agent and episode protocol ---
        self.reward_manager = RewardManager(reward_overrides)
        self.spawn_placer = SpawnPlacer(self.area, self.physics.overlap_sphere, self.np_random,
                                        max_attempts=spawn_max_attempts,
                                        probe_radius=spawn_probe_radius)
        self.agent = ForagingAgent(self.area, self.physics, self.spawn_placer,
                                   reward_manager=self.reward_manager,
                                   rng=self.np_random,
                                   training_mode=training_mode,
                                   move_force=move_force,
                                   pitch_speed=pitch_speed,
                                   yaw_speed=yaw_speed,
                                   max_pitch_angle=max_pitch_angle,
                                   turn_smoothing_rate=turn_smoothing_rate,
                                   beak_tip_offset=beak_tip_offset,
                                   beak_tip_radius=beak_tip_radius,
                                   feed_amount=feed_amount,
                                   fixed_delta_time=FIXED_DELTA_TIME,
                                   area_diameter=area_diameter,
                                   reset_turn_smoothing=reset_turn_smoothing)
        self.controller = EpisodeController(self.area, self.agent, self.physics, self.np_random,
                                            reward_manager=self.reward_manager,
                                            training_mode=training_mode,
                                            max_steps=max_steps)

        self.observation_space = spaces.Box(low=-np.inf, high=np.inf, shape=(OBS_DIM,), dtype=np.float32)
        self.action_space = spaces.Box(low=-1.0, high=1.0, shape=(ACTION_DIM,), dtype=np.float32)

        logger.info("Forage3DEnv created: %d flowers, area diameter %.1f, training_mode=%s",
                    len(self.area), area_diameter, training_mode)

    def _bind_rng(self) -> None:
        # gymnasium replaces np_random on a seeded reset; every consumer must draw from the same generator
        rng = self.np_random
        self.spawn_placer.rng = rng
        self.agent.rng = rng
        self.controller.rng = rng

    def _get_info(self) -> Dict:
        nearest = self.agent.nearest
        return {
            "step": self.controller.step_counter,
            "nectar_obtained": self.agent.nectar_obtained,
            "nearest_flower": nearest.resource_id if nearest is not None else None,
            "flowers_with_nectar": sum(1 for r in self.area if r.has_nectar),
            "reward_components": dict(self.controller.last_reward_components),
            "episode_reward": self.reward_manager.episode_total,
        }

    def reset(self, seed: Optional[int] = None, options: Optional[Dict] = None) -> Tuple[np.ndarray, Dict]:
        """
        Starts a new episode.

        Args:
            seed: RNG seed for flower tilts and spawn placement.
            options: Unused, accepted for API compatibility.

        Returns:
            Tuple[np.ndarray, Dict]: The first observation and an info dict.
        """
        super().reset(seed=seed)
        self._bind_rng()
        obs = self.controller.reset()
        return obs, self._get_info()

    def step(self, action) -> Tuple[np.ndarray, float, bool, bool, Dict]:
        """
        Advances the environment by one fixed timestep.

        Returns:
            A tuple containing:
            - obs (np.ndarray): The next 10-float observation.
            - reward (float): Reward earned during the step (always 0 outside training).
            - terminated (bool): Always False; the task has no terminal state.
            - truncated (bool): Whether the step limit was reached.
            - info (Dict): Diagnostics, including the per-component reward breakdown.
        """
        obs, reward, done = self.controller.step(action)
        if self.render_mode == "gui":
            self.render()
        return obs, reward, False, done, self._get_info()

    def render(self) -> None:
        """
        The PyBullet GUI redraws itself on every physics step; this only adds a
        guide line from the beak tip to the nearest flower.
        """
        if self.render_mode != "gui":
            return
        nearest = self.agent.nearest
        if nearest is not None:
            self.physics.draw_guide_line(self.agent.sensor_point, nearest.position)

    def freeze(self) -> None:
        self.agent.freeze()

    def unfreeze(self) -> None:
        self.agent.unfreeze()

    def update_reward_overrides(self, reward_overrides: Dict[str, float]) -> None:
        """
        Replaces the reward multipliers, e.g. for curriculum learning.

        Args:
            reward_overrides: {reward_key: multiplier}, see `REWARD_CONFIG`.
        """
        self.reward_manager.update_reward_multipliers(reward_overrides)

    def close(self) -> None:
        """Disconnects from the physics server."""
        logger.info("Closing Forage3DEnv")
        self.physics.close()
