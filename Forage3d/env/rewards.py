from typing import Dict, Optional, Tuple

import numpy as np

from Forage3d.constants import REWARD_CONFIG, REWARD_COMPONENT_KEYS
from Forage3d.env.helper import clamp01


class RewardManager:
    """
    Collects the reward deltas the agent reports during a step.

    Rewards are split into named components (see `REWARD_CONFIG`). Each
    component has a fixed base value and a multiplier that can be changed at
    runtime, e.g. for curriculum learning. The environment drains the
    per-step components with `flush` and hands the total to the learner.

    Attributes:
        reward_multipliers (dict): Overrides for the default multipliers, keyed by component.
        episode_total (float): Sum of all rewards flushed since the last `reset`.
    """
    def __init__(self, reward_overrides: Optional[Dict[str, float]] = None):
        self.reward_multipliers = dict(reward_overrides) if reward_overrides else {}
        self._step_components = {key: 0.0 for key in REWARD_COMPONENT_KEYS}
        self.episode_total = 0.0

    def update_reward_multipliers(self, new_multipliers: Dict[str, float]) -> None:
        """Replaces the multiplier overrides, e.g. {'r_boundary': 2.0}."""
        self.reward_multipliers = dict(new_multipliers)

    def get_reward(self, reward_key: str, base_value: Optional[float] = None) -> float:
        """
        Scales a base value by the component's multiplier.

        If `base_value` is omitted the component's configured default value is used.
        """
        config = REWARD_CONFIG.get(reward_key, {})
        if base_value is None:
            base_value = config.get('default_value', 0.0)
        multiplier = self.reward_multipliers.get(reward_key, config.get('default_multiplier', 1.0))
        return base_value * multiplier

    def add(self, reward_key: str, value: float) -> None:
        self._step_components[reward_key] = self._step_components.get(reward_key, 0.0) + float(value)

    def nectar_reward(self, agent_forward: np.ndarray, resource_up: np.ndarray) -> float:
        """
        Rewards one feeding contact.

        A fixed base reward plus a bonus scaled by how squarely the agent faces
        the flower, clamp01(dot(forward, -up)). Facing sideways or away earns the
        base reward only.
        """
        alignment = clamp01(float(np.dot(agent_forward, -resource_up)))
        base = self.get_reward('r_nectar')
        bonus = self.get_reward('r_nectar_alignment') * alignment
        self.add('r_nectar', base)
        self.add('r_nectar_alignment', bonus)
        return base + bonus

    def boundary_penalty(self) -> float:
        penalty = self.get_reward('r_boundary')
        self.add('r_boundary', penalty)
        return penalty

    def flush(self) -> Tuple[float, Dict[str, float]]:
        """Returns (total, components) for the step and clears the step accumulator."""
        components = self._step_components
        total = float(sum(components.values()))
        self._step_components = {key: 0.0 for key in REWARD_COMPONENT_KEYS}
        self.episode_total += total
        return total, components

    def reset(self) -> None:
        self._step_components = {key: 0.0 for key in REWARD_COMPONENT_KEYS}
        self.episode_total = 0.0

