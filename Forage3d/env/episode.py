"""
The step/episode protocol that drives one agent in one area.
"""
import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from Forage3d.constants import MAX_STEPS, TAG_BOUNDARY, TAG_NECTAR
from Forage3d.env.agent import ForagingAgent
from Forage3d.env.helper import distance
from Forage3d.env.physics import PhysicsBackend
from Forage3d.env.resources import ResourceArea
from Forage3d.env.rewards import RewardManager

logger = logging.getLogger(__name__)


###########################################
# EpisodeController
###########################################
class EpisodeController:
    """
    Runs episodes for a single foraging agent.

    Each step is processed in a fixed order:

    1. The agent turns the action into a force and a new orientation.
    2. Physics advances one timestep and reports contacts.
    3. The agent reads its new position back from physics.
    4. Nectar and boundary contacts are dispatched to the agent.
    5. The agent re-checks that its target still has nectar.
    6. The step counter advances; the episode is done once it reaches `max_steps`.
    7. The next observation is produced and the step's reward is drained.

    Attributes:
        step_counter (int): Steps taken in the current episode.
        episode_count (int): Episodes started since `initialize`.
        max_steps (int): Episode length in training mode; 0 means unlimited.
        last_reward_components (dict): Reward breakdown of the last step.
    """
    def __init__(self,
                 area: ResourceArea,
                 agent: ForagingAgent,
                 physics: PhysicsBackend,
                 rng: np.random.Generator,
                 reward_manager: Optional[RewardManager] = None,
                 training_mode: bool = True,
                 max_steps: int = MAX_STEPS):
        self.area = area
        self.agent = agent
        self.physics = physics
        self.rng = rng
        self.reward_manager = reward_manager if reward_manager is not None else agent.reward_manager
        self.training_mode = training_mode
        # Outside training the episode never ends on its own
        self.max_steps = max_steps if training_mode else 0

        self.step_counter = 0
        self.episode_count = 0
        self.last_reward_components = {}
        self._initialized = False

    def initialize(self) -> None:
        """Syncs the agent with physics. Flowers start full, in their rest pose."""
        self.agent.initialize()
        self._initialized = True
        logger.info("Episode controller ready: %d flowers, training_mode=%s, max_steps=%d",
                    len(self.area), self.training_mode, self.max_steps)

    def reset(self) -> np.ndarray:
        """
        Starts a new episode and returns its first observation.

        Every flower gets a fresh tilt and a full load of nectar, in manual
        play as well as in training.
        """
        if not self._initialized:
            self.initialize()
        self.area.reset_all(self.rng)

        self.step_counter = 0
        self.episode_count += 1
        self.reward_manager.reset()
        self.last_reward_components = {}
        self.agent.on_episode_begin()
        logger.debug("Episode %d started", self.episode_count)
        return self.agent.observe()

    def _dispatch_contacts(self, contacts) -> None:
        for contact in contacts:
            if contact.tag == TAG_NECTAR:
                sensor_distance = distance(self.agent.sensor_point, contact.closest_point)
                self.agent.on_nectar_contact(contact.contact_id, sensor_distance)
            elif contact.tag == TAG_BOUNDARY:
                self.agent.on_boundary_contact()

    def step(self, action: Sequence[float]) -> Tuple[np.ndarray, float, bool]:
        """
        Advances the episode by one fixed timestep.

        Args:
            action (Sequence[float]): 5 floats, see `ForagingAgent.act`.

        Returns:
            Tuple[np.ndarray, float, bool]: The next observation, the reward
            earned during the step and whether the episode is done.

        Raises:
            ActionContractError: If the action is malformed.
            ResourceNotFoundError: If physics reports nectar that was never registered.
        """
        if not self._initialized:
            self.initialize()

        self.agent.act(action)
        contacts = self.physics.step()
        self.agent.sync_from_physics()
        self._dispatch_contacts(contacts)
        self.agent.fixed_update()

        self.step_counter += 1
        done = self.max_steps > 0 and self.step_counter >= self.max_steps

        obs = self.agent.observe()
        reward, self.last_reward_components = self.reward_manager.flush()
        if done:
            logger.info("Episode %d done after %d steps: nectar %.3f, reward %.3f",
                        self.episode_count, self.step_counter,
                        self.agent.nectar_obtained, self.reward_manager.episode_total)
        return obs, reward, done
