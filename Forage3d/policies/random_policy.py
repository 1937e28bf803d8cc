import numpy as np


class RandomPolicy:
    def __init__(self, action_space):
        """
        A policy that returns random actions.

        Args:
            action_space: The environment's action space.
        """
        self.action_space = action_space

    def act(self, observation) -> np.ndarray:
        """
        Return a random action.

        Args:
            observation: The current observation from the environment (ignored).

        Returns:
            A 5-float action sampled uniformly from the action space.
        """
        return self.action_space.sample()
