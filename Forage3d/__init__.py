"""
Forage3d: a 3D hummingbird foraging environment for reinforcement learning.

Importing the package registers the environment with Gymnasium, so
`gymnasium.make("Forage3d/Hummingbird-v0")` works after `import Forage3d`.
"""
from gymnasium.envs.registration import register

__version__ = "0.1.0"

register(
    id="Forage3d/Hummingbird-v0",
    entry_point="Forage3d.env.env:Forage3DEnv",
)
