from .errors import (
    ActionContractError,
    DuplicateContactError,
    Forage3dError,
    PlacementExhaustedError,
    PreconditionError,
    ResourceNotFoundError,
)
from .resources import NectarResource, ResourceArea, ResourceListener
from .spawn import PlacementState, Pose, SpawnPlacer
from .agent import ForagingAgent
from .rewards import RewardManager
from .episode import EpisodeController
from .env import Forage3DEnv

__all__ = [
    'ActionContractError', 'DuplicateContactError', 'Forage3dError', 'PlacementExhaustedError',
    'PreconditionError', 'ResourceNotFoundError',
    'NectarResource', 'ResourceArea', 'ResourceListener',
    'PlacementState', 'Pose', 'SpawnPlacer',
    'ForagingAgent', 'RewardManager', 'EpisodeController', 'Forage3DEnv',
]
