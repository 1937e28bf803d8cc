from .random_policy import RandomPolicy
from .heuristic_policy import HeuristicPolicy

__all__ = ['RandomPolicy', 'HeuristicPolicy']
