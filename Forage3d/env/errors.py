"""Forage3d exception hierarchy.

All errors raised here are integration or programming errors: the simulation
does not try to recover from them, the caller abandons the episode.
"""


class Forage3dError(Exception):
    """Root of all Forage3d exceptions."""


class ResourceNotFoundError(Forage3dError, KeyError):
    """A contact identifier was looked up that was never registered."""


class DuplicateContactError(Forage3dError, KeyError):
    """A contact identifier was registered twice."""


class PlacementExhaustedError(Forage3dError, RuntimeError):
    """The spawn placer ran out of attempts without finding a free pose."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class PreconditionError(Forage3dError, RuntimeError):
    """An operation was called in a mode that does not support it."""


class ActionContractError(Forage3dError, ValueError):
    """An action vector did not have the expected shape or contents."""
