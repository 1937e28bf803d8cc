"""
Nectar resources (flowers) and the area that owns them.

`ResourceArea` is the only owner of `NectarResource` instances. Everything else
(the agent, the physics adapter) refers to a resource by its `resource_id` or
its contact identifier and goes through the area to read or mutate it.
"""
import logging
from typing import Dict, Hashable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from Forage3d.constants import (
    AREA_CENTER,
    AREA_DIAMETER,
    EMPTY_FLOWER_COLOR,
    FLOWER_SPIN_RANGE,
    FLOWER_TILT_RANGE,
    FULL_FLOWER_COLOR,
)
from Forage3d.env.errors import DuplicateContactError, ResourceNotFoundError
from Forage3d.env.helper import euler_rotation, normalize_vector

logger = logging.getLogger(__name__)


class ResourceListener:
    """
    Receives fire-and-forget notifications about resource state changes.

    The physics adapter subscribes to these to toggle the nectar trigger and
    recolour the flower. All methods are no-ops by default.
    """

    def on_resource_activated(self, contact_id: Hashable) -> None:
        pass

    def on_resource_deactivated(self, contact_id: Hashable) -> None:
        pass

    def on_resource_color_changed(self, contact_id: Hashable, color: Tuple[float, float, float]) -> None:
        pass

    def on_resource_moved(self, contact_id: Hashable, position: np.ndarray, up: np.ndarray) -> None:
        pass


class NectarResource:
    """
    A single flower holding a depletable amount of nectar in [0, 1].

    Attributes:
        position (np.ndarray): World position of the nectar.
        up (np.ndarray): Unit vector pointing straight out of the flower.
        pivot (np.ndarray): Point the flower rotates about when the area is reset
                            (the base of its plant).
        resource_id (int): Index in the owning area, assigned on registration.
        contact_id: Primary contact identifier, assigned on registration.
    """

    def __init__(self,
                 position: Sequence[float],
                 up: Sequence[float],
                 pivot: Optional[Sequence[float]] = None,
                 full_color: Tuple[float, float, float] = FULL_FLOWER_COLOR,
                 empty_color: Tuple[float, float, float] = EMPTY_FLOWER_COLOR):
        self.base_position = np.asarray(position, dtype=float).copy()
        self.base_up = normalize_vector(up)
        self.pivot = self.base_position.copy() if pivot is None else np.asarray(pivot, dtype=float).copy()
        self.position = self.base_position.copy()
        self.up = self.base_up.copy()
        self.full_color = tuple(full_color)
        self.empty_color = tuple(empty_color)

        self.resource_id: Optional[int] = None
        self.contact_id: Optional[Hashable] = None
        self._quantity = 1.0
        self._active = True
        self._listeners: List[ResourceListener] = []

    def __repr__(self):
        return f"NectarResource(id={self.resource_id}, pos={np.round(self.position, 3)}, nectar={self._quantity:.3f})"

    @property
    def quantity(self) -> float:
        return self._quantity

    @property
    def has_nectar(self) -> bool:
        return self._quantity > 0.0

    @property
    def active(self) -> bool:
        return self._active

    def add_listener(self, listener: ResourceListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def feed(self, amount: float) -> float:
        """
        Removes up to `amount` nectar and returns how much was actually taken.

        Negative amounts are treated as zero. When the flower runs dry it is
        deactivated and recoloured through the listeners.
        """
        amount = max(float(amount), 0.0)
        taken = min(amount, self._quantity)
        self._quantity -= taken
        if self._quantity <= 0.0:
            self._quantity = 0.0
            if self._active:
                self._active = False
                for listener in self._listeners:
                    listener.on_resource_deactivated(self.contact_id)
                    listener.on_resource_color_changed(self.contact_id, self.empty_color)
        return taken

    def reset(self) -> None:
        """Refills the flower and reactivates it."""
        self._quantity = 1.0
        self._active = True
        for listener in self._listeners:
            listener.on_resource_activated(self.contact_id)
            listener.on_resource_color_changed(self.contact_id, self.full_color)

    def reposition(self, rotation: Rotation) -> None:
        """Rotates the flower's rest pose about its pivot."""
        self.position = self.pivot + rotation.apply(self.base_position - self.pivot)
        self.up = normalize_vector(rotation.apply(self.base_up))
        for listener in self._listeners:
            listener.on_resource_moved(self.contact_id, self.position.copy(), self.up.copy())


class ResourceArea:
    """
    Owns every flower in the arena and maps contact identifiers back to them.

    Iteration order is registration order and never changes, so random choices
    made over `resources` are reproducible for a given seed.
    """

    def __init__(self, center: Sequence[float] = AREA_CENTER, diameter: float = AREA_DIAMETER):
        self.center = np.asarray(center, dtype=float).copy()
        self.diameter = float(diameter)
        self._resources: List[NectarResource] = []
        self._contact_lookup: Dict[Hashable, NectarResource] = {}
        self._listeners: List[ResourceListener] = []

    def __len__(self):
        return len(self._resources)

    def __iter__(self) -> Iterator[NectarResource]:
        return iter(self._resources)

    @property
    def resources(self) -> List[NectarResource]:
        return list(self._resources)

    def get(self, resource_id: int) -> NectarResource:
        return self._resources[resource_id]

    def register(self, resource: NectarResource, contact_id: Hashable) -> None:
        """
        Registers `resource` under `contact_id`.

        A resource that is already registered keeps its place in the ordered
        list and only gains `contact_id` as an alias.

        Raises:
            DuplicateContactError: If `contact_id` is already registered.
        """
        if contact_id in self._contact_lookup:
            raise DuplicateContactError(f"Contact id {contact_id!r} is already registered")
        if not any(r is resource for r in self._resources):
            resource.resource_id = len(self._resources)
            resource.contact_id = contact_id
            for listener in self._listeners:
                resource.add_listener(listener)
            self._resources.append(resource)
        self._contact_lookup[contact_id] = resource

    def lookup(self, contact_id: Hashable) -> NectarResource:
        """
        Returns the resource registered under `contact_id`.

        Raises:
            ResourceNotFoundError: If the id was never registered.
        """
        try:
            return self._contact_lookup[contact_id]
        except KeyError:
            raise ResourceNotFoundError(f"No resource registered for contact id {contact_id!r}") from None

    def feed(self, contact_id: Hashable, amount: float) -> Tuple[NectarResource, float]:
        """Feeds from the resource behind `contact_id`. Returns the resource and the amount taken."""
        resource = self.lookup(contact_id)
        return resource, resource.feed(amount)

    def add_listener(self, listener: ResourceListener) -> None:
        """Subscribes `listener` to every current and future resource."""
        if listener in self._listeners:
            return
        self._listeners.append(listener)
        for resource in self._resources:
            resource.add_listener(listener)

    def reset_all(self, rng: np.random.Generator) -> None:
        """
        Gives every flower a fresh random tilt and refills it.

        Each flower is rotated about its pivot by a small x/z tilt and a free
        rotation around the vertical axis, all drawn from `rng`.
        """
        for resource in self._resources:
            x_rotation = rng.uniform(-FLOWER_TILT_RANGE, FLOWER_TILT_RANGE)
            y_rotation = rng.uniform(-FLOWER_SPIN_RANGE, FLOWER_SPIN_RANGE)
            z_rotation = rng.uniform(-FLOWER_TILT_RANGE, FLOWER_TILT_RANGE)
            resource.reposition(euler_rotation(x_rotation, y_rotation, z_rotation))

        for resource in self._resources:
            resource.reset()
        logger.debug("Reset %d flowers", len(self._resources))

    def any_nectar(self) -> bool:
        return any(r.has_nectar for r in self._resources)

    def total_nectar(self) -> float:
        return float(sum(r.quantity for r in self._resources))

    def populate(self, flower_specs, physics) -> None:
        """
        Creates and registers one resource per flower spec.

        `physics.add_flower` builds the flower's bodies and returns the contact
        identifier of its nectar trigger. The physics adapter is then subscribed
        to resource notifications.
        """
        for spec in flower_specs:
            resource = NectarResource(spec.position, spec.up, pivot=spec.pivot)
            contact_id = physics.add_flower(resource.position, resource.up)
            self.register(resource, contact_id)
        self.add_listener(physics)
        logger.info("Registered %d flowers", len(self._resources))
