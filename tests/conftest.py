"""Pytest configuration and fixtures for Forage3d tests."""

import numpy as np
import pytest

from Forage3d.constants import TAG_NECTAR
from Forage3d.env.agent import ForagingAgent
from Forage3d.env.physics import Contact, PhysicsBackend
from Forage3d.env.resources import NectarResource, ResourceArea
from Forage3d.env.rewards import RewardManager
from Forage3d.env.spawn import SpawnPlacer


class FakePhysics(PhysicsBackend):
    """
    In-memory physics collaborator.

    The body never moves on its own. Tests set `position`, queue contacts with
    `queue_contact` and control spawn probes through `blocked_probes` (number
    of overlap queries that report a hit before the space is free; -1 = always).
    """

    def __init__(self):
        self.position = np.zeros(3)
        self.velocity = np.zeros(3)
        self.orientation = [0.0, 0.0, 0.0, 1.0]
        self.forces = []
        self.calls = []
        self.events = []
        self.pending_contacts = []
        self.blocked_probes = 0
        self.overlap_queries = 0
        self.sleeping = False
        self.stop_count = 0
        self.step_count = 0
        self._next_flower = 0

    def add_flower(self, position, up):
        contact_id = f"nectar-{self._next_flower}"
        self._next_flower += 1
        return contact_id

    def overlap_sphere(self, point, radius):
        self.overlap_queries += 1
        if self.blocked_probes < 0:
            return ["obstacle"]
        if self.blocked_probes > 0:
            self.blocked_probes -= 1
            return ["obstacle"]
        return []

    def apply_agent_force(self, force):
        self.calls.append("force")
        self.forces.append(np.asarray(force, dtype=float).copy())

    def set_agent_pose(self, position, orientation):
        self.calls.append("pose")
        self.position = np.asarray(position, dtype=float).copy()
        self.orientation = list(orientation)

    def set_agent_orientation(self, orientation):
        self.calls.append("orientation")
        self.orientation = list(orientation)

    def agent_state(self):
        return self.position.copy(), self.velocity.copy()

    def stop_agent(self):
        self.stop_count += 1
        self.velocity = np.zeros(3)

    def sleep_agent(self):
        self.sleeping = True
        self.stop_agent()

    def wake_agent(self):
        self.sleeping = False

    def queue_contact(self, contact_id, tag=TAG_NECTAR, closest_point=None):
        point = self.position if closest_point is None else closest_point
        self.pending_contacts.append(Contact(contact_id, tag, np.asarray(point, dtype=float)))

    def step(self):
        self.calls.append("step")
        self.step_count += 1
        contacts, self.pending_contacts = self.pending_contacts, []
        return contacts

    # Resource notifications
    def on_resource_activated(self, contact_id):
        self.events.append(("activated", contact_id))

    def on_resource_deactivated(self, contact_id):
        self.events.append(("deactivated", contact_id))

    def on_resource_color_changed(self, contact_id, color):
        self.events.append(("color", contact_id, tuple(color)))

    def on_resource_moved(self, contact_id, position, up):
        self.events.append(("moved", contact_id))


@pytest.fixture
def rng():
    """Provide a deterministic RNG for tests."""
    return np.random.default_rng(42)


@pytest.fixture
def fake_physics():
    return FakePhysics()


def build_area(physics, flowers):
    """Registers one resource per (position, up) pair and subscribes `physics`."""
    area = ResourceArea()
    for position, up in flowers:
        resource = NectarResource(position, up)
        area.register(resource, physics.add_flower(resource.position, resource.up))
    area.add_listener(physics)
    return area


@pytest.fixture
def make_area(fake_physics):
    def _make(flowers):
        return build_area(fake_physics, flowers)

    return _make


@pytest.fixture
def make_agent(fake_physics, rng):
    """Factory for an agent over the given flowers, sitting at the origin facing +z."""

    def _make(flowers, training_mode=True, **kwargs):
        area = build_area(fake_physics, flowers)
        placer = SpawnPlacer(area, fake_physics.overlap_sphere, rng)
        agent = ForagingAgent(area, fake_physics, placer,
                              reward_manager=RewardManager(),
                              rng=rng,
                              training_mode=training_mode,
                              **kwargs)
        agent.initialize()
        return agent

    return _make
