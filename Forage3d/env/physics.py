"""
Physics collaborators for the foraging environment.

`PhysicsBackend` is the contract the simulation core talks to: it integrates
the agent's body, answers sphere-overlap queries for spawn placement and
reports contacts after each step. `PyBulletPhysics` implements it on top of a
PyBullet world with the y axis pointing up and gravity disabled (the agent
hovers).
"""
import logging
import math
from collections import namedtuple
from typing import Dict, Hashable, List, Optional, Sequence, Set, Tuple

import numpy as np
import pybullet as p

from Forage3d.constants import (
    AGENT_BODY_RADIUS,
    AGENT_LINEAR_DAMPING,
    AGENT_MASS,
    AREA_CENTER,
    AREA_DIAMETER,
    BEAK_TIP_OFFSET,
    BOUNDARY_WALL_HEIGHT,
    BOUNDARY_WALL_SEGMENTS,
    BOUNDARY_WALL_THICKNESS,
    CEILING_HEIGHT,
    FIXED_DELTA_TIME,
    FULL_FLOWER_COLOR,
    NECTAR_RADIUS,
    PETAL_HALF_THICKNESS,
    PETAL_RADIUS,
    TAG_BOUNDARY,
    TAG_FLOWER,
    TAG_NECTAR,
    WORLD_FORWARD,
    WORLD_UP,
)
from Forage3d.env.helper import euler_rotation, look_rotation, rotate_about_y
from Forage3d.env.resources import ResourceListener

logger = logging.getLogger(__name__)

Contact = namedtuple('Contact', ['contact_id', 'tag', 'closest_point'])

COLLISION_GROUP_AGENT = 1
COLLISION_GROUP_BOUNDARY = 2
COLLISION_GROUP_FLOWER = 4
COLLISION_GROUP_NECTAR = 8

_IDENTITY_QUAT = [0.0, 0.0, 0.0, 1.0]


class PhysicsBackend(ResourceListener):
    """
    Interface of the external physics/collision collaborator.

    Contacts returned by `step` are `Contact(contact_id, tag, closest_point)`
    tuples, where `closest_point` is the point of the touched collider closest
    to the agent's beak tip. Nectar contacts are reported on every step the
    agent overlaps the nectar, solid contacts only on the first step of a touch.
    """

    def add_flower(self, position: np.ndarray, up: np.ndarray) -> Hashable:
        raise NotImplementedError

    def overlap_sphere(self, point: np.ndarray, radius: float) -> List[Hashable]:
        raise NotImplementedError

    def apply_agent_force(self, force: np.ndarray) -> None:
        raise NotImplementedError

    def set_agent_pose(self, position: np.ndarray, orientation: Sequence[float]) -> None:
        raise NotImplementedError

    def set_agent_orientation(self, orientation: Sequence[float]) -> None:
        raise NotImplementedError

    def agent_state(self) -> Tuple[np.ndarray, np.ndarray]:
        raise NotImplementedError

    def stop_agent(self) -> None:
        raise NotImplementedError

    def sleep_agent(self) -> None:
        raise NotImplementedError

    def wake_agent(self) -> None:
        raise NotImplementedError

    def step(self) -> List[Contact]:
        raise NotImplementedError

    def draw_guide_line(self, start: np.ndarray, end: np.ndarray) -> None:
        pass

    def close(self) -> None:
        pass


class PyBulletPhysics(PhysicsBackend):
    """
    PyBullet implementation of the physics collaborator.

    The arena is a ground slab, a ring of wall segments and a ceiling, all
    tagged "boundary". Each flower is a solid petal plate (tag "flower") with a
    nectar sphere in front of it (tag "nectar"). The nectar never collides
    physically; overlaps with it are computed from the agent's body sphere and
    beak tip after every step.

    Attributes:
        physicsClient (int): PyBullet client id.
        agent_body_id (int): Body id of the agent.
    """
    def __init__(self,
                 render_mode: Optional[str] = None,
                 time_step: float = FIXED_DELTA_TIME,
                 area_center: Sequence[float] = AREA_CENTER,
                 area_diameter: float = AREA_DIAMETER,
                 beak_tip_offset: float = BEAK_TIP_OFFSET,
                 agent_radius: float = AGENT_BODY_RADIUS,
                 agent_mass: float = AGENT_MASS,
                 agent_linear_damping: float = AGENT_LINEAR_DAMPING,
                 nectar_radius: float = NECTAR_RADIUS):
        self.render_mode = render_mode
        self.time_step = time_step
        self.area_center = np.asarray(area_center, dtype=float)
        self.area_diameter = area_diameter
        self.beak_tip_offset = beak_tip_offset
        self.agent_radius = agent_radius
        self.nectar_radius = nectar_radius

        # body id -> tag, and body id -> ('sphere', radius) / ('box', half_extents)
        self._tags: Dict[int, str] = {}
        self._shapes: Dict[int, Tuple[str, np.ndarray]] = {}
        self._nectar_to_petal: Dict[int, int] = {}
        self._inactive_bodies: Set[int] = set()
        self._touching: Set[int] = set()
        self._pending_force = np.zeros(3)
        self._agent_quat = list(_IDENTITY_QUAT)
        self._sleeping = False
        self._guide_line_id: Optional[int] = None

        if self.render_mode == "gui":
            try:
                self.physicsClient = p.connect(p.GUI)
                if self.physicsClient < 0:
                    logger.warning("PyBullet GUI connection failed, falling back to DIRECT mode.")
                    self.physicsClient = p.connect(p.DIRECT)
                    self.render_mode = None
                else:
                    p.configureDebugVisualizer(p.COV_ENABLE_Y_AXIS_UP, 1, physicsClientId=self.physicsClient)
                    p.resetDebugVisualizerCamera(
                        cameraDistance=area_diameter * 0.8,
                        cameraYaw=0,
                        cameraPitch=-45.0,
                        cameraTargetPosition=list(self.area_center + WORLD_UP * 1.5),
                        physicsClientId=self.physicsClient
                    )
            except p.error as e:
                logger.warning("PyBullet connection error: %s. Falling back to DIRECT mode.", e)
                self.physicsClient = p.connect(p.DIRECT)
                self.render_mode = None
        else:
            self.physicsClient = p.connect(p.DIRECT)

        if self.physicsClient < 0:
            raise RuntimeError("Failed to connect to PyBullet physics server.")

        p.setGravity(0, 0, 0, physicsClientId=self.physicsClient)
        p.setTimeStep(self.time_step, physicsClientId=self.physicsClient)

        self._build_boundary()
        self.agent_body_id = self._create_agent(agent_mass, agent_linear_damping)

    # ------------------------------------------------------------------
    # Scene construction
    # ------------------------------------------------------------------
    def _create_static_box(self, half_extents, position, orientation, tag, group, mask, rgba) -> int:
        col = p.createCollisionShape(p.GEOM_BOX, halfExtents=list(half_extents), physicsClientId=self.physicsClient)
        vis = p.createVisualShape(p.GEOM_BOX, halfExtents=list(half_extents), rgbaColor=list(rgba),
                                  physicsClientId=self.physicsClient)
        body_id = p.createMultiBody(baseMass=0,
                                    baseCollisionShapeIndex=col,
                                    baseVisualShapeIndex=vis,
                                    basePosition=list(position),
                                    baseOrientation=list(orientation),
                                    physicsClientId=self.physicsClient)
        p.setCollisionFilterGroupMask(body_id, -1, group, mask, physicsClientId=self.physicsClient)
        self._tags[body_id] = tag
        self._shapes[body_id] = ('box', np.asarray(half_extents, dtype=float))
        return body_id

    def _build_boundary(self):
        radius = self.area_diameter / 2.0
        slab = radius + 1.0
        ground_color = [0.25, 0.35, 0.2, 1.0]
        wall_color = [0.6, 0.6, 0.6, 0.25]

        self._create_static_box([slab, 0.1, slab], self.area_center - WORLD_UP * 0.1, _IDENTITY_QUAT,
                                TAG_BOUNDARY, COLLISION_GROUP_BOUNDARY, COLLISION_GROUP_AGENT, ground_color)
        self._create_static_box([slab, 0.1, slab], self.area_center + WORLD_UP * (CEILING_HEIGHT + 0.1),
                                _IDENTITY_QUAT, TAG_BOUNDARY, COLLISION_GROUP_BOUNDARY, COLLISION_GROUP_AGENT,
                                [0.0, 0.0, 0.0, 0.0])

        # Ring of wall segments, each facing the centre
        half_width = radius * math.tan(math.pi / BOUNDARY_WALL_SEGMENTS) + BOUNDARY_WALL_THICKNESS
        for i in range(BOUNDARY_WALL_SEGMENTS):
            angle = -180.0 + i * 360.0 / BOUNDARY_WALL_SEGMENTS
            position = (self.area_center
                        + rotate_about_y(WORLD_FORWARD * (radius + BOUNDARY_WALL_THICKNESS / 2.0), angle)
                        + WORLD_UP * (BOUNDARY_WALL_HEIGHT / 2.0))
            orientation = euler_rotation(0.0, angle).as_quat()
            self._create_static_box([half_width, BOUNDARY_WALL_HEIGHT / 2.0, BOUNDARY_WALL_THICKNESS / 2.0],
                                    position, orientation, TAG_BOUNDARY,
                                    COLLISION_GROUP_BOUNDARY, COLLISION_GROUP_AGENT, wall_color)

    def _create_agent(self, mass: float, linear_damping: float) -> int:
        col = p.createCollisionShape(p.GEOM_SPHERE, radius=self.agent_radius, physicsClientId=self.physicsClient)
        vis = p.createVisualShape(p.GEOM_SPHERE, radius=self.agent_radius, rgbaColor=[0.1, 0.7, 0.3, 1.0],
                                  physicsClientId=self.physicsClient)
        start = self.area_center + WORLD_UP * 1.5
        body_id = p.createMultiBody(baseMass=mass,
                                    baseCollisionShapeIndex=col,
                                    baseVisualShapeIndex=vis,
                                    basePosition=list(start),
                                    physicsClientId=self.physicsClient)
        p.changeDynamics(body_id, -1,
                         linearDamping=linear_damping,
                         angularDamping=1.0,
                         restitution=0.1,
                         physicsClientId=self.physicsClient)
        p.setCollisionFilterGroupMask(body_id, -1, COLLISION_GROUP_AGENT,
                                      COLLISION_GROUP_BOUNDARY | COLLISION_GROUP_FLOWER,
                                      physicsClientId=self.physicsClient)
        return body_id

    def _flower_orientations(self, position: np.ndarray, up: np.ndarray):
        # Local +z of both flower bodies points along the flower's up vector
        pitch, yaw = look_rotation(up)
        quat = euler_rotation(pitch, yaw).as_quat()
        petal_position = position - up * (self.nectar_radius + PETAL_HALF_THICKNESS)
        return quat, petal_position

    def add_flower(self, position: np.ndarray, up: np.ndarray) -> int:
        """Creates the petal plate and nectar sphere of one flower. Returns the nectar body id."""
        position = np.asarray(position, dtype=float)
        up = np.asarray(up, dtype=float)
        quat, petal_position = self._flower_orientations(position, up)

        petal_id = self._create_static_box([PETAL_RADIUS, PETAL_RADIUS, PETAL_HALF_THICKNESS],
                                           petal_position, quat, TAG_FLOWER,
                                           COLLISION_GROUP_FLOWER, COLLISION_GROUP_AGENT,
                                           list(FULL_FLOWER_COLOR) + [1.0])

        col = p.createCollisionShape(p.GEOM_SPHERE, radius=self.nectar_radius, physicsClientId=self.physicsClient)
        vis = p.createVisualShape(p.GEOM_SPHERE, radius=self.nectar_radius, rgbaColor=[1.0, 0.9, 0.2, 0.6],
                                  physicsClientId=self.physicsClient)
        nectar_id = p.createMultiBody(baseMass=0,
                                      baseCollisionShapeIndex=col,
                                      baseVisualShapeIndex=vis,
                                      basePosition=list(position),
                                      baseOrientation=list(quat),
                                      physicsClientId=self.physicsClient)
        # Nectar is a trigger volume: it takes part in queries but never in collisions
        p.setCollisionFilterGroupMask(nectar_id, -1, COLLISION_GROUP_NECTAR, 0, physicsClientId=self.physicsClient)
        self._tags[nectar_id] = TAG_NECTAR
        self._shapes[nectar_id] = ('sphere', np.array([self.nectar_radius]))
        self._nectar_to_petal[nectar_id] = petal_id
        return nectar_id

    # ------------------------------------------------------------------
    # Resource notifications
    # ------------------------------------------------------------------
    def on_resource_activated(self, contact_id):
        petal_id = self._nectar_to_petal[contact_id]
        self._inactive_bodies.discard(contact_id)
        self._inactive_bodies.discard(petal_id)
        p.setCollisionFilterGroupMask(petal_id, -1, COLLISION_GROUP_FLOWER, COLLISION_GROUP_AGENT,
                                      physicsClientId=self.physicsClient)
        p.changeVisualShape(contact_id, -1, rgbaColor=[1.0, 0.9, 0.2, 0.6], physicsClientId=self.physicsClient)

    def on_resource_deactivated(self, contact_id):
        petal_id = self._nectar_to_petal[contact_id]
        self._inactive_bodies.add(contact_id)
        self._inactive_bodies.add(petal_id)
        p.setCollisionFilterGroupMask(petal_id, -1, COLLISION_GROUP_FLOWER, 0, physicsClientId=self.physicsClient)
        p.changeVisualShape(contact_id, -1, rgbaColor=[1.0, 0.9, 0.2, 0.0], physicsClientId=self.physicsClient)

    def on_resource_color_changed(self, contact_id, color):
        petal_id = self._nectar_to_petal[contact_id]
        p.changeVisualShape(petal_id, -1, rgbaColor=list(color) + [1.0], physicsClientId=self.physicsClient)

    def on_resource_moved(self, contact_id, position, up):
        quat, petal_position = self._flower_orientations(position, up)
        p.resetBasePositionAndOrientation(contact_id, list(position), list(quat), physicsClientId=self.physicsClient)
        p.resetBasePositionAndOrientation(self._nectar_to_petal[contact_id], list(petal_position), list(quat),
                                          physicsClientId=self.physicsClient)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def _sphere_overlaps_body(self, point: np.ndarray, radius: float, body_id: int) -> bool:
        kind, size = self._shapes[body_id]
        pos, orn = p.getBasePositionAndOrientation(body_id, physicsClientId=self.physicsClient)
        center = np.asarray(pos)
        if kind == 'sphere':
            return float(np.linalg.norm(point - center)) < radius + size[0]
        # Oriented box: clamp the point into the box in its local frame
        rot = np.asarray(p.getMatrixFromQuaternion(orn)).reshape(3, 3)
        local = rot.T @ (point - center)
        closest = np.clip(local, -size, size)
        return float(np.linalg.norm(local - closest)) < radius

    def overlap_sphere(self, point: np.ndarray, radius: float) -> List[int]:
        """Returns the ids of all active bodies (other than the agent) a sphere at `point` touches."""
        point = np.asarray(point, dtype=float)
        hits = []
        for body_id in self._shapes:
            if body_id in self._inactive_bodies:
                continue
            if self._sphere_overlaps_body(point, radius, body_id):
                hits.append(body_id)
        return hits

    # ------------------------------------------------------------------
    # Agent body
    # ------------------------------------------------------------------
    def apply_agent_force(self, force: np.ndarray) -> None:
        self._pending_force = np.asarray(force, dtype=float).copy()

    def set_agent_pose(self, position: np.ndarray, orientation: Sequence[float]) -> None:
        self._agent_quat = list(orientation)
        p.resetBasePositionAndOrientation(self.agent_body_id, list(position), self._agent_quat,
                                          physicsClientId=self.physicsClient)
        self._touching.clear()

    def set_agent_orientation(self, orientation: Sequence[float]) -> None:
        self._agent_quat = list(orientation)
        pos, _ = p.getBasePositionAndOrientation(self.agent_body_id, physicsClientId=self.physicsClient)
        vel, _ = p.getBaseVelocity(self.agent_body_id, physicsClientId=self.physicsClient)
        p.resetBasePositionAndOrientation(self.agent_body_id, pos, self._agent_quat,
                                          physicsClientId=self.physicsClient)
        p.resetBaseVelocity(self.agent_body_id, linearVelocity=vel, angularVelocity=[0, 0, 0],
                            physicsClientId=self.physicsClient)

    def agent_state(self) -> Tuple[np.ndarray, np.ndarray]:
        pos, _ = p.getBasePositionAndOrientation(self.agent_body_id, physicsClientId=self.physicsClient)
        vel, _ = p.getBaseVelocity(self.agent_body_id, physicsClientId=self.physicsClient)
        return np.array(pos), np.array(vel)

    def stop_agent(self) -> None:
        self._pending_force = np.zeros(3)
        p.resetBaseVelocity(self.agent_body_id, linearVelocity=[0, 0, 0], angularVelocity=[0, 0, 0],
                            physicsClientId=self.physicsClient)

    def sleep_agent(self) -> None:
        self._sleeping = True
        self.stop_agent()

    def wake_agent(self) -> None:
        self._sleeping = False

    def _beak_tip(self, position: np.ndarray) -> np.ndarray:
        rot = np.asarray(p.getMatrixFromQuaternion(self._agent_quat)).reshape(3, 3)
        return position + rot @ WORLD_FORWARD * self.beak_tip_offset

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------
    def step(self) -> List[Contact]:
        """
        Advances the world by one fixed timestep and returns the contacts queued during it.
        """
        if self._sleeping:
            self.stop_agent()
        else:
            p.applyExternalForce(self.agent_body_id, -1, list(self._pending_force), [0, 0, 0], p.WORLD_FRAME,
                                 physicsClientId=self.physicsClient)
        self._pending_force = np.zeros(3)

        p.stepSimulation(physicsClientId=self.physicsClient)

        # Orientation is owned by the agent; collisions must not spin it
        position, velocity = self.agent_state()
        p.resetBasePositionAndOrientation(self.agent_body_id, list(position), self._agent_quat,
                                          physicsClientId=self.physicsClient)
        p.resetBaseVelocity(self.agent_body_id, linearVelocity=list(velocity), angularVelocity=[0, 0, 0],
                            physicsClientId=self.physicsClient)

        beak_tip = self._beak_tip(position)
        contacts = []

        # Solid contacts are reported once, when the touch starts
        touching_now = {}
        for point in p.getContactPoints(bodyA=self.agent_body_id, physicsClientId=self.physicsClient):
            other_id = point[2]
            if other_id in self._tags and other_id not in touching_now:
                touching_now[other_id] = np.asarray(point[6])
        for other_id, contact_point in touching_now.items():
            if other_id not in self._touching:
                contacts.append(Contact(other_id, self._tags[other_id], contact_point))
        self._touching = set(touching_now)

        # Nectar is reported on every step the body or the beak tip is inside it
        for body_id, tag in self._tags.items():
            if tag != TAG_NECTAR or body_id in self._inactive_bodies:
                continue
            pos, _ = p.getBasePositionAndOrientation(body_id, physicsClientId=self.physicsClient)
            center = np.asarray(pos)
            body_overlap = np.linalg.norm(position - center) < self.agent_radius + self.nectar_radius
            beak_offset = beak_tip - center
            beak_dist = float(np.linalg.norm(beak_offset))
            if not body_overlap and beak_dist >= self.nectar_radius:
                continue
            if beak_dist <= self.nectar_radius:
                closest = beak_tip.copy()
            else:
                closest = center + beak_offset / beak_dist * self.nectar_radius
            contacts.append(Contact(body_id, TAG_NECTAR, closest))

        return contacts

    def draw_guide_line(self, start: np.ndarray, end: np.ndarray) -> None:
        """Draws (or moves) a green debug line in the GUI, e.g. beak tip to nearest flower."""
        if self.render_mode != "gui":
            return
        kwargs = {}
        if self._guide_line_id is not None:
            kwargs['replaceItemUniqueId'] = self._guide_line_id
        self._guide_line_id = p.addUserDebugLine(list(start), list(end), lineColorRGB=[0.1, 0.9, 0.1],
                                                 lineWidth=2.0, physicsClientId=self.physicsClient, **kwargs)

    def close(self) -> None:
        try:
            if self.physicsClient >= 0 and p.isConnected(self.physicsClient):
                p.disconnect(physicsClientId=self.physicsClient)
                self.physicsClient = -1
        except p.error as e:
            logger.warning("PyBullet disconnect error: %s", e)
