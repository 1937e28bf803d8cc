import math
import numpy as np
from scipy.spatial.transform import Rotation

from Forage3d.constants import WORLD_FORWARD, WORLD_UP, WORLD_RIGHT


def distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))

def normalized_distance(a: float, d_max: float) -> float:
    if d_max <= 0:
        return 0.0
    return float(a / d_max)

def normalize_vector(v: np.ndarray) -> np.ndarray:
    v = np.asarray(v, dtype=float)
    n = np.linalg.norm(v)
    if n < 1e-8:
        return np.zeros_like(v)
    return v / n

def clamp01(x: float) -> float:
    return float(min(max(x, 0.0), 1.0))

def wrap_angle(angle_deg: float) -> float:
    """Wraps an angle in degrees into (-180, 180]."""
    return -(((-angle_deg + 180.0) % 360.0) - 180.0)

def move_towards(current: float, target: float, max_delta: float) -> float:
    """Moves `current` toward `target` by at most `max_delta`, never overshooting."""
    if abs(target - current) <= max_delta:
        return float(target)
    return float(current + math.copysign(max_delta, target - current))


def euler_rotation(pitch: float, yaw: float, roll: float = 0.0) -> Rotation:
    """
    Builds an orientation from pitch (about x), yaw (about y) and roll (about z), in degrees.

    Yaw is applied first, then pitch in the yawed frame, then roll. With this
    convention a positive pitch tips the forward axis (+z) downward and a
    positive yaw turns it toward +x.
    """
    return Rotation.from_euler('YXZ', [yaw, pitch, roll], degrees=True)

def forward_from_euler(pitch: float, yaw: float) -> np.ndarray:
    return euler_rotation(pitch, yaw).apply(WORLD_FORWARD)

def look_rotation(direction: np.ndarray):
    """
    Returns the (pitch, yaw) in degrees whose forward axis points along `direction`.

    World up is the secondary axis, so the resulting orientation never rolls.
    """
    d = normalize_vector(direction)
    horizontal = math.hypot(d[0], d[2])
    yaw = math.degrees(math.atan2(d[0], d[2]))
    pitch = math.degrees(math.atan2(-d[1], horizontal))
    return pitch, yaw

def rotate_about_y(v: np.ndarray, angle_deg: float) -> np.ndarray:
    return Rotation.from_euler('y', angle_deg, degrees=True).apply(v)


def basis_vectors(rotation: Rotation):
    """Returns the (right, up, forward) axes of an orientation in world space."""
    return rotation.apply(WORLD_RIGHT), rotation.apply(WORLD_UP), rotation.apply(WORLD_FORWARD)
