import numpy as np

###########################################
# Global Constants & Parameters (Arena/General)
###########################################
# Diameter of the area where the agent and the flowers can be. Used to
# normalise the distance observation.
AREA_DIAMETER = 20.0
AREA_CENTER = np.zeros(3)

# Axis conventions: y is up, z is forward, x is right.
WORLD_UP = np.array([0.0, 1.0, 0.0])
WORLD_FORWARD = np.array([0.0, 0.0, 1.0])
WORLD_RIGHT = np.array([1.0, 0.0, 0.0])

# Fixed timestep stepping (50 physics steps per second)
FPS = 50
FIXED_DELTA_TIME = 1.0 / FPS

# Episode length in training mode. 0 means unlimited.
MAX_STEPS = 5000

###########################################
# Agent (hummingbird) Parameters
###########################################
MOVE_FORCE = 2.0                 # Force applied along the requested move direction
PITCH_SPEED = 100.0              # Degrees per second at full pitch input
YAW_SPEED = 100.0                # Degrees per second at full yaw input
MAX_PITCH_ANGLE = 80.0           # Pitch clamp, prevents flipping upside down
TURN_SMOOTHING_RATE = 2.0        # Max change of the smoothed pitch/yaw input per second
BEAK_TIP_OFFSET = 0.06           # Distance from the body centre to the beak tip, along forward
BEAK_TIP_RADIUS = 0.008          # Max distance beak tip -> nectar to accept a feeding contact
AGENT_BODY_RADIUS = 0.04
AGENT_MASS = 0.1
AGENT_LINEAR_DAMPING = 0.9

OBS_DIM = 10
ACTION_DIM = 5

###########################################
# Flower / Nectar Parameters
###########################################
FEED_AMOUNT = 0.01               # Nectar taken per fixed step while the beak is in the nectar
FULL_FLOWER_COLOR = (1.0, 0.0, 0.3)
EMPTY_FLOWER_COLOR = (0.5, 0.0, 1.0)
NECTAR_RADIUS = 0.02             # Radius of the nectar trigger volume
PETAL_RADIUS = 0.035             # Radius of the solid petal disc behind the nectar
PETAL_HALF_THICKNESS = 0.005
FLOWER_TILT_RANGE = 5.0          # Degrees, x and z rotation on reset
FLOWER_SPIN_RANGE = 180.0        # Degrees, y rotation on reset

# Default scene layout
NUM_FLOWER_PLANTS = 8
FLOWERS_PER_PLANT = 3
PLANT_RING_RADIUS_MIN = 3.0
PLANT_RING_RADIUS_MAX = 6.0

###########################################
# Spawn Placement
###########################################
SPAWN_MAX_ATTEMPTS = 100
SPAWN_PROBE_RADIUS = 0.05        # 10 cm diameter probe
SPAWN_FRONT_DISTANCE = (0.1, 0.2)
SPAWN_HEIGHT_RANGE = (1.2, 2.5)
SPAWN_RADIUS_RANGE = (2.0, 7.0)
SPAWN_PITCH_RANGE = (-60.0, 60.0)
SPAWN_YAW_RANGE = (-180.0, 180.0)

###########################################
# Boundary Geometry (physics adapter only)
###########################################
BOUNDARY_WALL_SEGMENTS = 24
BOUNDARY_WALL_HEIGHT = 6.0
BOUNDARY_WALL_THICKNESS = 0.2
CEILING_HEIGHT = 6.0

###########################################
# Contact Tags
###########################################
TAG_NECTAR = "nectar"
TAG_BOUNDARY = "boundary"
TAG_FLOWER = "flower"

###########################################
# Rewards
###########################################
# Each reward component has a base value and a default multiplier. Multipliers
# can be overridden at runtime (curriculum), base values stay fixed.
REWARD_CONFIG = {
    'r_nectar': {'default_value': 0.01, 'default_multiplier': 1.0},
    'r_nectar_alignment': {'default_value': 0.02, 'default_multiplier': 1.0},
    'r_boundary': {'default_value': -0.5, 'default_multiplier': 1.0},
}
REWARD_COMPONENT_KEYS = list(REWARD_CONFIG.keys())
