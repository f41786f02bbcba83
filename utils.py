"""
Utility functions and constants for the Food/Poison foraging environment.
"""

import math
from dataclasses import dataclass

import numpy as np

# Episode constants
MAX_STEPS = 300            # Episode ends once the step count exceeds this
STEP_LIMIT_PENALTY = -0.5  # Applied when the step limit is exceeded
TIME_PENALTY = -0.002      # Applied every tick

# Contact rewards
FOOD_REWARD = 10.0     # Bonus for touching food
POISON_PENALTY = -3.0  # Penalty for touching poison (ends the episode)
WALL_PENALTY = -0.5    # Penalty for touching a wall
WALL_BOUNCE = -0.5     # Velocity multiplier applied on wall contact

# Shaping constants: reward = clamp(delta * scale, low, high)
FOOD_SHAPING_SCALE = 0.3
FOOD_SHAPING_MIN = -0.03
FOOD_SHAPING_MAX = 0.3
POISON_SHAPING_SCALE = 0.15
POISON_SHAPING_MIN = -0.03
POISON_SHAPING_MAX = 0.15

# World constants
SPAWN_RANGE = 4.0        # Food/poison spawn in [-4, 4] on X and Z
SPAWN_HEIGHT = 1.0       # Everything lives at Y = 1
AGENT_SPAWN = (0.0, SPAWN_HEIGHT, 0.0)
ARENA_HALF_SIZE = 5.0    # Walls sit at +/- 5 on X and Z
AGENT_RADIUS = 0.5
ENTITY_RADIUS = 0.5
PHYSICS_DT = 0.02        # Seconds integrated per tick

# Motion constants
FORCE_MAGNITUDE = 5.0
MAX_SPEED = 5.0

# Contact tags
TAG_FOOD = "Food"
TAG_POISON = "Poison"
TAG_WALL = "Wall"

# Action space
ACTION_FORWARD = 0
ACTION_BACK = 1
ACTION_LEFT = 2
ACTION_RIGHT = 3
ACTION_NONE = 4
NUM_ACTIONS = 5

# Observation space: agent pos, food pos, poison pos, velocity, dir to food, dir to poison
OBS_DIM = 18
POSITION_SCALE = SPAWN_RANGE
VELOCITY_SCALE = MAX_SPEED

DIRECTIONS = {
    ACTION_FORWARD: (0.0, 0.0, 1.0),
    ACTION_BACK: (0.0, 0.0, -1.0),
    ACTION_LEFT: (-1.0, 0.0, 0.0),
    ACTION_RIGHT: (1.0, 0.0, 0.0),
    ACTION_NONE: (0.0, 0.0, 0.0),
}


@dataclass
class EpisodeConfig:
    """Numeric policy constants for one foraging agent."""
    max_steps: int = MAX_STEPS
    food_reward: float = FOOD_REWARD
    poison_penalty: float = POISON_PENALTY
    wall_penalty: float = WALL_PENALTY
    wall_bounce: float = WALL_BOUNCE
    time_penalty: float = TIME_PENALTY
    step_limit_penalty: float = STEP_LIMIT_PENALTY
    spawn_range: float = SPAWN_RANGE
    spawn_height: float = SPAWN_HEIGHT
    force_magnitude: float = FORCE_MAGNITUDE
    max_speed: float = MAX_SPEED


def clamp(value, min_val, max_val):
    """
    Clamp value between min and max.

    Args:
        value: Value to clamp
        min_val: Minimum value
        max_val: Maximum value

    Returns:
        Clamped value
    """
    return max(min_val, min(value, max_val))


def calculate_distance(pos1, pos2):
    """
    Calculate Euclidean distance between two 3D positions.

    Args:
        pos1: First position (x, y, z)
        pos2: Second position (x, y, z)

    Returns:
        Distance value
    """
    return math.sqrt((pos1[0] - pos2[0])**2 + (pos1[1] - pos2[1])**2 + (pos1[2] - pos2[2])**2)


def normalize_vector(vec):
    """
    Return the unit vector of vec, or the zero vector when vec is (nearly) zero.

    Args:
        vec: 3D vector

    Returns:
        Unit vector as a float64 array
    """
    vec = np.asarray(vec, dtype=np.float64)
    norm = np.linalg.norm(vec)
    if norm < 1e-5:
        return np.zeros(3, dtype=np.float64)
    return vec / norm


def clamp_magnitude(vec, max_length):
    """Scale vec down so its length does not exceed max_length."""
    vec = np.asarray(vec, dtype=np.float64)
    length = np.linalg.norm(vec)
    if length > max_length:
        return vec * (max_length / length)
    return vec


def random_position(rng, spawn_range=SPAWN_RANGE, height=SPAWN_HEIGHT):
    """
    Draw a uniformly random point in the spawn square at a fixed height.

    Args:
        rng: numpy Generator
        spawn_range: Half-width of the square on X and Z
        height: Fixed Y coordinate

    Returns:
        Position as a float64 array (x, height, z)
    """
    x = rng.uniform(-spawn_range, spawn_range)
    z = rng.uniform(-spawn_range, spawn_range)
    return np.array([x, height, z], dtype=np.float64)


def get_direction_from_action(action):
    """
    Convert an action index to a unit movement direction.

    Anything that is not one of the five action indices maps to the zero vector.
    """
    try:
        index = int(action)
    except (TypeError, ValueError):
        return np.zeros(3, dtype=np.float64)
    if index != action:
        return np.zeros(3, dtype=np.float64)
    return np.array(DIRECTIONS.get(index, DIRECTIONS[ACTION_NONE]), dtype=np.float64)
