"""
Headless physics for the foraging arena.

RigidBody is the physics port the agent controller talks to (position, velocity,
impulses, speed clamping). Arena owns the food and poison entities, integrates
the agent's motion and reports trigger-style contacts: one notification when an
overlap with food, poison or a wall begins.
"""

from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from utils import (
    AGENT_RADIUS, ENTITY_RADIUS, ARENA_HALF_SIZE, AGENT_SPAWN, SPAWN_HEIGHT,
    TAG_WALL, calculate_distance, clamp_magnitude
)


class EntityRef:
    """A named, tagged object in the arena (food or poison)."""

    def __init__(self, name: str, position=(0.0, SPAWN_HEIGHT, 0.0), radius: float = ENTITY_RADIUS):
        self.name = name
        self.tag = name
        self.position = np.array(position, dtype=np.float64)
        self.radius = radius

    def __repr__(self):
        return f"EntityRef({self.name!r}, position={self.position.tolist()})"


class RigidBody:
    """Kinematic body with velocity-change impulses."""

    def __init__(self, position=AGENT_SPAWN, radius: float = AGENT_RADIUS):
        self.position = np.array(position, dtype=np.float64)
        self.velocity = np.zeros(3, dtype=np.float64)
        self.angular_velocity = np.zeros(3, dtype=np.float64)
        self.radius = radius

    def get_position(self) -> np.ndarray:
        return self.position.copy()

    def set_position(self, position):
        self.position = np.array(position, dtype=np.float64)

    def get_velocity(self) -> np.ndarray:
        return self.velocity.copy()

    def set_velocity(self, velocity):
        self.velocity = np.array(velocity, dtype=np.float64)

    def set_angular_velocity(self, angular_velocity):
        self.angular_velocity = np.array(angular_velocity, dtype=np.float64)

    def apply_impulse(self, direction, magnitude: float):
        """Apply an instantaneous velocity change of direction * magnitude."""
        self.velocity = self.velocity + np.asarray(direction, dtype=np.float64) * magnitude

    def clamp_speed(self, max_speed: float):
        self.velocity = clamp_magnitude(self.velocity, max_speed)


class Arena:
    """
    Square arena with walls at +/- half_size on X and Z.

    Contacts are reported through the listener passed to simulate(). An
    overlap only notifies once: the body has to leave an entity before it can
    notify again. An entity that moved since the overlap was recorded (it was
    relocated) counts as a new overlap.
    """

    def __init__(self, half_size: float = ARENA_HALF_SIZE, food: Optional[EntityRef] = None,
                 poison: Optional[EntityRef] = None):
        self.half_size = half_size
        self.entities: Dict[str, EntityRef] = {}
        for entity in (food, poison):
            if entity is not None:
                self.add_entity(entity)
        # name -> entity position when the overlap began
        self._overlaps: Dict[str, Optional[Tuple[float, ...]]] = {}

    def add_entity(self, entity: EntityRef):
        self.entities[entity.name] = entity

    def remove_entity(self, name: str):
        self.entities.pop(name, None)
        self._overlaps.pop(name, None)

    def find(self, name: str) -> Optional[EntityRef]:
        """Look up an entity by name, None when it is not in the arena."""
        return self.entities.get(name)

    def clear_contacts(self):
        self._overlaps.clear()

    def _keep_inside(self, body: RigidBody) -> bool:
        limit = self.half_size - body.radius
        touching = False
        for axis in (0, 2):
            if body.position[axis] <= -limit:
                body.position[axis] = -limit
                touching = True
            elif body.position[axis] >= limit:
                body.position[axis] = limit
                touching = True
        return touching

    def simulate(self, body: RigidBody, dt: float,
                 on_contact: Optional[Callable[[str], None]] = None) -> List[str]:
        """
        Integrate the body for dt seconds and report contacts that began.

        Args:
            body: Agent rigid body
            dt: Time step in seconds
            on_contact: Called with the tag of every new contact, in detection order

        Returns:
            List of tags that began overlapping this step
        """
        body.position = body.position + body.velocity * dt

        overlaps = {}
        if self._keep_inside(body):
            overlaps[TAG_WALL] = None
        for name, entity in self.entities.items():
            if calculate_distance(body.position, entity.position) < body.radius + entity.radius:
                overlaps[name] = tuple(entity.position)

        began = []
        for name, snapshot in overlaps.items():
            if name not in self._overlaps or self._overlaps[name] != snapshot:
                began.append(self.entities[name].tag if name in self.entities else name)

        self._overlaps = overlaps
        if on_contact is not None:
            for tag in began:
                on_contact(tag)
        return began
