"""
Decision loop of the food/poison foraging agent.

FoodAgentController owns the episode state machine and the reward shaping.
It never stores the agent's position or velocity itself: everything goes
through the physics port (RigidBody). The host drives one tick as

    controller.on_action_received(action)      # decode + impulse + speed clamp
    arena.simulate(body, dt, controller.notify_contact)
    result = controller.finish_tick()           # shaping, contacts, step limit
    obs = controller.collect_observations()

Contacts reported during the tick are queued and drained by finish_tick()
after the distance shaping, in the order they were reported.
"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from physics import Arena, EntityRef, RigidBody
from utils import (
    AGENT_SPAWN, POSITION_SCALE, VELOCITY_SCALE,
    FOOD_SHAPING_SCALE, FOOD_SHAPING_MIN, FOOD_SHAPING_MAX,
    POISON_SHAPING_SCALE, POISON_SHAPING_MIN, POISON_SHAPING_MAX,
    TAG_FOOD, TAG_POISON, TAG_WALL, EpisodeConfig,
    calculate_distance, clamp, get_direction_from_action, normalize_vector, random_position
)


@dataclass
class AgentState:
    """Per-episode bookkeeping. Position and velocity live on the physics body."""
    step_count: int = 0
    episode_reward: float = 0.0
    food_eaten: int = 0
    poison_hits: int = 0
    wall_hits: int = 0


@dataclass
class DistanceMemory:
    """Distances measured at the end of the previous tick."""
    previous_food_distance: float = 0.0
    previous_poison_distance: float = 0.0


@dataclass
class ContactEvent:
    tag: str
    tick: int


@dataclass
class TickResult:
    """Outcome of one finished tick."""
    reward: float
    terminated: bool = False
    truncated: bool = False
    food_reward: float = 0.0
    poison_reward: float = 0.0

    @property
    def done(self) -> bool:
        return self.terminated or self.truncated


def decode_action(action) -> np.ndarray:
    """Map a discrete action to a movement direction (unknown actions -> zero)."""
    return get_direction_from_action(action)


def encode_observation(agent_position, agent_velocity, food_position, poison_position) -> np.ndarray:
    """
    Build the 18-value observation vector.

    Layout: agent position / 4, food position / 4, poison position / 4,
    velocity / 5, unit vector to food, unit vector to poison.
    """
    agent_position = np.asarray(agent_position, dtype=np.float64)
    food_position = np.asarray(food_position, dtype=np.float64)
    poison_position = np.asarray(poison_position, dtype=np.float64)

    obs = np.concatenate([
        agent_position / POSITION_SCALE,
        food_position / POSITION_SCALE,
        poison_position / POSITION_SCALE,
        np.asarray(agent_velocity, dtype=np.float64) / VELOCITY_SCALE,
        normalize_vector(food_position - agent_position),
        normalize_vector(poison_position - agent_position),
    ]).astype(np.float32)
    return obs


def shape_food_reward(previous_distance: float, current_distance: float) -> float:
    """Reward for closing in on food; positive when the agent got closer."""
    delta = previous_distance - current_distance
    return clamp(delta * FOOD_SHAPING_SCALE, FOOD_SHAPING_MIN, FOOD_SHAPING_MAX)


def shape_poison_reward(previous_distance: float, current_distance: float) -> float:
    """Reward for backing off from poison; positive when the agent moved away."""
    delta = current_distance - previous_distance
    return clamp(delta * POISON_SHAPING_SCALE, POISON_SHAPING_MIN, POISON_SHAPING_MAX)


class RewardShaper:
    """Distance-delta shaping with a one-tick memory and a flat time penalty."""

    def __init__(self, time_penalty: float):
        self.time_penalty = time_penalty
        self.memory = DistanceMemory()

    def remember(self, food_distance: float, poison_distance: float):
        self.memory.previous_food_distance = food_distance
        self.memory.previous_poison_distance = poison_distance

    def shape(self, food_distance: float, poison_distance: float) -> TickResult:
        """Score the tick against the remembered distances, then remember the new ones."""
        food_reward = shape_food_reward(self.memory.previous_food_distance, food_distance)
        poison_reward = shape_poison_reward(self.memory.previous_poison_distance, poison_distance)
        self.remember(food_distance, poison_distance)
        return TickResult(
            reward=food_reward + poison_reward + self.time_penalty,
            food_reward=food_reward,
            poison_reward=poison_reward
        )


class FoodAgentController:
    """
    Episode manager, observation encoder, action decoder, reward shaper and
    contact handler for one agent.

    Missing food or poison references leave the controller inert: every
    per-tick method is a no-op until reset() succeeds with both references.
    """

    def __init__(
        self,
        body: RigidBody,
        arena: Optional[Arena] = None,
        food: Optional[EntityRef] = None,
        poison: Optional[EntityRef] = None,
        config: Optional[EpisodeConfig] = None,
        rng: Optional[np.random.Generator] = None,
        verbose: bool = False,
        on_episode_started: Optional[Callable[[], None]] = None,
        on_episode_ended: Optional[Callable[[float], None]] = None
    ):
        self.body = body
        self.config = config or EpisodeConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.verbose = verbose
        self.on_episode_started = on_episode_started
        self.on_episode_ended = on_episode_ended

        self.arena = arena

        # Fall back to the arena's entities when no explicit reference is given
        if arena is not None:
            food = food if food is not None else arena.find(TAG_FOOD)
            poison = poison if poison is not None else arena.find(TAG_POISON)
        self.food = food
        self.poison = poison

        self.state = AgentState()
        self.reward_shaper = RewardShaper(self.config.time_penalty)
        self.contacts = deque()

        self.episode_count = 0
        self.episode_done = False
        self.termination_reason = None
        self.active = False  # True once a reset succeeded

        if not self.has_entities:
            print("ERROR: Missing food or poison references!")

    # ------------------------------------------------------------------
    # Episode manager
    # ------------------------------------------------------------------

    @property
    def has_entities(self) -> bool:
        return self.food is not None and self.poison is not None

    @property
    def accepting_ticks(self) -> bool:
        return self.active and self.has_entities and not self.episode_done

    def set_entities(self, food: Optional[EntityRef], poison: Optional[EntityRef]):
        """Swap the food/poison references; new entities take effect on the next reset()."""
        self.food = food
        self.poison = poison

    def reset(self) -> bool:
        """
        Start a new episode.

        Returns:
            True when the episode started, False when the controller is inert
        """
        if not self.has_entities:
            print("ERROR: Missing food or poison references! Agent stays inert until a valid reset.")
            self.active = False
            return False

        self.body.set_velocity(np.zeros(3))
        self.body.set_angular_velocity(np.zeros(3))
        self.body.set_position(AGENT_SPAWN)

        self.food.position = self._random_position()
        self.poison.position = self._random_position()

        self.reward_shaper.remember(*self._distances())

        self.state = AgentState()
        self.contacts.clear()
        if self.arena is not None:
            self.arena.clear_contacts()
        self.episode_done = False
        self.termination_reason = None
        self.active = True
        self.episode_count += 1

        if self.verbose:
            print("Episode Started: Agent reset, food and poison repositioned.")
        if self.on_episode_started is not None:
            self.on_episode_started()
        return True

    def place_entities(self, food_position=None, poison_position=None):
        """Move food and/or poison to fixed positions and re-measure the distances."""
        if not self.active or not self.has_entities:
            return
        if food_position is not None:
            self.food.position = np.array(food_position, dtype=np.float64)
        if poison_position is not None:
            self.poison.position = np.array(poison_position, dtype=np.float64)
        self.reward_shaper.remember(*self._distances())

    def _on_tick(self) -> Tuple[bool, float]:
        """
        Advance the step count.

        Returns:
            (exceeded, penalty): whether the step limit was exceeded this tick
            and the penalty added for it
        """
        self.state.step_count += 1
        if self.state.step_count > self.config.max_steps:
            self.state.episode_reward += self.config.step_limit_penalty
            return True, self.config.step_limit_penalty
        return False, 0.0

    def _end_episode(self, reason: str):
        self.episode_done = True
        self.termination_reason = reason
        if self.verbose:
            print(f"Episode ended due to {reason}. Total reward: {self.state.episode_reward}")
        if self.on_episode_ended is not None:
            self.on_episode_ended(self.state.episode_reward)

    def _random_position(self) -> np.ndarray:
        return random_position(self.rng, self.config.spawn_range, self.config.spawn_height)

    def _distances(self):
        position = self.body.get_position()
        return (
            calculate_distance(position, self.food.position),
            calculate_distance(position, self.poison.position)
        )

    # ------------------------------------------------------------------
    # Observation encoder
    # ------------------------------------------------------------------

    def collect_observations(self) -> Optional[np.ndarray]:
        """Observation for the policy, or None while the controller is inert."""
        if not self.active or not self.has_entities:
            return None
        return encode_observation(
            self.body.get_position(),
            self.body.get_velocity(),
            self.food.position,
            self.poison.position
        )

    # ------------------------------------------------------------------
    # Action decoder
    # ------------------------------------------------------------------

    def on_action_received(self, action) -> bool:
        """
        Push the body in the direction of the action and cap its speed.

        Returns:
            False when the action was ignored (inert or finished episode)
        """
        if not self.accepting_ticks:
            return False

        direction = decode_action(action)
        self.body.apply_impulse(direction, self.config.force_magnitude)
        self.body.clamp_speed(self.config.max_speed)
        return True

    # ------------------------------------------------------------------
    # Reward shaper + contact handler
    # ------------------------------------------------------------------

    def notify_contact(self, tag: str):
        """Queue a contact reported by the physics collaborator."""
        if not self.accepting_ticks:
            return
        self.contacts.append(ContactEvent(tag=tag, tick=self.state.step_count))

    def finish_tick(self) -> Optional[TickResult]:
        """
        Score the tick once physics has settled.

        Returns:
            TickResult, or None when the tick was ignored
        """
        if not self.accepting_ticks:
            return None

        result = self.reward_shaper.shape(*self._distances())
        self.state.episode_reward += result.reward

        while self.contacts:
            result.reward += self._handle_contact(self.contacts.popleft())
            if self.termination_reason == TAG_POISON:
                result.terminated = True

        if not result.terminated:
            exceeded, penalty = self._on_tick()
            if exceeded:
                result.reward += penalty
                result.truncated = True
                self.termination_reason = "step limit"
        else:
            self.state.step_count += 1

        if self.verbose:
            print(f"Step {self.state.step_count}: Reward this step: {result.reward:.4f}, "
                  f"Total reward: {self.state.episode_reward:.4f}")

        if result.done:
            self._end_episode(self.termination_reason)
        return result

    def _handle_contact(self, event: ContactEvent) -> float:
        """Apply one contact; returns the reward it added."""
        if event.tag == TAG_FOOD:
            reward = self.config.food_reward
            self.state.food_eaten += 1
            self.food.position = self._random_position()
            self.reward_shaper.memory.previous_food_distance = calculate_distance(
                self.body.get_position(), self.food.position)
            message = "Food eaten!"
        elif event.tag == TAG_POISON:
            reward = self.config.poison_penalty
            self.state.poison_hits += 1
            self.poison.position = self._random_position()
            self.reward_shaper.memory.previous_poison_distance = calculate_distance(
                self.body.get_position(), self.poison.position)
            self.termination_reason = TAG_POISON
            message = "Poison hit!"
        elif event.tag == TAG_WALL:
            reward = self.config.wall_penalty
            self.state.wall_hits += 1
            self.body.set_velocity(self.body.get_velocity() * self.config.wall_bounce)
            message = "Wall hit!"
        else:
            if self.verbose:
                print(f"Ignoring contact with unknown tag {event.tag!r}")
            return 0.0

        self.state.episode_reward += reward
        if self.verbose:
            print(f"{message} Total reward: {self.state.episode_reward}")
        return reward
