"""
Food/Poison foraging environment using Gymnasium and PyGame.

An agent in a walled square arena has to reach food while staying away from
poison. Rewards are shaped from the change in distance to both, with a small
time penalty, contact bonuses/penalties and a step limit.
"""

from dataclasses import replace

import gymnasium as gym
from gymnasium import spaces
from gymnasium.error import ResetNeeded
import numpy as np
from typing import Any, Callable, Dict, Optional, Tuple

from agent_controller import FoodAgentController
from physics import Arena, EntityRef, RigidBody
from utils import (
    ARENA_HALF_SIZE, PHYSICS_DT, NUM_ACTIONS, OBS_DIM, TAG_FOOD, TAG_POISON,
    ACTION_FORWARD, ACTION_BACK, ACTION_LEFT, ACTION_RIGHT, ACTION_NONE,
    EpisodeConfig
)

# Import PyGame only when needed
try:
    import pygame
    PYGAME_AVAILABLE = True
except ImportError:
    PYGAME_AVAILABLE = False
    print("PyGame not available, running in headless mode")

WINDOW_SIZE = 500
PIXELS_PER_UNIT = WINDOW_SIZE / (2 * ARENA_HALF_SIZE)

COLOR_BACKGROUND = (30, 30, 40)
COLOR_WALL = (150, 150, 150)
COLOR_FOOD = (0, 200, 0)
COLOR_POISON = (220, 0, 0)
COLOR_AGENT = (40, 90, 255)


class ForagingEnv(gym.Env):
    """
    Single-agent food/poison foraging environment.

    Observation: 18 floats (see agent_controller.encode_observation).
    Actions: 0 forward (+Z), 1 back (-Z), 2 left (-X), 3 right (+X), 4 stay.
    Poison contact terminates the episode; exceeding the step limit truncates it.
    """

    metadata = {"render_modes": ["human", "rgb_array"], "render_fps": 50}

    def __init__(self, render_mode: Optional[str] = None, render_every: int = 1,
                 food_reward: Optional[float] = None, max_steps: Optional[int] = None,
                 dt: float = PHYSICS_DT, verbose: bool = False,
                 config: Optional[EpisodeConfig] = None,
                 on_episode_started: Optional[Callable[[int], None]] = None,
                 on_episode_ended: Optional[Callable[[float], None]] = None):
        super().__init__()

        if render_mode is not None and render_mode not in self.metadata["render_modes"]:
            raise ValueError(f"Unsupported render_mode {render_mode!r}, "
                             f"expected one of {self.metadata['render_modes']}")

        self.render_mode = render_mode
        self.render_every = render_every
        self.render_count = 0
        self.dt = dt
        self.verbose = verbose

        config = replace(config) if config is not None else EpisodeConfig()
        if food_reward is not None:
            config.food_reward = food_reward
        if max_steps is not None:
            config.max_steps = max_steps
        self.config = config

        self.screen = None
        self.clock = None
        self.font = None

        # Initialize PyGame
        if self.render_mode == "human" and PYGAME_AVAILABLE:
            try:
                pygame.init()
                self.screen = pygame.display.set_mode((WINDOW_SIZE, WINDOW_SIZE))
                pygame.display.set_caption("Food/Poison Foraging Environment")
                self.clock = pygame.time.Clock()
                self.font = pygame.font.Font(None, 24)
            except pygame.error as e:
                print(f"PyGame display initialization failed: {e}")
                print("Running in headless mode...")
                self.render_mode = None
        elif self.render_mode is not None and not PYGAME_AVAILABLE:
            print("PyGame not available, running in headless mode...")
            self.render_mode = None

        # Action and observation spaces
        self.action_space = spaces.Discrete(NUM_ACTIONS)
        self.observation_space = spaces.Box(
            low=-np.inf, high=np.inf, shape=(OBS_DIM,), dtype=np.float32
        )

        # World
        self.body = RigidBody()
        self.arena = Arena(food=EntityRef(TAG_FOOD), poison=EntityRef(TAG_POISON))
        self.controller = FoodAgentController(
            self.body,
            arena=self.arena,
            config=self.config,
            verbose=verbose,
            on_episode_started=self._on_episode_started,
            on_episode_ended=self._on_episode_ended
        )

        # Episode tracking
        self.episode_rewards = []
        self.last_action = ACTION_NONE
        self.on_episode_started = on_episode_started
        self.on_episode_ended = on_episode_ended

    def _on_episode_started(self):
        if self.on_episode_started is not None:
            self.on_episode_started(self.controller.episode_count)

    def _on_episode_ended(self, total_reward: float):
        self.episode_rewards.append(total_reward)
        if self.on_episode_ended is not None:
            self.on_episode_ended(total_reward)

    def reset(self, seed: Optional[int] = None, options: Optional[Dict[str, Any]] = None) -> Tuple[np.ndarray, Dict[str, Any]]:
        """
        Reset the environment.

        options may hold 'food_position' and/or 'poison_position' to place
        the entities instead of the random spawn.
        """
        super().reset(seed=seed)
        self.controller.rng = self.np_random

        self.controller.reset()

        options = options or {}
        if 'food_position' in options or 'poison_position' in options:
            self.controller.place_entities(
                food_position=options.get('food_position'),
                poison_position=options.get('poison_position')
            )

        self.last_action = ACTION_NONE
        obs = self.controller.collect_observations()

        if self.render_mode == "human":
            self.render()

        return obs, self._get_info()

    def step(self, action: int) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        """Execute one tick in the environment."""
        if not self.controller.active:
            raise ResetNeeded("Cannot call step() before reset()")
        if self.controller.episode_done:
            raise ResetNeeded("Episode has ended; call reset() before step()")

        self.last_action = action
        self.controller.on_action_received(action)
        self.arena.simulate(self.body, self.dt, self.controller.notify_contact)
        result = self.controller.finish_tick()

        obs = self.controller.collect_observations()
        info = self._get_info()
        info['food_reward'] = result.food_reward
        info['poison_reward'] = result.poison_reward

        if self.render_mode == "human":
            self.render()

        return obs, float(result.reward), result.terminated, result.truncated, info

    def _get_info(self) -> Dict[str, Any]:
        state = self.controller.state
        return {
            'step': state.step_count,
            'episode': self.controller.episode_count,
            'episode_reward': state.episode_reward,
            'food_eaten': state.food_eaten,
            'poison_hits': state.poison_hits,
            'wall_hits': state.wall_hits,
            'termination_reason': self.controller.termination_reason
        }

    def _to_screen(self, position) -> Tuple[int, int]:
        """Top-down projection: X to the right, Z up."""
        x = (position[0] + ARENA_HALF_SIZE) * PIXELS_PER_UNIT
        y = (ARENA_HALF_SIZE - position[2]) * PIXELS_PER_UNIT
        return int(x), int(y)

    def _draw(self, surface):
        surface.fill(COLOR_BACKGROUND)
        pygame.draw.rect(surface, COLOR_WALL, pygame.Rect(0, 0, WINDOW_SIZE, WINDOW_SIZE), 4)

        food = self.controller.food
        poison = self.controller.poison
        if food is not None:
            pygame.draw.circle(surface, COLOR_FOOD, self._to_screen(food.position),
                               int(food.radius * PIXELS_PER_UNIT))
        if poison is not None:
            pygame.draw.circle(surface, COLOR_POISON, self._to_screen(poison.position),
                               int(poison.radius * PIXELS_PER_UNIT))
        pygame.draw.circle(surface, COLOR_AGENT, self._to_screen(self.body.position),
                           int(self.body.radius * PIXELS_PER_UNIT))

    def render(self):
        """Render the environment."""
        if self.render_mode is None or not PYGAME_AVAILABLE:
            return None

        if self.render_mode == "rgb_array":
            surface = pygame.Surface((WINDOW_SIZE, WINDOW_SIZE))
            self._draw(surface)
            return np.transpose(pygame.surfarray.array3d(surface), axes=(1, 0, 2))

        self.render_count += 1
        if self.render_count % self.render_every != 0:
            return None

        self._handle_input()
        if self.screen is None:
            return None

        self._draw(self.screen)

        state = self.controller.state
        hud = [
            f"Episode: {self.controller.episode_count}  Step: {state.step_count}",
            f"Reward: {state.episode_reward:.3f}",
            f"Food: {state.food_eaten}  Poison: {state.poison_hits}  Walls: {state.wall_hits}",
            f"Action: {self.get_action_meanings().get(self.last_action, 'Unknown')}",
        ]
        for i, line in enumerate(hud):
            text = self.font.render(line, True, (255, 255, 255))
            self.screen.blit(text, (10, 10 + i * 20))

        pygame.display.flip()
        self.clock.tick(self.metadata["render_fps"])
        return None

    def _handle_input(self):
        """Keep the window responsive; closing it stops rendering."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.close()
                self.render_mode = None
                return

    def close(self):
        """Close the environment."""
        if self.screen is not None:
            pygame.quit()
            self.screen = None

    def get_action_meanings(self) -> Dict[int, str]:
        """Get human-readable action meanings."""
        return {
            ACTION_FORWARD: "Forward",
            ACTION_BACK: "Back",
            ACTION_LEFT: "Left",
            ACTION_RIGHT: "Right",
            ACTION_NONE: "Stay"
        }
