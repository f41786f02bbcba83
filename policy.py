"""
Policies that drive the foraging agent.

Every policy maps an 18-value observation to one action index in [0, 4]:

- RandomPolicy: uniform random actions
- GreedyPolicy: scripted seek-food / avoid-poison baseline
- KeyboardPolicy: arrow keys, for manual play
- NetworkPolicy: PyTorch MLP inference (argmax or sampled)
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np
import pygame
import torch
import torch.nn as nn
import torch.nn.functional as F

from utils import (
    OBS_DIM, NUM_ACTIONS, DIRECTIONS,
    ACTION_FORWARD, ACTION_BACK, ACTION_LEFT, ACTION_RIGHT, ACTION_NONE
)

# Observation slices
FOOD_DIRECTION = slice(12, 15)
POISON_DIRECTION = slice(15, 18)


class Policy(ABC):
    """Base class for all policies."""

    def reset(self) -> None:
        """Reset policy state (optional override)"""
        pass

    @abstractmethod
    def act(self, obs: np.ndarray) -> int:
        """Return an action index for the observation."""


class RandomPolicy(Policy):
    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    def act(self, obs: np.ndarray) -> int:
        return int(self.rng.integers(NUM_ACTIONS))


class GreedyPolicy(Policy):
    """
    Pick the move whose direction best follows the food direction while
    steering away from poison.

    Score per move: dot(move, dir_to_food) - poison_weight * dot(move, dir_to_poison).
    """

    def __init__(self, poison_weight: float = 0.5):
        self.poison_weight = poison_weight
        self.moves = [ACTION_FORWARD, ACTION_BACK, ACTION_LEFT, ACTION_RIGHT]

    def act(self, obs: np.ndarray) -> int:
        to_food = np.asarray(obs[FOOD_DIRECTION], dtype=np.float64)
        to_poison = np.asarray(obs[POISON_DIRECTION], dtype=np.float64)

        scores = []
        for move in self.moves:
            direction = np.array(DIRECTIONS[move])
            scores.append(direction @ to_food - self.poison_weight * (direction @ to_poison))
        return self.moves[int(np.argmax(scores))]


def action_from_keys(pressed) -> int:
    """
    Map pressed arrow keys to an action index.

    Defaults to ACTION_NONE. Keys are checked Up, Down, Left, Right and the last
    pressed one wins.

    Args:
        pressed: Indexable by pygame key codes, e.g. pygame.key.get_pressed()
    """
    action = ACTION_NONE
    if pressed[pygame.K_UP]:
        action = ACTION_FORWARD
    if pressed[pygame.K_DOWN]:
        action = ACTION_BACK
    if pressed[pygame.K_LEFT]:
        action = ACTION_LEFT
    if pressed[pygame.K_RIGHT]:
        action = ACTION_RIGHT
    return action


class KeyboardPolicy(Policy):
    """Manual override: reads the arrow keys of the PyGame window."""

    def act(self, obs: np.ndarray) -> int:
        pygame.event.pump()
        return action_from_keys(pygame.key.get_pressed())


class PolicyNetwork(nn.Module):
    """
    MLP mapping observations to action logits.

    Weights are never trained or loaded here: NetworkPolicy runs either a freshly
    initialized network or one handed in by the caller.
    """

    def __init__(self, obs_dim: int = OBS_DIM, action_dim: int = NUM_ACTIONS,
                 hidden_dims: List[int] = [128, 128]):
        super().__init__()

        layers = []
        prev_dim = obs_dim

        for hidden_dim in hidden_dims:
            layers.extend([
                nn.Linear(prev_dim, hidden_dim),
                nn.ReLU(),
                nn.LayerNorm(hidden_dim)
            ])
            prev_dim = hidden_dim

        layers.append(nn.Linear(prev_dim, action_dim))
        self.network = nn.Sequential(*layers)

    def forward(self, obs: torch.Tensor) -> torch.Tensor:
        return self.network(obs)


class NetworkPolicy(Policy):
    """Inference with a PyTorch network that outputs one logit per action."""

    def __init__(self, network: Optional[nn.Module] = None, device: str = "cpu",
                 deterministic: bool = True, seed: Optional[int] = None):
        self.device = device
        self.network = (network if network is not None else PolicyNetwork()).to(device)
        self.network.eval()
        self.deterministic = deterministic
        self.generator = torch.Generator(device=device)
        if seed is not None:
            self.generator.manual_seed(seed)

    def action_probabilities(self, obs: np.ndarray) -> np.ndarray:
        obs_tensor = torch.as_tensor(obs, dtype=torch.float32, device=self.device).unsqueeze(0)
        with torch.no_grad():
            logits = self.network(obs_tensor)
        return F.softmax(logits, dim=-1).squeeze(0).cpu().numpy()

    def act(self, obs: np.ndarray) -> int:
        obs_tensor = torch.as_tensor(obs, dtype=torch.float32, device=self.device).unsqueeze(0)

        with torch.no_grad():
            logits = self.network(obs_tensor)

        if self.deterministic:
            action = torch.argmax(logits, dim=-1)
        else:
            action_probs = F.softmax(logits, dim=-1)
            action = torch.multinomial(action_probs, 1, generator=self.generator).squeeze(-1)

        return int(action.item())
