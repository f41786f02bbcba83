"""
Run script for the Food/Poison foraging environment.

Runs episodes with a chosen policy, prints rolling statistics and saves
per-episode logs as JSON.
"""

import os
import time
import argparse
import json
from collections import deque
from datetime import datetime
from typing import Optional

import numpy as np
import torch

from env_foraging import ForagingEnv
from policy import GreedyPolicy, KeyboardPolicy, NetworkPolicy, Policy, RandomPolicy
from utils import FOOD_REWARD, MAX_STEPS

POLICIES = ["random", "greedy", "network", "manual"]


class EpisodeLogger:
    """Logger for per-episode metrics."""

    def __init__(self, log_dir: str = "logs"):
        self.log_dir = log_dir
        os.makedirs(log_dir, exist_ok=True)

        # Episode metrics
        self.episode_rewards = []
        self.episode_lengths = []
        self.episode_food = []
        self.episode_poison = []
        self.episode_walls = []
        self.termination_reasons = []

        # Rolling averages
        self.reward_window = deque(maxlen=100)
        self.length_window = deque(maxlen=100)
        self.food_window = deque(maxlen=100)

    def log_episode(self, reward: float, length: int, food: int, poison: int,
                    walls: int, reason: Optional[str]):
        """Log episode metrics."""
        self.episode_rewards.append(reward)
        self.episode_lengths.append(length)
        self.episode_food.append(food)
        self.episode_poison.append(poison)
        self.episode_walls.append(walls)
        self.termination_reasons.append(reason)

        self.reward_window.append(reward)
        self.length_window.append(length)
        self.food_window.append(food)

    def save_logs(self, filename: str = None) -> str:
        """Save logs to a JSON file and return its path."""
        if filename is None:
            filename = f"episodes_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"

        logs = {
            'episode_rewards': [float(r) for r in self.episode_rewards],
            'episode_lengths': self.episode_lengths,
            'episode_food': self.episode_food,
            'episode_poison': self.episode_poison,
            'episode_walls': self.episode_walls,
            'termination_reasons': self.termination_reasons
        }

        filepath = os.path.join(self.log_dir, filename)
        with open(filepath, 'w') as f:
            json.dump(logs, f, indent=2)

        return filepath

    def print_stats(self, episode: int):
        """Print rolling statistics."""
        if not self.reward_window:
            return

        print(f"Episode {episode:4d} | "
              f"Reward: {self.episode_rewards[-1]:8.3f} | "
              f"Avg Reward: {np.mean(self.reward_window):8.3f} | "
              f"Avg Length: {np.mean(self.length_window):6.1f} | "
              f"Avg Food: {np.mean(self.food_window):4.2f} | "
              f"End: {self.termination_reasons[-1]}")


def make_policy(name: str, device: str = "cpu", seed: Optional[int] = None) -> Policy:
    """Build a policy by name."""
    if name == "random":
        return RandomPolicy(seed=seed)
    if name == "greedy":
        return GreedyPolicy()
    if name == "network":
        if seed is not None:
            torch.manual_seed(seed)
        return NetworkPolicy(device=device, deterministic=False, seed=seed)
    if name == "manual":
        return KeyboardPolicy()
    raise ValueError(f"Unknown policy {name!r}, expected one of {POLICIES}")


def run_episodes(
    episodes: int = 10,
    policy_name: str = "greedy",
    render: bool = False,
    log_dir: str = "logs",
    food_reward: float = FOOD_REWARD,
    max_steps: int = MAX_STEPS,
    seed: Optional[int] = None,
    device: str = "cpu",
    verbose: bool = False,
    delay: float = 0.0
) -> EpisodeLogger:
    """
    Run episodes with the given policy.

    Args:
        episodes: Number of episodes to run
        policy_name: One of "random", "greedy", "network", "manual"
        render: Open a PyGame window
        log_dir: Directory for the JSON logs
        food_reward: Bonus for touching food
        max_steps: Step limit per episode
        seed: Seed for the first reset and the policy
        device: Torch device for the network policy
        verbose: Print per-step and contact diagnostics
        delay: Seconds to sleep between steps when rendering

    Returns:
        The EpisodeLogger holding the collected metrics
    """
    if policy_name == "manual":
        render = True

    env = ForagingEnv(
        render_mode="human" if render else None,
        food_reward=food_reward,
        max_steps=max_steps,
        verbose=verbose
    )
    policy = make_policy(policy_name, device=device, seed=seed)
    logger = EpisodeLogger(log_dir)

    print("=" * 80)
    print(f"🤖 Policy: {policy_name}")
    print(f"Episodes: {episodes}")
    print(f"Food reward: {food_reward}  Step limit: {max_steps}")
    print("=" * 80)

    for episode in range(episodes):
        obs, info = env.reset(seed=seed if episode == 0 else None)
        policy.reset()

        while True:
            action = policy.act(obs)
            obs, reward, terminated, truncated, info = env.step(action)

            if render and delay > 0:
                time.sleep(delay)

            if terminated or truncated:
                break

        logger.log_episode(
            info['episode_reward'], info['step'], info['food_eaten'],
            info['poison_hits'], info['wall_hits'], info['termination_reason']
        )
        logger.print_stats(episode)

    log_path = logger.save_logs()
    print(f"💾 Logs saved: {log_path}")

    env.close()
    return logger


def main():
    """Main function with argument parsing."""
    parser = argparse.ArgumentParser(description="Run a policy in the Food/Poison foraging environment")
    parser.add_argument("--policy", choices=POLICIES, default="greedy", help="Policy to run")
    parser.add_argument("--episodes", type=int, default=10, help="Number of episodes")
    parser.add_argument("--render", action="store_true", help="Show the PyGame window")
    parser.add_argument("--log-dir", type=str, default="logs", help="Directory for episode logs")
    parser.add_argument("--food-reward", type=float, default=FOOD_REWARD, help="Bonus for touching food")
    parser.add_argument("--max-steps", type=int, default=MAX_STEPS, help="Step limit per episode")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--device", type=str, default="auto", help="Device: cpu, cuda, or auto")
    parser.add_argument("--delay", type=float, default=0.0, help="Seconds between rendered steps")
    parser.add_argument("--verbose", action="store_true", help="Print per-step diagnostics")

    args = parser.parse_args()

    # Determine device
    if args.device == "auto":
        device = "cuda" if torch.cuda.is_available() else "cpu"
    else:
        device = args.device

    run_episodes(
        episodes=args.episodes,
        policy_name=args.policy,
        render=args.render,
        log_dir=args.log_dir,
        food_reward=args.food_reward,
        max_steps=args.max_steps,
        seed=args.seed,
        device=device,
        verbose=args.verbose,
        delay=args.delay
    )


if __name__ == "__main__":
    main()
