"""
Tests for the Gymnasium wrapper around the agent controller.
"""

import numpy as np
import pytest
from gymnasium.error import ResetNeeded
from gymnasium.utils.env_checker import check_env

from env_foraging import ForagingEnv
from policy import GreedyPolicy
from utils import ACTION_NONE, FOOD_REWARD, NUM_ACTIONS, OBS_DIM, POISON_PENALTY, TIME_PENALTY

FAR = {'food_position': (3.0, 1.0, 3.0), 'poison_position': (-3.0, 1.0, -3.0)}


@pytest.fixture
def env():
    env = ForagingEnv()
    yield env
    env.close()


def test_passes_gymnasium_env_checker():
    check_env(ForagingEnv(), skip_render_check=True)


def test_spaces(env):
    assert env.action_space.n == NUM_ACTIONS
    assert env.observation_space.shape == (OBS_DIM,)


def test_reset_returns_observation_and_info(env):
    obs, info = env.reset(seed=0)

    assert env.observation_space.contains(obs)
    assert info['step'] == 0
    assert info['episode_reward'] == 0.0
    assert info['episode'] == 1
    np.testing.assert_allclose(obs[0:3], [0.0, 0.25, 0.0])


def test_seeded_resets_are_reproducible(env):
    first, _ = env.reset(seed=123)
    second, _ = env.reset(seed=123)
    third, _ = env.reset(seed=124)

    np.testing.assert_array_equal(first, second)
    assert not np.array_equal(first, third)


def test_step_before_reset_raises(env):
    with pytest.raises(ResetNeeded):
        env.step(ACTION_NONE)


def test_step_after_termination_raises(env):
    env.reset(seed=0, options={'food_position': (3.0, 1.0, 3.0), 'poison_position': (0.5, 1.0, 0.0)})

    obs, reward, terminated, truncated, info = env.step(ACTION_NONE)

    assert terminated and not truncated
    assert reward == pytest.approx(TIME_PENALTY + POISON_PENALTY)
    assert info['termination_reason'] == "Poison"
    assert env.episode_rewards == [pytest.approx(TIME_PENALTY + POISON_PENALTY)]
    with pytest.raises(ResetNeeded):
        env.step(ACTION_NONE)


def test_step_limit_truncates():
    env = ForagingEnv(max_steps=5)
    env.reset(seed=0, options=FAR)

    for _ in range(5):
        _, _, terminated, truncated, _ = env.step(ACTION_NONE)
        assert not (terminated or truncated)

    _, reward, terminated, truncated, info = env.step(ACTION_NONE)
    assert truncated and not terminated
    assert reward == pytest.approx(TIME_PENALTY - 0.5)
    assert info['step'] == 6


def test_food_reward_override():
    env = ForagingEnv(food_reward=3.0)
    env.reset(seed=0, options={'food_position': (0.5, 1.0, 0.0), 'poison_position': (-3.0, 1.0, -3.0)})

    _, reward, terminated, _, info = env.step(ACTION_NONE)

    assert reward == pytest.approx(3.0 + TIME_PENALTY)
    assert not terminated
    assert info['food_eaten'] == 1


def test_malformed_action_does_not_move_agent(env):
    env.reset(seed=0, options=FAR)
    obs, _, _, _, _ = env.step(17)
    np.testing.assert_allclose(obs[0:3], [0.0, 0.25, 0.0])
    np.testing.assert_allclose(obs[9:12], [0.0, 0.0, 0.0])


def test_greedy_policy_collects_food(env):
    obs, _ = env.reset(seed=0, options={'food_position': (2.0, 1.0, 2.0), 'poison_position': (-3.0, 1.0, -3.0)})
    policy = GreedyPolicy()

    total = 0.0
    for _ in range(100):
        obs, reward, terminated, truncated, info = env.step(policy.act(obs))
        total += reward
        if info['food_eaten']:
            break

    assert info['food_eaten'] == 1
    assert info['poison_hits'] == 0
    assert total > FOOD_REWARD
    assert info['episode_reward'] == pytest.approx(total)


def test_invalid_render_mode_raises():
    with pytest.raises(ValueError):
        ForagingEnv(render_mode="ascii")


def test_action_meanings(env):
    meanings = env.get_action_meanings()
    assert sorted(meanings) == list(range(NUM_ACTIONS))


def test_episode_boundary_hooks():
    started, ended = [], []
    env = ForagingEnv(max_steps=2, on_episode_started=started.append, on_episode_ended=ended.append)

    env.reset(seed=0, options=FAR)
    for _ in range(3):
        env.step(ACTION_NONE)
    env.reset(options=FAR)

    assert started == [1, 2]
    assert ended == [pytest.approx(3 * TIME_PENALTY - 0.5)]
    assert env.episode_rewards == ended
