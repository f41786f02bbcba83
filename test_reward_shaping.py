"""
Tests for the distance-delta reward shaping.
"""

import numpy as np
import pytest

from agent_controller import RewardShaper, shape_food_reward, shape_poison_reward
from utils import (
    ACTION_NONE, ACTION_RIGHT, TIME_PENALTY,
    FOOD_SHAPING_MIN, FOOD_SHAPING_MAX, POISON_SHAPING_MIN, POISON_SHAPING_MAX
)


def test_food_reward_moving_closer_hits_upper_clamp():
    # 5 -> 4 is a delta of 1, scaled to 0.3
    assert shape_food_reward(5.0, 4.0) == pytest.approx(0.3)


def test_food_reward_moving_away_hits_lower_clamp():
    # 1 -> 4 scales to -0.9 and clamps to -0.03
    assert shape_food_reward(1.0, 4.0) == pytest.approx(-0.03)


def test_food_reward_small_delta_is_linear():
    assert shape_food_reward(2.0, 1.9) == pytest.approx(0.03)
    assert shape_food_reward(2.0, 2.05) == pytest.approx(-0.015)


def test_poison_reward_signs():
    assert shape_poison_reward(2.0, 3.0) == pytest.approx(0.15)
    assert shape_poison_reward(3.0, 2.0) == pytest.approx(-0.03)
    assert shape_poison_reward(2.0, 2.1) == pytest.approx(0.015)


def test_no_movement_gives_zero_shaping():
    assert shape_food_reward(3.0, 3.0) == 0.0
    assert shape_poison_reward(3.0, 3.0) == 0.0


def test_rewards_stay_within_clamp_bounds():
    rng = np.random.default_rng(42)
    previous = rng.uniform(0, 12, size=500)
    current = rng.uniform(0, 12, size=500)

    for prev, cur in zip(previous, current):
        assert FOOD_SHAPING_MIN <= shape_food_reward(prev, cur) <= FOOD_SHAPING_MAX
        assert POISON_SHAPING_MIN <= shape_poison_reward(prev, cur) <= POISON_SHAPING_MAX


def test_reward_shaper_adds_time_penalty_and_updates_memory():
    shaper = RewardShaper(TIME_PENALTY)
    shaper.remember(5.0, 2.0)

    result = shaper.shape(4.0, 3.0)

    assert result.food_reward == pytest.approx(0.3)
    assert result.poison_reward == pytest.approx(0.15)
    assert result.reward == pytest.approx(0.3 + 0.15 - 0.002)
    assert shaper.memory.previous_food_distance == 4.0
    assert shaper.memory.previous_poison_distance == 3.0


def test_standing_still_only_costs_time(controller, run_tick):
    result = run_tick(ACTION_NONE)

    assert result.reward == pytest.approx(TIME_PENALTY)
    assert controller.state.episode_reward == pytest.approx(TIME_PENALTY)
    assert not result.done


def test_moving_toward_food_and_away_from_poison(controller, run_tick):
    controller.place_entities(food_position=(3.0, 1.0, 0.0), poison_position=(-3.0, 1.0, 0.0))

    # One tick right at 5 units/s for 0.02 s covers 0.1 units
    result = run_tick(ACTION_RIGHT)

    assert result.food_reward == pytest.approx(0.1 * 0.3)
    assert result.poison_reward == pytest.approx(0.1 * 0.15)
    assert result.reward == pytest.approx(0.03 + 0.015 - 0.002)


def test_distance_memory_tracks_previous_tick(controller, body, run_tick):
    run_tick(ACTION_RIGHT)

    memory = controller.reward_shaper.memory
    food_distance = np.linalg.norm(body.get_position() - controller.food.position)
    poison_distance = np.linalg.norm(body.get_position() - controller.poison.position)
    assert memory.previous_food_distance == pytest.approx(food_distance)
    assert memory.previous_poison_distance == pytest.approx(poison_distance)
