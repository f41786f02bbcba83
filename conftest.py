"""Shared fixtures: a controller wired to a headless arena with far-away entities."""

import numpy as np
import pytest

from agent_controller import FoodAgentController
from physics import Arena, EntityRef, RigidBody
from utils import ACTION_NONE, PHYSICS_DT, TAG_FOOD, TAG_POISON

FAR_FOOD = (3.0, 1.0, 3.0)
FAR_POISON = (-3.0, 1.0, -3.0)


@pytest.fixture
def body():
    return RigidBody()


@pytest.fixture
def arena():
    return Arena(food=EntityRef(TAG_FOOD), poison=EntityRef(TAG_POISON))


@pytest.fixture
def controller(body, arena):
    controller = FoodAgentController(body, arena=arena, rng=np.random.default_rng(0))
    controller.reset()
    controller.place_entities(FAR_FOOD, FAR_POISON)
    return controller


@pytest.fixture
def run_tick(body, arena, controller):
    """One host tick: action, physics, finish."""
    def _tick(action=ACTION_NONE):
        controller.on_action_received(action)
        arena.simulate(body, PHYSICS_DT, controller.notify_contact)
        return controller.finish_tick()
    return _tick
