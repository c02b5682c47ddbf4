"""
Shared fixtures for the carriage simulator tests
"""

import asyncio

import pytest

from core.config_manager import ConfigManager, MotionConfig
from core.events import EventBus
from motion.controller import SimulatedMotionController


@pytest.fixture
def motion_config() -> MotionConfig:
    """Default motion configuration (speed 120, 20 ms ticks, bounds -580/300)"""
    return ConfigManager().get_motion_config()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def controller(motion_config, event_bus) -> SimulatedMotionController:
    return SimulatedMotionController(motion_config, event_bus, clock=lambda: 1000.0)


async def drive(controller: SimulatedMotionController, task: asyncio.Task, max_ticks: int = 1000) -> int:
    """Tick the controller until `task` finishes; returns the ticks used"""
    ticks = 0
    while not task.done():
        assert ticks < max_ticks, "task did not finish within tick budget"
        controller.tick()
        ticks += 1
        await asyncio.sleep(0)
    return ticks


def tick_until_settled(controller: SimulatedMotionController, max_ticks: int = 1000) -> int:
    """Tick until the carriage sits on its goal; returns the ticks used"""
    ticks = 0
    while not controller.state.at_goal():
        assert ticks < max_ticks, "carriage did not converge within tick budget"
        controller.tick()
        ticks += 1
    return ticks
