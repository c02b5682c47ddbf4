"""
Abstract Motion Control Interface

Defines the command surface every carriage controller exposes and the
single state record the simulated controller owns. Keeping all mutable
carriage state in one MotionState instance means the tick source and
the command handlers share exactly one object, mutated on one event
loop.

Author: Carriage Simulator Development
Created: October 2026
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from core.types import CommandResult, Position2D


class MotionStatus(Enum):
    """Motion controller status states"""
    IDLE = "idle"
    MOVING = "moving"
    HOMING = "homing"


def clamp_scale(value: float) -> float:
    """Clamp a velocity scale into [0.0, 1.0]"""
    value = float(value)
    if math.isnan(value):
        raise ValueError("Velocity scale cannot be NaN")
    return min(max(value, 0.0), 1.0)


@dataclass
class ActuatorState:
    """Independent actuator flags; no invariants between them"""
    motors_on: bool = False
    endeff_down: bool = False
    led_on: bool = False


@dataclass
class MotionState:
    """
    All mutable carriage state

    position is written only by the motion simulator and the homing
    sequence. goal is written by the command surface and by homing on
    completion. reported starts True: nothing is owed to the goal
    detector until the first goal change.
    """
    position: Position2D = field(default_factory=Position2D)
    goal: Position2D = field(default_factory=Position2D)
    collision: Position2D = field(default_factory=Position2D)
    actuators: ActuatorState = field(default_factory=ActuatorState)
    reported: bool = True
    _v_scale: float = 1.0

    @property
    def v_scale(self) -> float:
        return self._v_scale

    @v_scale.setter
    def v_scale(self, value: float):
        self._v_scale = clamp_scale(value)

    def at_goal(self) -> bool:
        return self.position.x == self.goal.x and self.position.y == self.goal.y

    def set_goal(self, x: float, y: float):
        """Replace the goal and re-arm the goal detector"""
        self.goal = Position2D(x, y)
        self.reported = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'position': self.position.to_dict(),
            'goal': self.goal.to_dict(),
            'collision': self.collision.to_dict(),
            'velocity_scale': self.v_scale,
            'motors_on': self.actuators.motors_on,
            'endeff_down': self.actuators.endeff_down,
            'led_on': self.actuators.led_on,
            'reported': self.reported,
        }


class MotionController(ABC):
    """
    Abstract command surface for a two-axis carriage

    Commands that complete immediately return a CommandResult (or
    nothing, for velocity_scale). tap and home are coroutines that
    resolve when the multi-stage action finishes.
    """

    @abstractmethod
    async def move(self, dx: float, dy: float) -> CommandResult:
        """Shift the goal by (dx, dy)"""
        pass

    @abstractmethod
    async def move_to(self, x: float, y: float) -> CommandResult:
        """Set the goal to (x, y)"""
        pass

    @abstractmethod
    async def velocity_scale(self, scale: float) -> None:
        """Set the velocity scale, clamped into [0, 1]"""
        pass

    @abstractmethod
    async def halt(self) -> CommandResult:
        """Cancel in-flight motion at the current position"""
        pass

    @abstractmethod
    async def tap(self) -> CommandResult:
        """Pulse the end effector down and back up"""
        pass

    @abstractmethod
    async def home(self) -> CommandResult:
        """Run the homing sequence"""
        pass

    @abstractmethod
    async def set_endeff(self, down: bool) -> CommandResult:
        pass

    @abstractmethod
    async def set_led(self, on: bool) -> CommandResult:
        pass

    @abstractmethod
    async def set_motors(self, on: bool) -> CommandResult:
        pass
