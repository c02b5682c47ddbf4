"""
Homing State Machine

The homing sweep drives the carriage through its reference extremes:

    1. x down to x_bound      4. y up to y_bound
    2. x up to 0              5. y down to 0
    3. x down to x_retract

Each stage steps the axis by a fixed amount and, once the limit is
reached or passed, clamps the axis exactly onto it. The sequence is
advanced one step per simulation tick so it never blocks the event
loop; while it runs it owns the carriage position.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from core.types import Position2D
from motion.base import MotionState

logger = logging.getLogger(__name__)


class HomingPhase(Enum):
    """Lifecycle of a homing sequence"""
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"


@dataclass(frozen=True)
class HomingStage:
    """One single-axis sweep: move `axis` in `direction` until `limit`"""
    axis: str
    direction: int
    limit: float

    def reached(self, value: float) -> bool:
        if self.direction < 0:
            return value <= self.limit
        return value >= self.limit


def build_stages(x_bound: float, y_bound: float, x_retract: float = -80.0) -> List[HomingStage]:
    """The five sweeps, in the order they must run"""
    return [
        HomingStage('x', -1, x_bound),
        HomingStage('x', +1, 0.0),
        HomingStage('x', -1, x_retract),
        HomingStage('y', +1, y_bound),
        HomingStage('y', -1, 0.0),
    ]


class HomingSequence:
    """
    Stage-by-stage homing driven by the controller tick

    Args:
        stages: Sweeps to execute in order
        step: Distance moved per tick (nominal speed * scale * step factor)
    """

    def __init__(self, stages: List[HomingStage], step: float):
        if step <= 0:
            raise ValueError(f"Homing step must be positive, got {step}")

        self.stages = stages
        self.step = step
        self.stage_index = 0
        self.phase = HomingPhase.RUNNING
        self.visited: List[Tuple[str, float]] = []
        self.steps_taken = 0

    @property
    def current_stage(self) -> Optional[HomingStage]:
        if self.phase is not HomingPhase.RUNNING:
            return None
        return self.stages[self.stage_index]

    @property
    def finished(self) -> bool:
        return self.phase is not HomingPhase.RUNNING

    def advance(self, state: MotionState) -> bool:
        """
        Run one step of the current stage

        A stage whose limit is already satisfied clamps without stepping.
        On completion the goal is reset to the origin, which re-arms the
        goal detector.

        Returns:
            True once the whole sequence has succeeded
        """
        stage = self.current_stage
        if stage is None:
            return self.phase is HomingPhase.SUCCEEDED

        value = getattr(state.position, stage.axis)
        if not stage.reached(value):
            value += stage.direction * self.step
            self.steps_taken += 1

        if stage.reached(value):
            value = stage.limit
            self.visited.append((stage.axis, stage.limit))
            logger.debug(f"Homing stage {self.stage_index + 1}/{len(self.stages)} "
                         f"complete: {stage.axis}={stage.limit}")
            self.stage_index += 1

        state.position = self._with_axis(state.position, stage.axis, value)

        if self.stage_index >= len(self.stages):
            state.set_goal(0.0, 0.0)
            self.phase = HomingPhase.SUCCEEDED
            logger.info(f"Homing sequence finished after {self.steps_taken} steps")
            return True

        return False

    def abort(self, reason: str):
        if self.phase is HomingPhase.RUNNING:
            self.phase = HomingPhase.ABORTED
            logger.warning(f"Homing aborted at stage {self.stage_index + 1}: {reason}")

    @staticmethod
    def _with_axis(position: Position2D, axis: str, value: float) -> Position2D:
        if axis == 'x':
            return Position2D(value, position.y)
        return Position2D(position.x, value)
