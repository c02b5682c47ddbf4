"""
Simulated Carriage Motion Controller

Owns the carriage MotionState and implements the command surface on
top of it. A single fixed-rate tick advances, in order:

    1. the homing sequence, if one is running, else the motion simulator
    2. the end effector tap countdown
    3. the goal-reached detector (skipped while homing)

A slower timer publishes the setpoint telemetry record. Every command
and both timers run on the same asyncio event loop, so the state has
exactly one writer at a time. Callers on other threads must submit
commands with asyncio.run_coroutine_threadsafe.

Author: Carriage Simulator Development
Created: October 2026
"""

import asyncio
import logging
import math
import time
from typing import Any, Callable, Dict, List, Optional, Union

from core.events import EventBus, EventConstants, EventPriority
from core.exceptions import MotionControlError
from core.types import CommandResult, JointStateRecord, Position2D
from core.config_manager import MotionConfig
from motion.base import MotionController, MotionState, MotionStatus
from motion.goal_detector import GoalReachedDetector
from motion.homing import HomingSequence, build_stages
from motion.simulator import MotionSimulator
from motion.tap import TapAction
from motion.telemetry import TelemetryPublisher

logger = logging.getLogger(__name__)


HOME_SUCCESS_MESSAGE = "Successfully homed."
HOME_FAILURE_MESSAGE = "Failed to home."


class SimulatedMotionController(MotionController):
    """
    Two-axis carriage simulator

    Args:
        config: Motion configuration (speeds, periods, homing bounds)
        event_bus: Destination for telemetry and lifecycle events
        clock: Timestamp source for telemetry records
    """

    def __init__(self, config: MotionConfig, event_bus: EventBus,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.event_bus = event_bus
        self.state = MotionState()

        self.simulator = MotionSimulator(
            nominal_speed=config.nominal_speed,
            tick_period=config.tick_period,
            snap_epsilon=config.snap_epsilon,
            gate_on_motors=config.gate_on_motors
        )
        self.publisher = TelemetryPublisher(event_bus, config.frame_id, clock)
        self.detector = GoalReachedDetector(self.publisher)
        self.tap_action = TapAction.from_duration(config.tap_duration, config.tick_period)

        self.bounds = Position2D(config.homing.x_bound, config.homing.y_bound)
        self.homing: Optional[HomingSequence] = None
        self.last_homing: Optional[HomingSequence] = None
        self._homing_waiter: Optional[asyncio.Future] = None

        self.tick_count = 0
        self._tasks: List[asyncio.Task] = []

    # Status
    @property
    def status(self) -> MotionStatus:
        if self.homing_in_progress:
            return MotionStatus.HOMING
        if not self.state.at_goal():
            return MotionStatus.MOVING
        return MotionStatus.IDLE

    @property
    def homing_in_progress(self) -> bool:
        return self.homing is not None and not self.homing.finished

    async def snapshot(self) -> Dict[str, Any]:
        """Status dictionary, taken on the event loop"""
        return self.get_status()

    def get_status(self) -> Dict[str, Any]:
        status = {
            'status': self.status.value,
            'tick_count': self.tick_count,
            'tap_active': self.tap_action.active,
            'goals_reached': self.detector.fired_count,
            'bounds': self.bounds.to_dict(),
            'gate_on_motors': self.simulator.gate_on_motors,
        }
        status.update(self.state.to_dict())
        if self.homing_in_progress:
            status['homing_stage'] = self.homing.stage_index + 1
        return status

    # Tick source
    def tick(self):
        """Advance the simulation by one tick period"""
        self.tick_count += 1

        if self.homing_in_progress:
            if self.homing.advance(self.state):
                self._finish_homing(CommandResult(True, HOME_SUCCESS_MESSAGE))
        else:
            self.simulator.step(self.state)

        if self.tap_action.advance(self.state.actuators):
            logger.debug("End effector released")
            self.event_bus.publish(EventConstants.MOTION_TAP_COMPLETE,
                                   {'tick': self.tick_count}, source_module="motion")

        if not self.homing_in_progress:
            self.detector.check(self.state)

    def publish_telemetry(self) -> JointStateRecord:
        return self.publisher.publish_setpoint(self.state)

    def start_ticking(self):
        """Start the motion tick timer on the running loop"""
        self._start_timer(self.tick, self.config.tick_period, "motion-tick")

    def start_telemetry(self):
        """Start the telemetry timer on the running loop"""
        self._start_timer(self.publish_telemetry, self.config.telemetry_period, "telemetry")

    def _start_timer(self, callback: Callable[[], Any], period: float, name: str):
        if any(task.get_name() == name and not task.done() for task in self._tasks):
            raise MotionControlError(f"Timer '{name}' already running", module="motion")

        task = asyncio.get_running_loop().create_task(self._run_periodic(callback, period), name=name)
        self._tasks.append(task)
        logger.debug(f"Started {name} timer at {1.0 / period:.1f} Hz")

    @staticmethod
    async def _run_periodic(callback: Callable[[], Any], period: float):
        loop = asyncio.get_running_loop()
        next_time = loop.time()
        while True:
            callback()
            next_time += period
            delay = next_time - loop.time()
            if delay < 0:
                # Fell behind; resynchronise instead of bursting
                next_time = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    async def stop(self):
        """Cancel timers and release anyone waiting on home or tap"""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()

        if self.homing_in_progress:
            self.homing.abort("controller stopped")
            self._finish_homing(CommandResult(False, f"{HOME_FAILURE_MESSAGE} Controller stopped"))
        self.tap_action.cancel(self.state.actuators)

    # Command surface
    async def move(self, dx: float, dy: float) -> CommandResult:
        rejected = self._reject_motion("move", dx, dy)
        if rejected:
            return rejected

        x, y = self.state.goal.x + dx, self.state.goal.y + dy
        if not (math.isfinite(x) and math.isfinite(y)):
            return self._warn("Relative move rejected: resulting goal is not finite")

        self.state.set_goal(x, y)
        logger.debug(f"Relative move ({dx}, {dy}) -> goal {self.state.goal}")
        return CommandResult(True, f"Goal set to ({x}, {y})")

    async def move_to(self, x: float, y: float) -> CommandResult:
        rejected = self._reject_motion("move_to", x, y)
        if rejected:
            return rejected

        self.state.set_goal(x, y)
        logger.debug(f"Absolute move -> goal {self.state.goal}")
        return CommandResult(True, f"Goal set to ({x}, {y})")

    async def velocity_scale(self, scale: float) -> None:
        try:
            self.state.v_scale = scale
        except ValueError as e:
            logger.warning(f"Velocity scale ignored: {e}")
            return
        logger.debug(f"Velocity scale set to {self.state.v_scale}")

    async def halt(self) -> CommandResult:
        if self.homing_in_progress:
            return self._warn("Halt rejected: homing in progress")

        self.state.set_goal(self.state.position.x, self.state.position.y)
        logger.info(f"Halted at {self.state.position}")
        return CommandResult(True, "Halted")

    async def tap(self) -> CommandResult:
        waiter = asyncio.get_running_loop().create_future()
        self.tap_action.press(self.state.actuators, waiter)
        logger.debug("End effector pressed for tap")
        if await waiter:
            return CommandResult(True, "Tapped")
        return CommandResult(False, "Tap interrupted")

    async def home(self) -> CommandResult:
        waiter = self.begin_homing()
        if isinstance(waiter, CommandResult):
            return waiter
        return await waiter

    def begin_homing(self) -> Union[asyncio.Future, CommandResult]:
        """
        Validate preconditions and start the homing sequence

        Returns:
            A future resolving to the CommandResult, or an immediate
            failure CommandResult if homing cannot start
        """
        if self.homing_in_progress:
            return self._warn("Homing already in progress")

        if not self.state.actuators.motors_on:
            logger.warning("Homing refused: motors disabled")
            return CommandResult(False, HOME_FAILURE_MESSAGE)

        step = self.config.nominal_speed * self.state.v_scale * self.config.homing.step_factor
        if step <= 0:
            return self._warn(f"{HOME_FAILURE_MESSAGE} Velocity scale is zero")

        stages = build_stages(self.bounds.x, self.bounds.y, self.config.homing.x_retract)
        self.homing = HomingSequence(stages, step)
        self.last_homing = self.homing
        self._homing_waiter = asyncio.get_running_loop().create_future()
        logger.info(f"Homing started from {self.state.position} (step {step:.2f})")
        return self._homing_waiter

    def _finish_homing(self, result: CommandResult):
        waiter, self._homing_waiter = self._homing_waiter, None
        self.homing = None

        if result.success:
            self.event_bus.publish(EventConstants.MOTION_HOME_COMPLETE,
                                   {'position': self.state.position.to_dict()},
                                   source_module="motion", priority=EventPriority.HIGH)
        else:
            self.event_bus.publish(EventConstants.MOTION_HOME_FAILED,
                                   {'message': result.message},
                                   source_module="motion", priority=EventPriority.HIGH)

        if waiter is not None and not waiter.done():
            waiter.set_result(result)

    async def set_endeff(self, down: bool) -> CommandResult:
        self.state.actuators.endeff_down = bool(down)
        return CommandResult(True, "End Effector Pressed" if down else "End Effector Released")

    async def set_led(self, on: bool) -> CommandResult:
        self.state.actuators.led_on = bool(on)
        return CommandResult(True, "LED Lit" if on else "LED Off")

    async def set_motors(self, on: bool) -> CommandResult:
        self.state.actuators.motors_on = bool(on)

        if not on and self.homing_in_progress:
            self.homing.abort("motors disabled")
            self._finish_homing(CommandResult(False, f"{HOME_FAILURE_MESSAGE} Motors disabled during homing"))

        logger.info("Motors enabled" if on else "Motors disabled")
        return CommandResult(True, "Motors Enabled" if on else "Motors Disabled")

    def set_collision_offset(self, x: float, y: float):
        """Passthrough values reported in the telemetry effort array"""
        self.state.collision = Position2D(x, y)

    # Helpers
    def _reject_motion(self, command: str, a: float, b: float) -> Optional[CommandResult]:
        if self.homing_in_progress:
            return self._warn(f"{command} rejected: homing in progress")
        if not (math.isfinite(a) and math.isfinite(b)):
            return self._warn(f"{command} rejected: coordinates must be finite")
        return None

    @staticmethod
    def _warn(message: str) -> CommandResult:
        logger.warning(message)
        return CommandResult(False, message)
