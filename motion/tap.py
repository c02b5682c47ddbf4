"""
End effector tap pulse

A tap presses the end effector, holds it for a fixed number of ticks
and releases it. Tapping again during a hold restarts the countdown;
all waiting callers are released together.
"""

import asyncio
import logging
from typing import List

from motion.base import ActuatorState

logger = logging.getLogger(__name__)


class TapAction:
    """Two-phase down -> hold -> up transition counted in ticks"""

    def __init__(self, hold_ticks: int):
        self.hold_ticks = max(1, int(hold_ticks))
        self.remaining = 0
        self._waiters: List[asyncio.Future] = []

    @classmethod
    def from_duration(cls, duration: float, tick_period: float) -> 'TapAction':
        return cls(round(duration / tick_period))

    @property
    def active(self) -> bool:
        return self.remaining > 0

    def press(self, actuators: ActuatorState, waiter: asyncio.Future):
        """Start (or restart) the pulse"""
        if self.active:
            logger.debug("Tap re-pulsed during hold")
        actuators.endeff_down = True
        self.remaining = self.hold_ticks
        self._waiters.append(waiter)

    def advance(self, actuators: ActuatorState) -> bool:
        """
        Count down one tick

        Returns:
            True on the tick the end effector is released
        """
        if not self.active:
            return False

        self.remaining -= 1
        if self.remaining > 0:
            return False

        self._release(actuators, True)
        return True

    def cancel(self, actuators: ActuatorState):
        """Lift the end effector now; waiters resolve with False"""
        if self.active:
            self.remaining = 0
            self._release(actuators, False)

    def _release(self, actuators: ActuatorState, completed: bool):
        actuators.endeff_down = False
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(completed)
