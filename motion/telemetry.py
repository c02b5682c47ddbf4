"""
Joint-state telemetry publisher

Builds JointStateRecord values from the carriage state and publishes
them on the event bus. One sequence counter is shared by every
destination, so seq strictly increases per destination and overall.
"""

import logging
import time
from typing import Callable

from core.events import EventBus, EventConstants, EventPriority
from core.types import JointStateRecord
from motion.base import MotionState

logger = logging.getLogger(__name__)


class TelemetryPublisher:
    """Publishes setpoint and goal-reached records"""

    def __init__(self, event_bus: EventBus, frame_id: str = "rvc",
                 clock: Callable[[], float] = time.time):
        self.event_bus = event_bus
        self.frame_id = frame_id
        self.clock = clock
        self.seq = 0

    def build_record(self, state: MotionState) -> JointStateRecord:
        record = JointStateRecord(
            seq=self.seq,
            stamp=self.clock(),
            frame_id=self.frame_id,
            name=["x", "y"],
            position=state.position.to_list(),
            effort=state.collision.to_list(),
        )
        self.seq += 1
        return record

    def publish_setpoint(self, state: MotionState) -> JointStateRecord:
        """Periodic position record on setpoint_js"""
        return self._publish(EventConstants.SETPOINT_JS, state, EventPriority.LOW)

    def publish_goal_reached(self, state: MotionState) -> JointStateRecord:
        """One-shot record on goal_js"""
        record = self._publish(EventConstants.GOAL_JS, state, EventPriority.NORMAL)
        logger.info(f"Goal reached at ({record.position[0]:.2f}, {record.position[1]:.2f})")
        return record

    def _publish(self, destination: str, state: MotionState,
                 priority: EventPriority) -> JointStateRecord:
        record = self.build_record(state)
        self.event_bus.publish(destination, record.to_dict(),
                               source_module="motion", priority=priority)
        return record
