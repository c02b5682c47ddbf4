"""
One-shot goal-reached detection

Fires once per convergence episode: the first tick on which the
position equals the goal exactly while the reported flag is clear.
Every goal change clears the flag again (MotionState.set_goal).
"""

from motion.base import MotionState
from motion.telemetry import TelemetryPublisher


class GoalReachedDetector:

    def __init__(self, publisher: TelemetryPublisher):
        self.publisher = publisher
        self.fired_count = 0

    def check(self, state: MotionState) -> bool:
        """Returns True if a reached record was emitted this tick"""
        if state.reported or not state.at_goal():
            return False

        self.publisher.publish_goal_reached(state)
        state.reported = True
        self.fired_count += 1
        return True
