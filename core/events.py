"""
Event Bus for Simulator Telemetry

Outbound boundary of the simulator. Setpoint records, goal-reached
records and lifecycle notifications are published here by name; the
web interface and any other collaborator read or subscribe without
touching the motion core.

Author: Carriage Simulator Development
Created: October 2026
"""

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

_event_ids = itertools.count(1)


class EventPriority(Enum):
    """Event priority levels"""
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


@dataclass
class SimulatorEvent:
    """One published record or notification"""
    event_type: str
    data: Dict[str, Any] = field(default_factory=dict)
    source_module: str = "unknown"
    priority: EventPriority = EventPriority.NORMAL
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: int = field(default_factory=lambda: next(_event_ids))

    def __str__(self):
        return f"Event#{self.event_id}({self.event_type} from {self.source_module})"


class EventConstants:
    """Event names used across the simulator"""

    # Lifecycle
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_ERROR = "system.error"

    # Telemetry destinations, named after the topics of the real node
    SETPOINT_JS = "setpoint_js"
    GOAL_JS = "goal_js"

    # Motion
    MOTION_HOME_COMPLETE = "motion.home_complete"
    MOTION_HOME_FAILED = "motion.home_failed"
    MOTION_TAP_COMPLETE = "motion.tap_complete"


@dataclass
class Subscriber:
    callback: Callable[[SimulatorEvent], Any]
    name: str = "unknown"
    calls: int = 0


class EventBus:
    """
    Synchronous publish/subscribe hub

    Subscribers are called on the publishing thread, which for every
    motion event is the controller's event loop. A failing subscriber
    is logged and counted but never reaches the publisher. The latest
    event of each type is kept separately from the bounded history so
    a burst of setpoint records cannot evict the last goal record.
    """

    def __init__(self, max_history: int = 1000):
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._history: Deque[SimulatorEvent] = deque(maxlen=max_history)
        self._latest: Dict[str, SimulatorEvent] = {}
        self._lock = threading.RLock()
        self._published = 0
        self._errors = 0

    def subscribe(self, event_type: str, callback: Callable[[SimulatorEvent], Any],
                  subscriber_name: str = "unknown") -> bool:
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(Subscriber(callback, subscriber_name))
        logger.debug(f"{subscriber_name} subscribed to {event_type}")
        return True

    def unsubscribe(self, event_type: str, callback: Callable[[SimulatorEvent], Any]) -> bool:
        """
        Returns:
            True if the callback was subscribed to event_type
        """
        with self._lock:
            current = self._subscribers.get(event_type, [])
            remaining = [sub for sub in current if sub.callback != callback]
            if len(remaining) == len(current):
                return False
            if remaining:
                self._subscribers[event_type] = remaining
            else:
                del self._subscribers[event_type]
        return True

    def publish(self, event_type: str, data: Optional[Dict[str, Any]] = None,
                source_module: str = "unknown",
                priority: EventPriority = EventPriority.NORMAL) -> SimulatorEvent:
        """
        Record an event and hand it to every subscriber of its type

        Returns:
            The published event
        """
        event = SimulatorEvent(event_type, data or {}, source_module, priority)

        with self._lock:
            self._history.append(event)
            self._latest[event_type] = event
            self._published += 1
            subscribers = list(self._subscribers.get(event_type, []))

        for subscriber in subscribers:
            try:
                subscriber.calls += 1
                subscriber.callback(event)
            except Exception as e:
                logger.error(f"Subscriber {subscriber.name} failed on {event_type}: {e}")
                with self._lock:
                    self._errors += 1

        return event

    def get_event_history(self, event_type: Optional[str] = None, limit: int = 100) -> List[SimulatorEvent]:
        """
        Recent events, oldest first

        Args:
            event_type: Only events of this type (None for all)
            limit: Keep only the newest `limit` events (0 for all)
        """
        with self._lock:
            history = list(self._history)

        if event_type:
            history = [event for event in history if event.event_type == event_type]
        return history[-limit:] if limit else history

    def get_latest(self, event_type: str) -> Optional[SimulatorEvent]:
        with self._lock:
            return self._latest.get(event_type)

    def get_subscriptions(self) -> Dict[str, List[str]]:
        with self._lock:
            return {
                event_type: [sub.name for sub in subscribers]
                for event_type, subscribers in self._subscribers.items()
            }

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'events_published': self._published,
                'error_count': self._errors,
                'active_subscriptions': sum(len(subs) for subs in self._subscribers.values()),
                'event_types': len(self._subscribers),
                'history_size': len(self._history),
            }

    def clear_history(self):
        with self._lock:
            self._history.clear()
            self._latest.clear()

    def shutdown(self):
        logger.info("Shutting down event bus")
        with self._lock:
            self._subscribers.clear()
            self._history.clear()
            self._latest.clear()
