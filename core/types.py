"""
Core Data Types for Carriage Simulator

Defines common data types shared between the motion core, the
telemetry publisher and the web interface.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List


@dataclass
class Position2D:
    """2-axis carriage position in simulator units"""
    x: float = 0.0
    y: float = 0.0

    def to_list(self) -> List[float]:
        return [self.x, self.y]

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for serialization"""
        return {"x": self.x, "y": self.y}

    def copy(self) -> 'Position2D':
        return Position2D(self.x, self.y)

    def __str__(self) -> str:
        return f"Position2D(x={self.x:.2f}, y={self.y:.2f})"


@dataclass
class CommandResult:
    """Outcome of a command surface request"""
    success: bool
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message}


@dataclass
class JointStateRecord:
    """
    Telemetry record published on setpoint_js and goal_js

    Mirrors a joint-state message: a header (seq, stamp, frame_id),
    the axis names, the carriage position as values and the collision
    offset as the auxiliary effort array.
    """
    seq: int
    stamp: float
    frame_id: str
    name: List[str] = field(default_factory=lambda: ["x", "y"])
    position: List[float] = field(default_factory=list)
    effort: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": {"seq": self.seq, "stamp": self.stamp, "frame_id": self.frame_id},
            "name": list(self.name),
            "position": list(self.position),
            "effort": list(self.effort),
        }
