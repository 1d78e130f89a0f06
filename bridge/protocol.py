"""
Simulator message framing.

The simulator speaks socket.io over a websocket. Event messages start with
"42": "4" is the engine.io message type, "2" the socket.io event type, and
the rest is a JSON array `[event_name, data]`.
"""

import json
import math
from typing import Any, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError

from trajectory.errors import MalformedInputError
from trajectory.models.path_planner import VehiclePose

EVENT_PREFIX = "42"
MANUAL_MESSAGE = '42["manual",{}]'
MPH_TO_MPS = 0.44704


class TelemetryMessage(BaseModel):
    """Telemetry event data from the simulator."""
    # Main car's localization
    x: float
    y: float
    s: float
    d: float
    yaw: float  # degrees
    speed: float  # mph
    # Previous path handed back by the simulator, not yet driven
    previous_path_x: List[float] = Field(default_factory=list)
    previous_path_y: List[float] = Field(default_factory=list)
    # Previous path's end s and d values
    end_path_s: float = 0.0
    end_path_d: float = 0.0
    # Other cars on the same side of the road; not used by the planner
    sensor_fusion: List[Any] = Field(default_factory=list)

    def to_pose(self) -> VehiclePose:
        """Vehicle pose in planner units (radians, m/s)."""
        values = (self.x, self.y, self.s, self.d, self.yaw, self.speed)
        if not all(math.isfinite(v) for v in values):
            raise MalformedInputError(f"Non-finite telemetry pose: {values}")
        return VehiclePose(
            x=self.x,
            y=self.y,
            s=self.s,
            d=self.d,
            yaw=math.radians(self.yaw),
            speed=self.speed * MPH_TO_MPS,
        )

    def previous_path(self) -> List[Tuple[float, float]]:
        if len(self.previous_path_x) != len(self.previous_path_y):
            raise MalformedInputError(
                f"previous_path_x has {len(self.previous_path_x)} points, "
                f"previous_path_y has {len(self.previous_path_y)}"
            )
        return list(zip(self.previous_path_x, self.previous_path_y))


def is_event_message(message: str) -> bool:
    return len(message) > 2 and message.startswith(EVENT_PREFIX)


def extract_event_payload(message: str) -> Optional[str]:
    """
    Return the JSON array text of an event message.

    Returns None when the simulator is in manual mode (the payload carries
    null) or the message has no JSON array.
    """
    if "null" in message:
        return None
    start = message.find("[")
    end = message.rfind("]")
    if start == -1 or end == -1 or end < start:
        return None
    return message[start:end + 1]


def decode_event(payload: str) -> Tuple[str, Any]:
    """Split an event payload into (event_name, data)."""
    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Event payload is not JSON: {e}") from e
    if not isinstance(decoded, list) or not decoded or not isinstance(decoded[0], str):
        raise MalformedInputError(f"Event payload must be [name, data], got {payload[:80]!r}")
    data = decoded[1] if len(decoded) > 1 else None
    return decoded[0], data


def parse_telemetry(data: Any) -> TelemetryMessage:
    """Validate a telemetry event's data object."""
    try:
        return TelemetryMessage.model_validate(data)
    except ValidationError as e:
        raise MalformedInputError(f"Invalid telemetry: {e.error_count()} error(s): {e}") from e


def encode_control(next_x: Sequence[float], next_y: Sequence[float]) -> str:
    """Frame a trajectory as a control event."""
    msg_json = {
        "next_x": [float(x) for x in next_x],
        "next_y": [float(y) for y in next_y],
    }
    return EVENT_PREFIX + json.dumps(["control", msg_json], separators=(",", ":"))
