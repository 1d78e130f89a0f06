"""
FastAPI websocket server for simulator-planner communication.
Receives telemetry, runs one planning cycle per message, returns the trajectory.
"""

import itertools
import logging
import math
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel
import uvicorn

from mapping.waypoint_map import WaypointMap
from trajectory.errors import MalformedInputError
from trajectory.inference import TrajectoryPlanningInference
from trajectory.models.path_planner import PathPlanner, PlannerPolicy

from .protocol import (
    MANUAL_MESSAGE,
    decode_event,
    encode_control,
    extract_event_payload,
    is_event_message,
    parse_telemetry,
)

# Log slow planning cycles; the simulator consumes one point every 20 ms.
SLOW_CYCLE_SECONDS = 0.02


def _get_bridge_logger() -> logging.Logger:
    log_path = Path(__file__).resolve().parents[1] / "tmp" / "logs" / "planner_bridge.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    bridge_logger = logging.getLogger("planner_bridge")
    bridge_logger.setLevel(logging.INFO)

    if not any(isinstance(h, logging.FileHandler) and h.baseFilename == str(log_path)
               for h in bridge_logger.handlers):
        handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
        handler.setFormatter(formatter)
        bridge_logger.addHandler(handler)
        bridge_logger.propagate = False

    return bridge_logger


logger = _get_bridge_logger()


class PolicyUpdate(BaseModel):
    """Lane / speed ceiling update from the behavior layer."""
    target_lane: Optional[int] = None
    speed_ceiling: Optional[float] = None


class BridgeState:
    """Shared map-backed planner and the live per-connection sessions."""

    def __init__(self, planner: PathPlanner, policy: PlannerPolicy,
                 recorder_factory: Optional[Callable[[str], object]] = None):
        self.planner = planner
        self.policy = policy
        self.recorder_factory = recorder_factory
        self.sessions: Dict[str, TrajectoryPlanningInference] = {}
        self._session_ids = itertools.count(1)

    def open_session(self) -> TrajectoryPlanningInference:
        session_id = f"vehicle-{next(self._session_ids)}"
        recorder = self.recorder_factory(session_id) if self.recorder_factory else None
        session = TrajectoryPlanningInference(
            self.planner, policy=self.policy, recorder=recorder, session_id=session_id
        )
        self.sessions[session_id] = session
        return session

    def close_session(self, session: TrajectoryPlanningInference) -> None:
        self.sessions.pop(session.session_id, None)
        if session.recorder is not None:
            session.recorder.close()


def handle_message(session: TrajectoryPlanningInference, message: str) -> Optional[str]:
    """
    Process one raw simulator message.

    Returns:
        Reply text, or None when nothing should be sent back
    """
    if not is_event_message(message):
        return None

    payload = extract_event_payload(message)
    if payload is None:
        # Manual driving
        return MANUAL_MESSAGE

    try:
        event, data = decode_event(payload)
        if event != "telemetry":
            return None
        telemetry = parse_telemetry(data)
        pose = telemetry.to_pose()
        previous_path = telemetry.previous_path()
    except MalformedInputError as e:
        session.skipped_cycles += 1
        logger.warning("[MALFORMED] session=%s %s", session.session_id, e)
        return None

    start_time = time.time()
    trajectory = session.plan(pose, previous_path)
    duration = time.time() - start_time
    if duration > SLOW_CYCLE_SECONDS:
        logger.warning(
            "[SLOW] planning cycle duration=%.3fs session=%s previous_path=%d",
            duration,
            session.session_id,
            len(previous_path),
        )
    if trajectory is None:
        return None

    return encode_control([p[0] for p in trajectory], [p[1] for p in trajectory])


def create_app(waypoint_map: WaypointMap, planner: Optional[PathPlanner] = None,
               policy: Optional[PlannerPolicy] = None,
               recorder_factory: Optional[Callable[[str], object]] = None) -> FastAPI:
    """
    Build the bridge application.

    Args:
        waypoint_map: Map shared read-only by every session
        planner: Planner to use (default: PathPlanner over waypoint_map)
        policy: Initial policy for new sessions
        recorder_factory: Optional callable session_id -> CycleRecorder
    """
    planner = planner or PathPlanner(waypoint_map)
    policy = policy or PlannerPolicy(speed_ceiling=planner.ramp.config.speed_ceiling)

    app = FastAPI(title="Highway Path Planner Bridge")
    state = BridgeState(planner, policy, recorder_factory)
    app.state.bridge = state

    async def simulator_session(websocket: WebSocket):
        await websocket.accept()
        session = state.open_session()
        logger.info("Connected: session=%s", session.session_id)
        try:
            while True:
                message = await websocket.receive_text()
                reply = handle_message(session, message)
                if reply is not None:
                    await websocket.send_text(reply)
        except WebSocketDisconnect as e:
            logger.info(
                "Disconnected: session=%s code=%s cycles=%d skipped=%d",
                session.session_id,
                e.code,
                session.state.cycle,
                session.skipped_cycles,
            )
        finally:
            state.close_session(session)

    app.add_api_websocket_route("/socket.io/", simulator_session)
    app.add_api_websocket_route("/", simulator_session)

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "waypoints": len(waypoint_map),
            "max_s": waypoint_map.max_s,
            "sessions": len(state.sessions),
            "timestamp": time.time(),
        }

    @app.get("/api/policy")
    async def get_policy():
        return {
            "target_lane": state.policy.target_lane,
            "speed_ceiling": state.policy.speed_ceiling,
        }

    @app.post("/api/policy")
    async def set_policy(update: PolicyUpdate):
        """
        Set target lane and speed ceiling.

        Applies to every active session and to sessions opened later.
        """
        if update.target_lane is not None and update.target_lane < 0:
            raise HTTPException(status_code=400, detail=f"Invalid target lane {update.target_lane}")
        if update.speed_ceiling is not None and (
                not math.isfinite(update.speed_ceiling) or update.speed_ceiling < 0.0):
            raise HTTPException(status_code=400, detail=f"Invalid speed ceiling {update.speed_ceiling}")
        state.policy = PlannerPolicy(
            target_lane=state.policy.target_lane if update.target_lane is None else update.target_lane,
            speed_ceiling=state.policy.speed_ceiling if update.speed_ceiling is None else update.speed_ceiling,
        )
        for session in state.sessions.values():
            session.set_policy(state.policy.target_lane, state.policy.speed_ceiling)
        return {
            "status": "set",
            "target_lane": state.policy.target_lane,
            "speed_ceiling": state.policy.speed_ceiling,
        }

    return app


def run_server(app: FastAPI, host: str = "0.0.0.0", port: int = 4567):
    """Run the bridge server."""
    print(f"Starting Highway Path Planner Bridge on {host}:{port}")
    print("Endpoints:")
    print("  WS   /socket.io/ - Simulator telemetry / control")
    print("  GET  /api/health - Health check")
    print("  GET  /api/policy - Current lane and speed ceiling")
    print("  POST /api/policy - Set lane and speed ceiling")

    uvicorn.run(app, host=host, port=port)
