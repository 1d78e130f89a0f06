"""
Tests for the websocket bridge and its HTTP control endpoints.
"""

import json

import pytest
from fastapi.testclient import TestClient

from bridge.protocol import MANUAL_MESSAGE
from bridge.server import BridgeState, create_app, handle_message
from trajectory.models.path_planner import PlannerPolicy


def _telemetry(previous_x=(), previous_y=(), **overrides):
    data = {
        "x": 0.0,
        "y": 0.0,
        "yaw": 0.0,
        "speed": 0.0,
        "s": 0.0,
        "d": 6.0,
        "previous_path_x": list(previous_x),
        "previous_path_y": list(previous_y),
        "end_path_s": 0.0,
        "end_path_d": 0.0,
        "sensor_fusion": [],
    }
    data.update(overrides)
    return "42" + json.dumps(["telemetry", data])


def _control(reply):
    assert reply.startswith('42["control",')
    name, data = json.loads(reply[2:])
    return data


@pytest.fixture
def app(straight_map):
    return create_app(straight_map)


@pytest.fixture
def client(app):
    return TestClient(app)


class TestWebsocket:

    def test_telemetry_gets_control_reply(self, client):
        with client.websocket_connect("/socket.io/") as ws:
            ws.send_text(_telemetry())
            data = _control(ws.receive_text())

        assert len(data["next_x"]) == 100
        assert len(data["next_y"]) == 100

    def test_root_path_also_accepted(self, client):
        with client.websocket_connect("/") as ws:
            ws.send_text(_telemetry())
            assert len(_control(ws.receive_text())["next_x"]) == 100

    def test_manual_mode_reply(self, client):
        with client.websocket_connect("/socket.io/") as ws:
            ws.send_text('42["telemetry",null]')
            assert ws.receive_text() == MANUAL_MESSAGE

    def test_previous_path_echoed_first(self, client):
        xs = [0.4 * (i + 1) for i in range(30)]
        ys = [0.0] * 30
        with client.websocket_connect("/socket.io/") as ws:
            ws.send_text(_telemetry(xs, ys))
            data = _control(ws.receive_text())

        assert data["next_x"][:30] == xs
        assert data["next_y"][:30] == ys
        assert len(data["next_x"]) == 100

    def test_malformed_message_is_skipped(self, app, client):
        with client.websocket_connect("/socket.io/") as ws:
            ws.send_text('42["telemetry",{"x":"bad"}]')
            ws.send_text(_telemetry())
            reply = ws.receive_text()
            sessions = list(app.state.bridge.sessions.values())

            assert len(sessions) == 1
            assert sessions[0].skipped_cycles == 1
            assert sessions[0].state.cycle == 1

        assert len(_control(reply)["next_x"]) == 100

    def test_connections_have_separate_sessions(self, app, client):
        with client.websocket_connect("/socket.io/") as first, \
                client.websocket_connect("/socket.io/") as second:
            for _ in range(3):
                first.send_text(_telemetry())
                first.receive_text()
            second.send_text(_telemetry())
            second.receive_text()

            cycles = sorted(s.state.cycle for s in app.state.bridge.sessions.values())

        assert cycles == [1, 3]


class TestHandleMessage:

    def test_non_event_messages_ignored(self, planner):
        session = BridgeState(planner, PlannerPolicy()).open_session()
        assert handle_message(session, "2") is None
        assert handle_message(session, '42["ping",{}]') is None
        assert session.skipped_cycles == 0

    def test_mismatched_previous_path_skipped(self, planner):
        session = BridgeState(planner, PlannerPolicy()).open_session()
        assert handle_message(session, _telemetry([1.0, 2.0], [0.0])) is None
        assert session.skipped_cycles == 1

    def test_close_session_closes_recorder(self, planner):
        class Recorder:
            closed = False

            def record_cycle(self, pose, result):
                pass

            def close(self):
                self.closed = True

        state = BridgeState(planner, PlannerPolicy(), recorder_factory=lambda session_id: Recorder())
        session = state.open_session()
        handle_message(session, _telemetry())

        state.close_session(session)

        assert session.recorder.closed
        assert state.sessions == {}


class TestHttpEndpoints:

    def test_health(self, client, straight_map):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["waypoints"] == len(straight_map)
        assert body["max_s"] == pytest.approx(straight_map.max_s)
        assert body["sessions"] == 0

    def test_get_policy_defaults(self, client):
        assert client.get("/api/policy").json() == {"target_lane": 1, "speed_ceiling": 20.0}

    def test_set_policy(self, client):
        body = client.post("/api/policy", json={"target_lane": 2}).json()
        assert body == {"status": "set", "target_lane": 2, "speed_ceiling": 20.0}
        assert client.get("/api/policy").json()["target_lane"] == 2

    def test_set_policy_rejects_negative_values(self, client):
        assert client.post("/api/policy", json={"target_lane": -1}).status_code == 400
        assert client.post("/api/policy", json={"speed_ceiling": -5.0}).status_code == 400
        assert client.get("/api/policy").json() == {"target_lane": 1, "speed_ceiling": 20.0}

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity", "1e400"])
    def test_set_policy_rejects_non_finite_ceiling(self, client, literal):
        response = client.post(
            "/api/policy",
            content='{"speed_ceiling": ' + literal + '}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert "Invalid speed ceiling" in response.json()["detail"]
        assert client.get("/api/policy").json() == {"target_lane": 1, "speed_ceiling": 20.0}

    def test_non_finite_ceiling_leaves_live_session_planning(self, app, client):
        with client.websocket_connect("/socket.io/") as ws:
            ws.send_text(_telemetry())
            ws.receive_text()
            response = client.post(
                "/api/policy",
                content='{"speed_ceiling": NaN}',
                headers={"Content-Type": "application/json"},
            )
            ws.send_text(_telemetry())
            reply = ws.receive_text()
            session = next(iter(app.state.bridge.sessions.values()))

            assert response.status_code == 400
            assert session.policy.speed_ceiling == 20.0
            assert session.skipped_cycles == 0

        assert len(_control(reply)["next_x"]) == 100

    def test_policy_applies_to_live_session(self, app, client):
        client.post("/api/policy", json={"target_lane": 0})
        with client.websocket_connect("/socket.io/") as ws:
            ws.send_text(_telemetry())
            ws.receive_text()
            client.post("/api/policy", json={"speed_ceiling": 10.0})
            ws.send_text(_telemetry())
            ws.receive_text()
            session = next(iter(app.state.bridge.sessions.values()))

            assert session.policy == PlannerPolicy(target_lane=0, speed_ceiling=10.0)
            assert session.last_result.anchors.forward[0] == pytest.approx((60.0, -2.0))


def test_bridge_logger_stays_out_of_root_handlers():
    from bridge.server import logger

    assert logger.name == "planner_bridge"
    assert logger.propagate is False
