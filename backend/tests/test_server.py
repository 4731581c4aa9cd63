"""Tests for server endpoints and the telemetry WebSocket."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from backend import server
from computevis import DEFAULT_TIP
from computevis.annotation import StaticAnnotator
from computevis.models import EventKind, SimulationEvent


@pytest.fixture
def client():
    """Client against a freshly reset simulator with timers running."""
    sim = server.simulator
    sim.annotator = StaticAnnotator()
    sim.stop()
    sim.reset_history()
    sim.console.clear()
    sim.expert_tip = DEFAULT_TIP
    with TestClient(server.app) as test_client:
        yield test_client
    sim.stop()


class TestReadEndpoints:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_gpu_info(self, client):
        data = client.get("/api/gpu").json()
        assert data["name"] == "NVIDIA H100 Tensor Core GPU"
        assert data["vram_total_gb"] == 80.0
        assert data["training"]["vram_peak_gb"] == 72.0
        assert data["inference"]["compute_peak"] == 45.0

    def test_initial_state(self, client):
        data = client.get("/api/state").json()
        assert data["run"]["mode"] == "IDLE"
        assert data["run"]["status"] == "IDLE"
        assert data["latest"]["vram_used_gb"] == 4.0
        assert data["expert_tip"] == DEFAULT_TIP
        assert data["tokens"] == {"input": [], "output": []}

    def test_metrics_history_and_series(self, client):
        server.simulator.tick_metrics()
        server.simulator.tick_metrics()
        data = client.get("/api/metrics").json()
        assert len(data["history"]) >= 2
        assert data["latest"] == data["history"][-1]
        assert len(data["series"]["temperature_c"]) == len(data["history"])
        assert set(data["series"]) >= {"loss", "tokens_per_second", "teraflops"}

    def test_annotator_reports_static_backend(self, client):
        assert client.get("/api/annotator").json()["backend"] == "static"


class TestControlEndpoints:
    def test_start_then_reject_second_start(self, client):
        first = client.post("/api/start", json={"task": "TRAINING"}).json()
        assert first["applied"] is True
        assert first["run"]["mode"] == "TRAINING"

        second = client.post("/api/start", json={"task": "INFERENCE"}).json()
        assert second["applied"] is False
        assert second["run"]["mode"] == "TRAINING"

    def test_start_rejects_unknown_task(self, client):
        response = client.post("/api/start", json={"task": "FINETUNE"})
        assert response.status_code == 422

    def test_start_idle_is_not_applied(self, client):
        data = client.post("/api/start", json={"task": "IDLE"}).json()
        assert data["applied"] is False

    def test_pause_requires_running_task(self, client):
        assert client.post("/api/pause").json()["applied"] is False
        client.post("/api/start", json={"task": "INFERENCE"})
        data = client.post("/api/pause").json()
        assert data["applied"] is True
        assert data["run"]["is_paused"] is True
        assert data["run"]["status"] == "PAUSED"

    def test_stop_returns_to_idle(self, client):
        client.post("/api/start", json={"task": "INFERENCE"})
        data = client.post("/api/stop").json()
        assert data["applied"] is True
        assert data["run"]["mode"] == "IDLE"
        assert data["run"]["step"] == 0
        assert client.post("/api/stop").json()["applied"] is False

    def test_logs_newest_first(self, client):
        client.post("/api/start", json={"task": "TRAINING"})
        client.post("/api/pause")
        logs = client.get("/api/logs").json()
        assert logs[0]["message"] == "Simulation paused by user."
        assert logs[0]["level"] == "WARN"
        assert logs[1]["message"] == "Initiating TRAINING sequence..."

    def test_start_prepares_inference_prompt(self, client):
        client.post("/api/start", json={"task": "INFERENCE"})
        tokens = client.get("/api/state").json()["tokens"]
        assert tokens["input"] == ["What", "is", "a", "GPU", "H100", "for?"]


def receive_until(websocket, *message_types, limit=50):
    """Read messages until one of each requested type has arrived."""
    found = {}
    for _ in range(limit):
        message = websocket.receive_json()
        found.setdefault(message["type"], message)
        if all(t in found for t in message_types):
            return found
    raise AssertionError(f"missing one of {message_types}")


class TestTelemetryWebSocket:
    def test_snapshot_on_connect(self, client):
        with client.websocket_connect("/ws/telemetry") as websocket:
            message = websocket.receive_json()
            assert message["type"] == "snapshot"
            assert message["data"]["run"]["mode"] == "IDLE"

    def test_start_via_websocket_broadcasts_state(self, client):
        with client.websocket_connect("/ws/telemetry") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "start", "task": "TRAINING"})
            found = receive_until(websocket, "ack", "state")
            assert found["ack"] == {"type": "ack", "action": "start", "applied": True}
            assert found["state"]["data"]["mode"] == "TRAINING"

    def test_unknown_message_type(self, client):
        with client.websocket_connect("/ws/telemetry") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "rewind"})
            error = receive_until(websocket, "error")["error"]
            assert "rewind" in error["message"]

    def test_invalid_json(self, client):
        with client.websocket_connect("/ws/telemetry") as websocket:
            websocket.receive_json()
            websocket.send_text("not json")
            error = receive_until(websocket, "error")["error"]
            assert error["message"] == "Invalid JSON"


class TestHandleControl:
    def test_bad_task_is_reported(self):
        reply = server.handle_control({"type": "start", "task": "nope"})
        assert reply["type"] == "error"

    def test_non_object_message(self):
        assert server.handle_control(["start"])["type"] == "error"


class TestConnectionManager:
    def test_publish_drops_oldest_when_full(self):
        manager = server.ConnectionManager(queue_size=2)
        queue = asyncio.Queue(maxsize=2)
        manager.queues["client"] = queue
        for step in range(3):
            manager.publish(SimulationEvent(EventKind.STEP, {"step": step}))
        assert queue.qsize() == 2
        assert queue.get_nowait()["data"]["step"] == 1


class BrokenSocket:
    async def send_json(self, message):
        raise RuntimeError("socket closed")


class TestSenderTeardown:
    def test_failed_sender_error_is_retrieved(self):
        async def scenario():
            queue = asyncio.Queue()
            queue.put_nowait({"type": "log"})
            sender = asyncio.create_task(server.pump_events(BrokenSocket(), queue))
            await asyncio.sleep(0.01)
            return sender.done(), await server.stop_sender(sender)

        done, error = asyncio.run(scenario())
        assert done is True
        assert isinstance(error, RuntimeError)

    def test_running_sender_is_cancelled_quietly(self):
        async def scenario():
            sender = asyncio.create_task(
                server.pump_events(BrokenSocket(), asyncio.Queue())
            )
            await asyncio.sleep(0)
            error = await server.stop_sender(sender)
            return sender.cancelled(), error

        assert asyncio.run(scenario()) == (True, None)
