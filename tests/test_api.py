"""
Tests for the HTTP API, driven through FastAPI's TestClient against the
in-memory broker.
"""

import time

import pytest
from fastapi.testclient import TestClient

from topology_api.main import create_app
from topology_engine.adapters.memory_broker import InMemoryBroker
from topology_engine.config.settings import BACKEND_MEMORY, Settings
from topology_engine.core.exceptions import BrokerError


class UnreachableBroker(InMemoryBroker):

    async def get_current_topology(self):
        raise BrokerError("management API unreachable")

    async def health_check(self):
        return False


def _make_client(broker, sink=None):
    return TestClient(create_app(broker=broker, sink=sink, settings=Settings(broker_backend=BACKEND_MEMORY)))


@pytest.fixture
def client(memory_broker):
    with _make_client(memory_broker) as client:
        yield client


def _wait_for_completion(client, simulation_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        status = client.get(f"/api/v1/simulations/{simulation_id}/status").json()
        if status["state"] not in ("Initializing", "Running"):
            return status
        time.sleep(0.02)
    raise AssertionError(f"simulation {simulation_id} did not finish")


def _dead_letter_one(broker):
    broker.publish("orders", "orders.created", {}, b"payload", "m1")
    broker.dead_letter("orders.created", "m1")


class TestHealth:

    def test_root(self, client):
        data = client.get("/").json()
        assert data["status"] == "running"
        assert data["endpoints"]["health"] == "/health"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["broker_connected"] is True
        assert data["message"] is None

    def test_broker_down_is_still_healthy(self, sample_topology):
        with _make_client(UnreachableBroker(sample_topology)) as client:
            data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["broker_connected"] is False


class TestTopologyEndpoints:

    def test_validate(self, client, sample_topology_data):
        response = client.post("/api/v1/topology/validate", json=sample_topology_data)
        assert response.status_code == 200
        assert response.json() == {"is_valid": True, "errors": [], "warnings": []}

    def test_validate_reports_errors(self, client, sample_topology_data):
        sample_topology_data["bindings"].append({"sourceExchange": "ghost", "destination": "orders.all"})
        data = client.post("/api/v1/topology/validate", json=sample_topology_data).json()
        assert data["is_valid"] is False
        assert "Binding references non-existent exchange 'ghost'" in data["errors"]

    def test_unknown_exchange_type_is_bad_request(self, client):
        response = client.post("/api/v1/topology/validate",
                               json={"name": "t", "exchanges": [{"name": "e", "type": "Bogus"}]})
        assert response.status_code == 400

    def test_normalize(self, client, sample_topology_data):
        sample_topology_data["name"] = " Shop "
        data = client.post("/api/v1/topology/normalize", json=sample_topology_data).json()
        assert data["name"] == "shop"
        assert len(data["queues"]) == 5

    def test_analyze(self, client, sample_topology_data):
        data = client.post("/api/v1/topology/analyze", json=sample_topology_data).json()
        assert data["summary"]["Error"] == 0
        assert data["summary"]["total"] == len(data["findings"])

    def test_broker_topology(self, client):
        data = client.get("/api/v1/topology/broker", params={"normalize": True}).json()
        assert data["name"] == "shop"
        assert len(data["exchanges"]) == 4

    def test_broker_failure_is_bad_gateway(self, sample_topology):
        with _make_client(UnreachableBroker(sample_topology)) as client:
            response = client.get("/api/v1/topology/broker")
        assert response.status_code == 502
        assert response.json() == {"detail": "management API unreachable"}


class TestSimulationEndpoints:

    def test_start_and_complete(self, client, memory_broker):
        response = client.post("/api/v1/simulations/start", json={
            "routing_key_pattern": "orders.created", "message_count": 20,
            "concurrent_publishers": 2, "seed": 1,
        })
        assert response.status_code == 200
        simulation_id = response.json()["simulation_id"]

        status = _wait_for_completion(client, simulation_id)
        assert status["state"] == "Completed"
        assert status["messages_published"] == 20
        assert status["routable_queues"] == ["orders.created", "orders.all"]
        assert memory_broker.depth("orders.created") == 20

        listing = client.get("/api/v1/simulations").json()
        assert listing["count"] == 1
        assert listing["simulations"][0]["simulation_id"] == simulation_id

    def test_start_with_inline_topology(self, client, sample_topology_data):
        response = client.post("/api/v1/simulations/start", json={
            "topology": sample_topology_data,
            "routing_key_pattern": "payments.process", "message_count": 3,
        })
        status = _wait_for_completion(client, response.json()["simulation_id"])
        assert status["routable_queues"] == ["payments.process"]

    def test_unknown_exchange_is_bad_request(self, client):
        response = client.post("/api/v1/simulations/start", json={"routing_key_pattern": "missing.key"})
        assert response.status_code == 400

    def test_invalid_count_is_bad_request(self, client):
        response = client.post("/api/v1/simulations/start",
                               json={"routing_key_pattern": "orders.created", "message_count": 0})
        assert response.status_code == 400

    def test_stop(self, client):
        response = client.post("/api/v1/simulations/start", json={
            "routing_key_pattern": "orders.created", "message_count": 1000,
            "publish_rate_per_second": 5.0,
        })
        simulation_id = response.json()["simulation_id"]
        stopped = client.post(f"/api/v1/simulations/{simulation_id}/stop").json()
        assert stopped["state"] == "Stopped"
        assert stopped["end_time"] is not None

    def test_unknown_simulation(self, client):
        assert client.get("/api/v1/simulations/nope/status").status_code == 404
        assert client.post("/api/v1/simulations/nope/stop").status_code == 404

    def test_websocket_streams_updates(self, client):
        with client.websocket_connect("/api/v1/simulations/ws") as websocket:
            response = client.post("/api/v1/simulations/start", json={
                "routing_key_pattern": "orders.created", "message_count": 5,
            })
            simulation_id = response.json()["simulation_id"]
            states = []
            while "Completed" not in states:
                update = websocket.receive_json()
                assert update["simulation_id"] == simulation_id
                states.append(update["state"])
        assert states[-1] == "Completed"


class TestDebugEndpoints:

    def test_dead_letters(self, client, memory_broker):
        _dead_letter_one(memory_broker)
        data = client.get("/api/v1/debug/dead-letters").json()
        assert data["count"] == 1
        message = data["messages"][0]
        assert message["message_id"] == "m1"
        assert message["source_queue"] == "orders.dlq"
        assert message["original_exchange"] == "orders"

    def test_dead_letters_limit_is_bounded(self, client):
        assert client.get("/api/v1/debug/dead-letters", params={"limit": 0}).status_code == 422

    def test_trace(self, client, memory_broker):
        _dead_letter_one(memory_broker)
        data = client.get("/api/v1/debug/trace/m1").json()
        assert data["was_dead_lettered"] is True
        assert data["final_queue"] == "orders.dlq"
        assert data["exchanges_visited"] == ["orders"]
        assert data["dead_letter_details"]["original_routing_key"] == "orders.created"

    def test_trace_unknown_message(self, client):
        response = client.get("/api/v1/debug/trace/ghost")
        assert response.status_code == 404
        assert response.json() == {"detail": "Message 'ghost' not found in any queue"}

    def test_requeue(self, client, memory_broker):
        _dead_letter_one(memory_broker)
        data = client.post("/api/v1/debug/requeue/m1").json()
        assert data["requeued"] is True
        assert data["message"]["original_exchange"] == "orders"
        assert memory_broker.depth("orders.dlq") == 0
        assert memory_broker.depth("orders.created") == 1

    def test_requeue_unknown_message(self, client):
        assert client.post("/api/v1/debug/requeue/ghost").status_code == 404
