# tests/test_api.py
"""
Preview API tests through FastAPI's TestClient.

The global runner is replaced with a delay-free engine and rate limiting is
switched off for the duration of each test.
"""
import pytest
from fastapi.testclient import TestClient

from chatflow import main
from chatflow.core.delay_policy import NoDelayPolicy
from chatflow.core.flow_engine import FlowEngine
from chatflow.core.orchestrator import init_runner


QUESTION_FLOW = {
    "flow_id": "flow-1",
    "nodes": [
        {"id": "start", "type": "start", "position_x": 0, "position_y": 0, "data": {}},
        {"id": "ask", "type": "question", "data": {
            "question": "Qual seu nome?", "variable": "nome", "options": ["Ana", "Bruno"],
        }},
        {"id": "tag", "type": "action", "data": {"actionType": "add_tag", "config": {"tagName": "lead"}}},
        {"id": "bye", "type": "message", "data": {"message": "Tchau {{nome}}"}},
        {"id": "end", "type": "end", "data": {}},
    ],
    "edges": [
        {"id": "e1", "source_node_id": "start", "target_node_id": "ask"},
        {"id": "e2", "source_node_id": "ask", "target_node_id": "tag"},
        {"id": "e3", "source_node_id": "tag", "target_node_id": "bye"},
        {"id": "e4", "source_node_id": "bye", "target_node_id": "end"},
    ],
}


@pytest.fixture
def client():
    init_runner(flow_engine=FlowEngine(delay_policy=NoDelayPolicy()))
    main.limiter.enabled = False
    yield TestClient(main.app)
    main.limiter.enabled = True


def start_flow(client, payload=QUESTION_FLOW):
    response = client.post("/flows/test", json=payload)
    assert response.status_code == 200
    return response.json()


@pytest.mark.unit
class TestHealthEndpoints:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health(self, client):
        data = client.get("/health").json()

        assert data["overall"] == "healthy"
        assert data["crm_recorders"] == 0
        assert data["summary"]["max_steps"] == 500


@pytest.mark.unit
class TestFlowRuns:

    def test_start_suspends_at_question(self, client):
        data = start_flow(client)

        assert data["status"] == "awaiting_input"
        assert data["pending_variable"] == "nome"
        assert data["options"] == ["Ana", "Bruno"]
        assert [e["role"] for e in data["transcript"]] == ["system", "bot"]

    def test_option_completes_run(self, client):
        session_id = start_flow(client)["session_id"]

        response = client.post(f"/sessions/{session_id}/option", json={"option": "Ana"})

        data = response.json()
        assert data["status"] == "ended"
        assert data["end_reason"] == "completed"
        assert data["variables"] == {"nome": "Ana"}
        assert "Tchau Ana" in [e["text"] for e in data["transcript"]]
        assert data["crm"]["tags"] == ["lead"]

    def test_sessions_do_not_share_crm_state(self, client):
        finished = start_flow(client)["session_id"]
        client.post(f"/sessions/{finished}/option", json={"option": "Ana"})

        other = start_flow(client)

        assert other["crm"] == {"tags": [], "funnel_id": None, "stage_id": None, "handoffs": [], "operations": 0}
        assert client.get(f"/sessions/{finished}").json()["crm"]["tags"] == ["lead"]

    def test_reply_after_end_conflicts(self, client):
        session_id = start_flow(client)["session_id"]
        client.post(f"/sessions/{session_id}/reply", json={"text": "Bruno"})

        response = client.post(f"/sessions/{session_id}/reply", json={"text": "de novo"})

        assert response.status_code == 409
        assert response.json()["status"] == "ended"

    def test_reset_starts_new_session(self, client):
        first = start_flow(client)
        client.post(f"/sessions/{first['session_id']}/reply", json={"text": "Bruno"})

        response = client.post(f"/sessions/{first['session_id']}/reset")

        second = response.json()
        assert second["session_id"] != first["session_id"]
        assert second["variables"] == {}
        assert client.get(f"/sessions/{first['session_id']}").status_code == 404

    def test_get_and_delete_session(self, client):
        session_id = start_flow(client)["session_id"]

        assert client.get(f"/sessions/{session_id}").json()["current_node_id"] == "ask"
        assert client.delete(f"/sessions/{session_id}").json() == {"deleted": True, "session_id": session_id}
        assert client.delete(f"/sessions/{session_id}").status_code == 404

    def test_unknown_session(self, client):
        response = client.post("/sessions/nope/reply", json={"text": "oi"})

        assert response.status_code == 404
        assert response.json()["session_id"] == "nope"

    def test_missing_start_node_is_reported_not_rejected(self, client):
        data = start_flow(client, {"nodes": [{"id": "m", "type": "message", "data": {"message": "oi"}}], "edges": []})

        assert data["status"] == "ended"
        assert data["end_reason"] == "configuration_error"
        assert data["transcript"][0]["event"] == "no_start_node"

    def test_undecodable_node_is_rejected(self, client):
        response = client.post("/flows/test", json={"nodes": [{"type": "message", "data": {}}], "edges": []})

        assert response.status_code == 422
        assert response.json()["field"] == "id"

    def test_start_override(self, client):
        payload = dict(QUESTION_FLOW, start_node_id="bye")

        data = start_flow(client, payload)

        assert data["transcript"][0]["text"] == "Tchau {{nome}}"
        assert data["end_reason"] == "completed"
