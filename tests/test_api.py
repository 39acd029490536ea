"""
Tests for the FastAPI endpoints.
"""

import pytest
import asyncio
from typing import Any, Dict

from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from starlette.websockets import WebSocketDisconnect

from researchflow.engine.agents import AgentContext, AgentRegistry
from researchflow.engine.executor import WorkflowEngine
from researchflow.main import app, create_app


RESEARCH_STAGES = [
    "query_analyzer",
    "web_searcher",
    "source_validator",
    "content_analyzer",
    "article_writer",
    "quality_reviewer",
]


# ============================================================
# Sync Test Client (for simple tests)
# ============================================================

client = TestClient(app)


def stub_registry(delay: float = 0.0, **overrides) -> AgentRegistry:
    """Registry with a stub for every research stage."""
    registry = AgentRegistry()

    def make(name):
        async def agent(context: AgentContext) -> Dict[str, Any]:
            if delay:
                await asyncio.sleep(delay)
            return {f"{name}_done": True}
        return agent

    for name in RESEARCH_STAGES:
        registry.add(overrides.get(name) or make(name), name=name)
    return registry


@pytest.fixture
def engine():
    return WorkflowEngine(agents=stub_registry())


@pytest.fixture
def stub_client(engine):
    return TestClient(create_app(engine))


class TestRootEndpoints:
    """Tests for root endpoints."""

    def test_root(self):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert "name" in data
        assert "version" in data
        assert "endpoints" in data
        assert data["default_graph"] == "research_canvas"

    def test_health(self):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["graphs_count"] >= 1


class TestAgentEndpoints:
    """Tests for agent endpoints."""

    def test_list_agents(self):
        """Test the built-in research agents are listed."""
        response = client.get("/agents/")
        assert response.status_code == 200

        data = response.json()
        names = [a["name"] for a in data["agents"]]
        for stage in RESEARCH_STAGES:
            assert stage in names
        assert data["total"] == len(data["agents"])

    def test_get_agent(self):
        response = client.get("/agents/web_searcher")
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "web_searcher"
        assert data["description"]
        assert data["isAsync"] is False

    def test_get_nonexistent_agent(self):
        response = client.get("/agents/nonexistent_agent")
        assert response.status_code == 404


class TestGraphEndpoints:
    """Tests for graph endpoints."""

    def test_list_graphs(self):
        """Test listing graphs."""
        response = client.get("/graphs/")
        assert response.status_code == 200

        data = response.json()
        assert "graphs" in data
        assert data["total"] >= 1
        assert "research_canvas" in [g["id"] for g in data["graphs"]]

    def test_get_research_canvas(self):
        """Test getting the built-in research graph."""
        response = client.get("/graphs/research_canvas")
        assert response.status_code == 200

        data = response.json()
        assert data["entryNode"] == "query_analyzer"
        assert data["nodeCount"] == 6
        assert [n["id"] for n in data["nodes"]] == RESEARCH_STAGES
        assert data["mermaidDiagram"].startswith("graph TD")

    def test_get_nonexistent_graph(self):
        response = client.get("/graphs/nonexistent-graph")
        assert response.status_code == 404

    def test_create_graph(self, stub_client):
        """Test registering a new graph and running it."""
        graph_data = {
            "id": "short_research",
            "name": "Short Research",
            "entryNode": "analyze",
            "nodes": [
                {"id": "analyze", "agent": "query_analyzer"},
                {
                    "id": "search",
                    "agent": "web_searcher",
                    "dependencies": ["analyze"],
                    "timeoutSeconds": 5,
                    "retryPolicy": {"maxAttempts": 2, "delaySeconds": 0},
                },
            ],
        }

        response = stub_client.post("/graphs/", json=graph_data)
        assert response.status_code == 201

        data = response.json()
        assert data["id"] == "short_research"
        assert data["nodeCount"] == 2
        assert data["edges"] == [{"from": "analyze", "to": "search", "condition": None}]
        assert data["nodes"][1]["retry_policy"] == {"max_attempts": 2, "delay_seconds": 0.0}

        response = stub_client.post("/workflows/start", json={
            "graphId": "short_research",
            "input": {"query": "q"},
            "wait": True,
        })
        assert response.status_code == 200
        workflow = response.json()["workflow"]
        assert workflow["status"] == "completed"
        assert workflow["completedNodes"] == ["analyze", "search"]

    def test_create_cyclic_graph(self, stub_client):
        """Test a dependency cycle is rejected."""
        graph_data = {
            "id": "loop",
            "name": "Loop",
            "entryNode": "a",
            "nodes": [
                {"id": "a", "agent": "query_analyzer"},
                {"id": "b", "agent": "web_searcher", "dependencies": ["a", "c"]},
                {"id": "c", "agent": "source_validator", "dependencies": ["b"]},
            ],
        }

        response = stub_client.post("/graphs/", json=graph_data)
        assert response.status_code == 400
        assert "cycle" in response.json()["detail"]
        assert stub_client.get("/graphs/loop").status_code == 404

    def test_create_graph_unknown_dependency(self, stub_client):
        graph_data = {
            "id": "broken",
            "name": "Broken",
            "entryNode": "a",
            "nodes": [
                {"id": "a", "agent": "query_analyzer"},
                {"id": "b", "agent": "web_searcher", "dependencies": ["missing"]},
            ],
        }

        response = stub_client.post("/graphs/", json=graph_data)
        assert response.status_code == 400

    def test_create_duplicate_graph(self, stub_client):
        graph_data = {
            "id": "research_canvas",
            "name": "Duplicate",
            "entryNode": "a",
            "nodes": [{"id": "a", "agent": "query_analyzer"}],
        }

        response = stub_client.post("/graphs/", json=graph_data)
        assert response.status_code == 400

    def test_create_graph_unknown_agent(self, stub_client):
        """Test creating a graph with an unregistered agent."""
        graph_data = {
            "id": "ghost",
            "name": "Ghost",
            "entryNode": "bad",
            "nodes": [{"id": "bad", "agent": "nonexistent_agent"}],
        }

        response = stub_client.post("/graphs/", json=graph_data)
        assert response.status_code == 404


class TestWorkflowEndpoints:
    """Tests for workflow endpoints with the sync client."""

    def test_start_and_wait(self, stub_client):
        """Test a waited run returns the completed state."""
        response = stub_client.post("/workflows/start", json={
            "graphId": "research_canvas",
            "input": {"query": "solar power"},
            "wait": True,
        })
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["graphId"] == "research_canvas"
        assert data["status"] == "completed"
        assert data["workflow"]["completedNodes"] == RESEARCH_STAGES
        assert data["workflow"]["globalState"]["query"] == "solar power"
        assert data["workflow"]["globalState"]["quality_reviewer_done"] is True

        response = stub_client.get(f"/workflows/{data['workflowId']}")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_failing_node_reported(self):
        """Test a failing stage is visible in the returned state."""
        async def broken(context: AgentContext) -> Dict[str, Any]:
            raise RuntimeError("search backend down")

        engine = WorkflowEngine(agents=stub_registry(web_searcher=broken))
        test_client = TestClient(create_app(engine))

        response = test_client.post("/workflows/start", json={"input": {}, "wait": True})
        assert response.status_code == 200

        workflow = response.json()["workflow"]
        assert workflow["status"] == "paused"
        assert workflow["completedNodes"] == ["query_analyzer"]
        assert workflow["nodeStates"]["web_searcher"]["status"] == "error"
        assert workflow["nodeStates"]["web_searcher"]["errorKind"] == "AgentExecutionFailure"
        assert "search backend down" in workflow["nodeStates"]["web_searcher"]["error"]
        assert workflow["nodeStates"]["source_validator"]["status"] == "pending"

    def test_start_nonexistent_graph(self, stub_client, engine):
        response = stub_client.post("/workflows/start", json={"graphId": "nonexistent-graph"})
        assert response.status_code == 404
        assert engine.list_workflows() == []

    def test_get_nonexistent_workflow(self, stub_client):
        assert stub_client.get("/workflows/nonexistent").status_code == 404
        assert stub_client.post("/workflows/nonexistent/pause").status_code == 404
        assert stub_client.post("/workflows/nonexistent/resume").status_code == 404

    def test_control_completed_workflow_is_noop(self, stub_client):
        """Test pause and resume on a finished run succeed without effect."""
        workflow_id = stub_client.post(
            "/workflows/start", json={"wait": True}
        ).json()["workflowId"]

        response = stub_client.post(f"/workflows/{workflow_id}/pause")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "completed"
        assert "nothing to pause" in data["message"]

        response = stub_client.post(f"/workflows/{workflow_id}/resume")
        assert response.json()["status"] == "completed"

    def test_list_workflows(self, stub_client):
        stub_client.post("/workflows/start", json={"wait": True})
        stub_client.post("/workflows/start", json={"wait": True})

        data = stub_client.get("/workflows/").json()
        assert data["total"] == 2
        assert all(w["graphId"] == "research_canvas" for w in data["workflows"])

    def test_list_workflows_by_graph(self, stub_client):
        stub_client.post("/graphs/", json={
            "id": "quick",
            "name": "Quick",
            "entryNode": "analyze",
            "nodes": [{"id": "analyze", "agent": "query_analyzer"}],
        })
        quick_id = stub_client.post(
            "/workflows/start", json={"graphId": "quick", "wait": True}
        ).json()["workflowId"]
        stub_client.post("/workflows/start", json={"wait": True})

        data = stub_client.get("/workflows/", params={"graph_id": "quick"}).json()
        assert data["total"] == 1
        assert data["workflows"][0]["id"] == quick_id

        assert stub_client.get("/workflows/").json()["total"] == 2
        assert stub_client.get("/workflows/", params={"graph_id": "other"}).json()["total"] == 0

    def test_delete_workflow(self, stub_client):
        workflow_id = stub_client.post(
            "/workflows/start", json={"wait": True}
        ).json()["workflowId"]

        response = stub_client.delete(f"/workflows/{workflow_id}")
        assert response.status_code == 204

        assert stub_client.get(f"/workflows/{workflow_id}").status_code == 404
        assert stub_client.get("/workflows/").json()["total"] == 0
        assert stub_client.delete(f"/workflows/{workflow_id}").status_code == 404

    def test_delete_nonexistent_workflow(self, stub_client):
        assert stub_client.delete("/workflows/nonexistent").status_code == 404


# ============================================================
# Async Tests (for background runs)
# ============================================================

@pytest.mark.asyncio
async def test_start_returns_before_completion():
    """Test start answers immediately and the run continues in the background."""
    engine = WorkflowEngine(agents=stub_registry(delay=0.01))
    transport = ASGITransport(app=create_app(engine))

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post("/workflows/start", json={"input": {"query": "q"}})
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "running"
        assert data["workflow"] is None

        await engine.wait_for_workflow(data["workflowId"], timeout=5)

        state = (await ac.get(f"/workflows/{data['workflowId']}")).json()
        assert state["status"] == "completed"
        assert state["completedNodes"] == RESEARCH_STAGES
        assert state["endTime"] is not None


@pytest.mark.asyncio
async def test_pause_and_resume():
    """Test pausing over HTTP while a node is in flight, then resuming."""
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow(context: AgentContext) -> Dict[str, Any]:
        started.set()
        await release.wait()
        return {"analyzed": True}

    engine = WorkflowEngine(agents=stub_registry(query_analyzer=slow))
    transport = ASGITransport(app=create_app(engine))

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        workflow_id = (await ac.post("/workflows/start", json={})).json()["workflowId"]
        await started.wait()

        response = await ac.post(f"/workflows/{workflow_id}/pause")
        assert response.json()["status"] == "paused"
        assert response.json()["message"] == "Workflow paused"

        release.set()
        await engine.wait_for_workflow(workflow_id, timeout=5)

        state = (await ac.get(f"/workflows/{workflow_id}")).json()
        assert state["status"] == "paused"
        assert state["completedNodes"] == ["query_analyzer"]
        assert state["nodeStates"]["web_searcher"]["status"] == "pending"

        response = await ac.post(f"/workflows/{workflow_id}/resume")
        assert response.json()["message"] == "Workflow resumed"

        await engine.wait_for_workflow(workflow_id, timeout=5)
        state = (await ac.get(f"/workflows/{workflow_id}")).json()
        assert state["status"] == "completed"


@pytest.mark.asyncio
async def test_research_pipeline_over_http():
    """Test the default app runs the built-in research agents end to end."""
    engine = app.state.engine
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post("/workflows/start", json={
            "graphId": "research_canvas",
            "input": {"query": "Benefits of urban tree planting"},
        })
        workflow_id = response.json()["workflowId"]
        await engine.wait_for_workflow(workflow_id, timeout=10)

        state = (await ac.get(f"/workflows/{workflow_id}")).json()
        assert state["status"] == "completed"
        assert state["globalState"]["article"].startswith("# ")
        assert "overall_score" in state["globalState"]


# ============================================================
# WebSocket Tests
# ============================================================

class TestWebSocket:
    """Tests for the workflow subscription WebSocket."""

    def test_stream_until_completed(self):
        engine = WorkflowEngine(agents=stub_registry(delay=0.02))

        with TestClient(create_app(engine)) as ws_client:
            workflow_id = ws_client.post(
                "/workflows/start", json={"input": {"query": "q"}}
            ).json()["workflowId"]

            messages = []
            with ws_client.websocket_connect(f"/ws/workflows/{workflow_id}") as websocket:
                while True:
                    message = websocket.receive_json()
                    messages.append(message)
                    if message["type"] == "settled":
                        break

        assert messages[0]["type"] == "current_state"
        assert messages[0]["workflow"]["id"] == workflow_id
        assert messages[-1] == {"type": "settled", "status": "completed"}

        states = [m["workflow"] for m in messages if "workflow" in m]
        assert states[-1]["status"] == "completed"
        assert states[-1]["completedNodes"] == RESEARCH_STAGES
        for update in messages[1:-1]:
            assert update["type"] in ("state_update", "keepalive")

    def test_unknown_workflow(self):
        engine = WorkflowEngine(agents=stub_registry())

        with TestClient(create_app(engine)) as ws_client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with ws_client.websocket_connect("/ws/workflows/unknown"):
                    pass

        assert exc_info.value.code == 4004
