"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from reportstudio.api.server import app, get_completion_client, get_executor

pytestmark = pytest.mark.integration


@pytest.fixture
def api(mock_client, executor):
    app.dependency_overrides[get_completion_client] = lambda: mock_client
    app.dependency_overrides[get_executor] = lambda: executor
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self, api):
        resp = api.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
        assert resp.headers["X-Request-ID"]

    def test_request_id_echoed(self, api):
        resp = api.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    def test_info(self, api):
        data = api.get("/info").json()
        assert data["app"] == "Reporting Studio NLQ API"
        assert "model" in data


class TestGenerate:
    """Tests for POST /nlq/generate."""

    def test_empty_question(self, api, mock_client):
        resp = api.post("/nlq/generate", json={"question": " ", "tenantId": "t1"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == {"error": "Question is required"}
        mock_client.complete.assert_not_called()

    def test_rejected_question(self, api, mock_client):
        resp = api.post("/nlq/generate", json={"question": "What is artificial intelligence?", "tenantId": "t1"})
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["error"] == "This question does not appear to be about your application data"
        assert detail["suggestion"]
        mock_client.complete.assert_not_called()

    def test_missing_tenant(self, api, sample_question):
        resp = api.post("/nlq/generate", json={"question": sample_question})
        assert resp.status_code == 400
        assert resp.json()["detail"] == {"error": "Tenant ID is required for query generation"}

    def test_generate(self, api, mock_client, sample_question):
        mock_client.complete.return_value = "SELECT COUNT(*) FROM opportunities WHERE status = 'WON'"
        resp = api.post("/nlq/generate", json={
            "question": sample_question,
            "tenantId": "tid-42",
            "schema": {"tables": [{
                "name": "SalesOpportunity",
                "columns": [{"name": "status", "type": "varchar"}, {"name": "tenantId", "type": "varchar"}],
            }]},
        })

        assert resp.status_code == 200
        data = resp.json()
        assert data["sql"] == (
            "SELECT COUNT(*) FROM \"SalesOpportunity\" WHERE status = 'WON' "
            "AND \"SalesOpportunity\".\"tenantId\" = 'tid-42'"
        )
        assert data["confidence"] > 0.5
        assert data["suggestedVisualization"] == "table"
        assert data["confidenceDetails"]["schemaMatch"] == 1.0
        assert "error" not in data

    def test_default_schema_in_prompt(self, api, mock_client, sample_question):
        mock_client.complete.return_value = 'SELECT * FROM "SalesOpportunity"'
        api.post("/nlq/generate", json={"question": sample_question, "tenantId": "t1"})
        prompt = mock_client.complete.call_args[0][0][1]["content"]
        assert "Table: SalesLead" in prompt
        assert "Table: SalesAccount" in prompt

    def test_generation_error(self, api, mock_client, sample_question):
        mock_client.complete.return_value = 'DROP TABLE "SalesOpportunity"'
        resp = api.post("/nlq/generate", json={"question": sample_question, "tenantId": "t1"})
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["error"] == "DANGEROUS_OPERATION"
        assert "DROP" in detail["explanation"]

    def test_generate_and_execute(self, api, mock_client, sample_question):
        mock_client.complete.return_value = (
            "SELECT name FROM \"SalesOpportunity\" WHERE status = 'WON' ORDER BY name"
        )
        resp = api.post("/nlq/generate", json={
            "question": sample_question, "tenantId": "t2", "execute": True,
        })

        assert resp.status_code == 200
        data = resp.json()
        assert data["columns"] == ["name"]
        assert data["rows"] == [{"name": "Globex expansion"}, {"name": "Shadow deal"}]
        assert data["rowCount"] == 2
        assert data["truncated"] is False

    def test_execute_database_error(self, api, mock_client, sample_question):
        mock_client.complete.return_value = 'SELECT * FROM "Quote"'
        resp = api.post("/nlq/generate", json={
            "question": sample_question, "tenantId": "t1", "execute": True,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["error"] == "Query execution failed"
        assert "Quote" in data["executionError"]
        assert data["rows"] == []


class TestRefine:
    """Tests for POST /nlq/refine."""

    def test_refine(self, api, mock_client):
        mock_client.complete.return_value = 'SELECT name FROM "SalesLead" ORDER BY name'
        resp = api.post("/nlq/refine", json={
            "originalQuestion": "List all leads",
            "originalSQL": 'SELECT name FROM "SalesLead"',
            "userFeedback": "needs_improvement",
            "correctedSQL": 'SELECT name FROM "SalesLead" ORDER BY name',
            "tenantId": "t1",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["sql"] == (
            "SELECT name FROM \"SalesLead\" WHERE \"SalesLead\".\"tenantId\" = 't1' ORDER BY name"
        )
        assert data["explanation"] == "Query refined based on feedback"

    def test_refine_failure_keeps_original(self, api, mock_client):
        mock_client.complete.side_effect = RuntimeError("upstream unavailable")
        resp = api.post("/nlq/refine", json={
            "originalQuestion": "List all leads",
            "originalSQL": 'SELECT name FROM "SalesLead"',
            "tenantId": "t1",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["sql"] == 'SELECT name FROM "SalesLead"'
        assert data["confidence"] == 0.5
        assert data["error"] == "upstream unavailable"

    def test_refine_missing_tenant(self, api, mock_client):
        resp = api.post("/nlq/refine", json={
            "originalQuestion": "List all leads",
            "originalSQL": 'SELECT name FROM "SalesLead"',
        })
        assert resp.status_code == 400
        assert resp.json()["detail"] == {"error": "Tenant ID is required for query refinement"}
        mock_client.complete.assert_not_called()

    def test_refine_hidden_predicate_keeps_original(self, api, mock_client):
        """Test a refinement that would comment out the tenant predicate is not returned."""
        mock_client.complete.return_value = (
            "SELECT name FROM \"SalesLead\" l WHERE l.name = 'x\\' OR 1=1 -- '"
        )
        resp = api.post("/nlq/refine", json={
            "originalQuestion": "List all leads",
            "originalSQL": 'SELECT name FROM "SalesLead"',
            "tenantId": "t1",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["sql"] == 'SELECT name FROM "SalesLead"'
        assert data["error"] == "TENANT_FILTER_ERROR"


class TestOtherEndpoints:
    """Tests for validate, suggestions and confidence."""

    def test_validate(self, api):
        assert api.post("/nlq/validate", json={"question": "Show me all leads"}).json() == {"valid": True}
        data = api.post("/nlq/validate", json={"question": "How do I cook pasta?"}).json()
        assert data["valid"] is False
        assert data["reason"] == "This question format is not supported"

    def test_suggestions(self, api, sample_schema_dict):
        resp = api.post("/nlq/suggestions", json={"schema": sample_schema_dict, "limit": 3})
        assert resp.status_code == 200
        assert len(resp.json()["suggestions"]) == 3

    def test_suggestions_default_schema(self, api):
        suggestions = api.post("/nlq/suggestions", json={}).json()["suggestions"]
        assert len(suggestions) == 5
        assert suggestions[0]["question"] == "How many records are in SalesLead?"

    def test_suggestions_limit_validated(self, api):
        assert api.post("/nlq/suggestions", json={"limit": 500}).status_code == 422

    def test_confidence(self, api):
        data = api.post("/nlq/confidence", json={"sql": 'SELECT * FROM "Task"'}).json()
        assert data["overall"] == pytest.approx(0.8)
        assert data["factors"]["tableCount"] == 1
