"""Tests for the batch query HTTP API."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from query_bridge.api.routes.query import render_outcome
from query_bridge.config import reset_settings
from query_bridge.main import app
from query_bridge.models.query import BatchShapeError, QueryErrorEntry, parse_queries
from query_bridge.query.engine import reset_engine
from query_bridge.query.models import ConnectivityError, QueryError, QueryRows


@pytest.fixture(autouse=True)
def clean_state(monkeypatch: pytest.MonkeyPatch):
    """Point the app at an in-memory database and reset global state."""
    monkeypatch.setenv("QUERY_BRIDGE_DATABASE__DSN", ":memory:")
    monkeypatch.delenv("QUERY_BRIDGE_CONFIG", raising=False)
    reset_settings()
    reset_engine()
    yield
    reset_settings()
    reset_engine()


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


class TestRequestModels:
    """Tests for request decoding and response models."""

    def test_parse_queries(self):
        assert parse_queries(["SELECT 1", "SELECT 2"]) == ["SELECT 1", "SELECT 2"]

    def test_parse_queries_empty(self):
        assert parse_queries([]) == []

    def test_parse_queries_not_array(self):
        with pytest.raises(BatchShapeError, match="Not a JSON array"):
            parse_queries({"sql": "SELECT 1"})

    def test_parse_queries_not_strings(self):
        with pytest.raises(BatchShapeError, match="Not an array of strings"):
            parse_queries(["SELECT 1", 2])

    def test_error_entry_uses_wire_name(self):
        entry = QueryErrorEntry(error="boom")
        assert entry.model_dump(by_alias=True) == {"Error": "boom"}

    def test_outcome_wire_shapes(self):
        assert render_outcome(QueryRows([{"n": 1}])) == [{"n": 1}]
        assert render_outcome(QueryRows([])) == []
        assert render_outcome(QueryError("boom")) == [{"Error": "boom"}]


class TestExecuteBatchEndpoint:
    """Tests for POST /."""

    def test_single_select(self, client: TestClient):
        response = client.post("/", json=["SELECT 1 AS n"])

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.json() == [[{"n": 1}]]

    def test_mixed_types(self, client: TestClient):
        response = client.post(
            "/", json=["SELECT 1.5::DOUBLE AS f, 2::INTEGER AS i, 'x' AS s"]
        )

        assert response.status_code == 200
        assert response.json() == [[{"f": 1.5, "i": 2, "s": "x"}]]
        assert "2.0" not in response.text

    def test_missing_table(self, client: TestClient):
        response = client.post("/", json=["SELECT * FROM nonexistent_table"])

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 1
        assert len(body[0]) == 1
        assert body[0][0]["Error"].startswith("Can't execute query: ")

    def test_failure_isolated(self, client: TestClient):
        response = client.post("/", json=["SELECT * FROM nonexistent_table", "SELECT 2 AS n"])

        body = response.json()
        assert len(body) == 2
        assert "Error" in body[0][0]
        assert body[1] == [{"n": 2}]

    def test_order_preserved(self, client: TestClient):
        queries = [f"SELECT {i} AS n" for i in range(5)]

        response = client.post("/", json=queries)

        assert response.json() == [[{"n": i}] for i in range(5)]

    def test_batch_shares_one_session(self, client: TestClient):
        """Test writes made earlier in a batch are visible to later queries."""
        response = client.post(
            "/",
            json=[
                "CREATE TABLE t (i INTEGER)",
                "INSERT INTO t VALUES (7)",
                "SELECT i FROM t",
            ],
        )

        assert response.status_code == 200
        assert response.json() == [[], [], [{"i": 7}]]

    def test_writes_return_empty_lists(self, client: TestClient):
        response = client.post(
            "/",
            json=[
                "CREATE TABLE t (i INTEGER)",
                "INSERT INTO t VALUES (1)",
                "UPDATE t SET i = 2",
                "DELETE FROM t",
            ],
        )

        assert response.status_code == 200
        assert response.json() == [[], [], [], []]

    def test_runtime_failure_isolated(self, client: TestClient):
        response = client.post("/", json=["SELECT 'abc'::INTEGER AS n", "SELECT 2 AS n"])

        body = response.json()
        assert body[0][0]["Error"].startswith("Can't execute query: ")
        assert body[1] == [{"n": 2}]

    def test_sessions_not_shared_between_requests(self, client: TestClient):
        client.post("/", json=["CREATE TABLE t (i INTEGER)"])

        response = client.post("/", json=["SELECT * FROM t"])

        assert "Error" in response.json()[0][0]

    def test_empty_batch_opens_no_session(self, client: TestClient):
        mock_engine = MagicMock()

        with patch("query_bridge.api.routes.query.get_engine", return_value=mock_engine):
            response = client.post("/", json=[])

        assert response.status_code == 200
        assert response.json() == []
        mock_engine.session.assert_not_called()

    def test_invalid_json(self, client: TestClient):
        response = client.post("/", content=b"SELECT 1")

        assert response.status_code == 400
        assert response.text

    def test_empty_body(self, client: TestClient):
        response = client.post("/", content=b"")
        assert response.status_code == 400

    def test_not_an_array_is_500(self, client: TestClient):
        """Test a JSON body that is not an array keeps the historical 500 status."""
        response = client.post("/", json={"sql": "SELECT 1"})

        assert response.status_code == 500
        assert response.text == "Not a JSON array"

    def test_not_strings_is_500(self, client: TestClient):
        """Test a non-string element keeps the historical 500 status."""
        response = client.post("/", json=["SELECT 1", 42])

        assert response.status_code == 500
        assert response.text == "Not an array of strings"

    def test_connectivity_failure(self, client: TestClient):
        mock_engine = MagicMock()
        mock_engine.session.side_effect = ConnectivityError("Can't connect to database: refused")

        with patch("query_bridge.api.routes.query.get_engine", return_value=mock_engine):
            response = client.post("/", json=["SELECT 1"])

        assert response.status_code == 500
        assert response.text == "Can't connect to database: refused"

    def test_missing_dsn(self, client: TestClient, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("QUERY_BRIDGE_DATABASE__DSN")
        reset_settings()
        reset_engine()

        response = client.post("/", json=["SELECT 1"])

        assert response.status_code == 500
        assert "no connection string" in response.text


class TestRouting:
    """Tests for preflight, unknown paths and methods."""

    @pytest.mark.parametrize("path", ["/", "/anything", "/a/b/c"])
    def test_options_anywhere(self, client: TestClient, path: str):
        response = client.options(path)

        assert response.status_code == 204
        assert response.content == b""

    def test_unknown_path(self, client: TestClient):
        assert client.post("/query", json=["SELECT 1"]).status_code == 404
        assert client.get("/anything").status_code == 404

    def test_unknown_path_has_empty_body(self, client: TestClient):
        response = client.get("/anything")

        assert response.status_code == 404
        assert response.content == b""

    def test_docs_disabled(self, client: TestClient):
        assert client.get("/docs").status_code == 404
        assert client.get("/openapi.json").status_code == 404

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
    def test_wrong_method(self, client: TestClient, method: str):
        response = client.request(method, "/")
        assert response.status_code == 405
        assert response.content == b""
        assert "POST" in response.headers["allow"]


class TestMain:
    """Tests for the server entry point."""

    def test_main_exits_without_dsn(self, monkeypatch: pytest.MonkeyPatch):
        from query_bridge import main as main_module

        monkeypatch.delenv("QUERY_BRIDGE_DATABASE__DSN")
        reset_settings()

        with (
            patch("query_bridge.observability.configure_logging"),
            patch("uvicorn.run") as mock_run,
            pytest.raises(SystemExit) as exc_info,
        ):
            main_module.main()

        assert exc_info.value.code == 1
        mock_run.assert_not_called()

    def test_main_runs_server(self, monkeypatch: pytest.MonkeyPatch):
        from query_bridge import main as main_module

        monkeypatch.setenv("QUERY_BRIDGE_SERVER__PORT", "4000")
        reset_settings()

        with (
            patch("query_bridge.observability.configure_logging"),
            patch("uvicorn.run") as mock_run,
        ):
            main_module.main()

        mock_run.assert_called_once()
        assert mock_run.call_args.kwargs["port"] == 4000
