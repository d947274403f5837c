"""Tests for web module."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Skip all tests if FastAPI not installed
fastapi = pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

sys.path.insert(0, str(Path(__file__).parent))

from conftest import TAG, UNIT_DIR, FakeSystemctl, MockFileSystem, make_unit  # noqa: E402

from unit_reconciler.reconciler import Reconciler  # noqa: E402
from unit_reconciler.web import create_app, run_api  # noqa: E402

WORKER_PATH = f"{UNIT_DIR}worker.service"


@pytest.fixture
def client(reconciler: Reconciler) -> TestClient:
    """TestClient around an app bound to the mock-backed reconciler.

    Business context:
    The HTTP API is how deployment pipelines drive reconciliation;
    tests must exercise it without a real systemd.

    Returns:
        TestClient for the configured app.
    """
    return TestClient(create_app(reconciler))


def _body(environment_file: str | None = "/etc/worker.env", env: dict | None = None) -> dict:
    return {
        "unit": make_unit(environment_file=environment_file).to_dict(),
        "env": env if env is not None else {"PORT": "8080"},
    }


class TestHealth:
    """Tests for /health."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestPutService:
    """Tests for PUT /services/{name}."""

    def test_creates_and_returns_handle(
        self, client: TestClient, mock_fs: MockFileSystem, systemctl: FakeSystemctl
    ) -> None:
        """Verifies a PUT reconciles both files and returns the handle.

        Arrangement:
        Empty filesystem.

        Action:
        PUT /services/worker with a unit referencing /etc/worker.env.

        Assertion Strategy:
        200 with handle JSON; both files tagged; one reload.
        """
        response = client.put("/services/worker", json=_body())

        assert response.status_code == 200
        data = response.json()
        assert data["path"] == WORKER_PATH
        assert data["env"] == {"PORT": "8080"}
        assert (mock_fs.get_file(WORKER_PATH) or "").startswith(f"{TAG}\n")
        assert mock_fs.get_file("/etc/worker.env") == f"{TAG}\nPORT=8080\n"
        assert systemctl.calls == [("daemon_reload",)]

    def test_repeat_put_writes_nothing(
        self, client: TestClient, mock_fs: MockFileSystem, systemctl: FakeSystemctl
    ) -> None:
        """Verifies the HTTP surface keeps the idempotence guarantee."""
        client.put("/services/worker", json=_body())
        mock_fs.mutations.clear()

        response = client.put("/services/worker", json=_body())

        assert response.status_code == 200
        assert mock_fs.mutations == []
        assert systemctl.count("daemon_reload") == 2

    def test_foreign_unit_is_conflict(self, client: TestClient, mock_fs: MockFileSystem) -> None:
        mock_fs.set_file(WORKER_PATH, "[Service]\nExecStart=/bin/true\n")

        response = client.put("/services/worker", json=_body())

        assert response.status_code == 409
        assert response.json()["error"] == "UnitFileNotManagedError"

    def test_foreign_env_is_conflict(self, client: TestClient, mock_fs: MockFileSystem) -> None:
        mock_fs.set_file("/etc/worker.env", "PORT=1\n")

        response = client.put("/services/worker", json=_body())

        assert response.status_code == 409
        assert response.json()["error"] == "EnvFileNotManagedError"

    def test_unknown_unit_field_is_unprocessable(self, client: TestClient) -> None:
        body = {"unit": {"service": {"memory_max": "1G"}}, "env": {}}
        assert client.put("/services/worker", json=body).status_code == 422

    @pytest.mark.parametrize(
        "unit",
        [
            {"unit": {"description": 5}},
            {"unit": {"after": [1, 2]}},
            {"service": "ExecStart=/bin/true"},
        ],
    )
    def test_mistyped_unit_is_unprocessable_not_server_error(
        self, client: TestClient, mock_fs: MockFileSystem, unit: dict
    ) -> None:
        """Verifies wrongly typed unit JSON is a 422, not a 500.

        Business context:
        A pipeline that sends a number where a string belongs made a
        mistake it can fix. A 500 would look like an outage of the
        reconciler instead.

        Arrangement:
        Body whose unit has a non-string value or a non-object section.

        Action:
        PUT /services/worker.

        Assertion Strategy:
        422 with the ValueError name; nothing written.
        """
        response = client.put("/services/worker", json={"unit": unit, "env": {}})

        assert response.status_code == 422
        assert response.json()["error"] == "ValueError"
        assert mock_fs.mutations == []

    def test_invalid_env_name_is_unprocessable(self, client: TestClient) -> None:
        response = client.put("/services/worker", json=_body(env={"BAD-NAME": "x"}))
        assert response.status_code == 422
        assert response.json()["error"] == "EncodeError"

    def test_reload_failure_is_bad_gateway(self, mock_fs: MockFileSystem) -> None:
        """Verifies systemctl failures surface as 502."""
        app = create_app(Reconciler(FakeSystemctl(fail_on="daemon_reload"), UNIT_DIR, mock_fs))

        response = TestClient(app).put("/services/worker", json=_body())

        assert response.status_code == 502
        assert response.json()["error"] == "ManagerError"


class TestGetService:
    """Tests for GET /services/{name}."""

    def test_absent(self, client: TestClient) -> None:
        response = client.get("/services/worker")
        assert response.status_code == 200
        assert response.json()["unit_file"] == "absent"

    def test_managed(self, client: TestClient) -> None:
        client.put("/services/worker", json=_body())

        data = client.get("/services/worker").json()

        assert data["unit_file"] == "managed"
        assert data["env_file"] == "managed"
        assert data["env_path"] == "/etc/worker.env"


class TestDeleteService:
    """Tests for DELETE /services/{name}."""

    def test_deletes_managed(
        self, client: TestClient, mock_fs: MockFileSystem, systemctl: FakeSystemctl
    ) -> None:
        client.put("/services/worker", json=_body())

        response = client.delete("/services/worker")

        assert response.status_code == 204
        assert mock_fs.get_file(WORKER_PATH) is None
        assert mock_fs.get_file("/etc/worker.env") is not None
        assert ("disable", "worker.service", True) in systemctl.calls

    def test_missing_is_not_found(self, client: TestClient) -> None:
        assert client.delete("/services/worker").status_code == 404

    def test_foreign_is_conflict(self, client: TestClient, mock_fs: MockFileSystem) -> None:
        mock_fs.set_file(WORKER_PATH, "[Service]\nExecStart=/bin/true\n")
        assert client.delete("/services/worker").status_code == 409


class TestAppFactory:
    """Tests for create_app() and run_api()."""

    def test_builds_reconciler_lazily_from_config(self) -> None:
        """Verifies an app created without a reconciler builds one on first request."""
        fs = MockFileSystem()
        built = Reconciler(FakeSystemctl(), UNIT_DIR, fs)
        with patch("unit_reconciler.web.routes.build_reconciler", return_value=built) as mock_build:
            client = TestClient(create_app())
            client.get("/services/worker")
            client.get("/services/worker")

        mock_build.assert_called_once_with()

    def test_run_api_starts_uvicorn(self, reconciler: Reconciler) -> None:
        with patch("unit_reconciler.web.app.uvicorn.run") as mock_run:
            run_api(host="0.0.0.0", port=9000, reconciler=reconciler)

        mock_run.assert_called_once()
        assert mock_run.call_args.kwargs["host"] == "0.0.0.0"
        assert mock_run.call_args.kwargs["port"] == 9000
