from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import main


class FakeCoordinator:
    def __init__(self) -> None:
        self.pipelines = {"certificates": object(), "wallets": object()}
        self.ran: list[str] = []

    async def run_family(self, family: str) -> None:
        self.ran.append(family)

    def get_system_status(self) -> dict:
        return {"scheduler_running": True, "jobs": [], "last_reports": {}}

    def get_task_history(self) -> list:
        return [{"family": "wallets", "stage": "done"}]


class FakeService:
    def __init__(self) -> None:
        self.coordinator = FakeCoordinator()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setattr(main, "service", FakeService())
    # Not used as a context manager, so startup does not touch the database.
    return TestClient(main.app)


def test_root_is_healthy(client: TestClient) -> None:
    assert client.get("/").json() == {"status": "healthy", "service": "opswatch"}


def test_status_and_history(client: TestClient) -> None:
    assert client.get("/status").json()["scheduler_running"] is True
    assert client.get("/history").json() == {"ticks": [{"family": "wallets", "stage": "done"}]}


def test_run_family_queues_tick(client: TestClient) -> None:
    resp = client.post("/run/wallets")
    assert resp.status_code == 200
    assert main.service.coordinator.ran == ["wallets"]


def test_run_unknown_family_is_404(client: TestClient) -> None:
    assert client.post("/run/dns").status_code == 404


def test_uninitialized_service_is_503(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "service", None)
    assert TestClient(main.app).get("/status").status_code == 503
