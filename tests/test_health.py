import pytest
from fastapi.testclient import TestClient

from api.app import create_ops_app
from application.services.health_service import (
    DatabaseHealthCheck,
    HealthService,
    HealthStatus,
    SelfCheck,
    ServiceHealthCheck,
)
from domain.common.exceptions import StorageError


class FakeGrpcServer:
    def __init__(self):
        self.serving = []

    async def set_serving(self, serving: bool) -> None:
        self.serving.append(serving)


@pytest.fixture
def health_service(memory_store) -> HealthService:
    return HealthService([SelfCheck(), DatabaseHealthCheck(memory_store), ServiceHealthCheck()])


@pytest.fixture
def grpc_server() -> FakeGrpcServer:
    return FakeGrpcServer()


@pytest.fixture
def client(health_service, metrics, grpc_server):
    with TestClient(create_ops_app(health_service, metrics, grpc_server)) as c:
        yield c


def test_live_only_runs_self_check(client):
    resp = client.get("/health/live")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert set(body["checks"]) == {"self"}


def test_ready_reports_dependencies(client, grpc_server):
    resp = client.get("/health/ready")

    assert resp.status_code == 200
    checks = resp.json()["checks"]
    assert set(checks) == {"database", "service"}
    assert checks["database"]["data"]["record_count"] == 0
    assert checks["service"]["data"]["validation_service"] == "healthy"
    assert grpc_server.serving == [True]


def test_ready_unavailable_when_database_fails(client, memory_store, grpc_server):
    memory_store.repository.fail_with = StorageError("connection refused")

    resp = client.get("/health/ready")

    assert resp.status_code == 503
    body = resp.json()
    assert body["status"] == "unhealthy"
    assert body["checks"]["database"]["data"]["exception_type"] == "StorageError"
    assert grpc_server.serving == [False]

    # liveness is unaffected
    assert client.get("/health/live").status_code == 200


def test_metrics_endpoint(client, metrics):
    metrics.record_request("CreateItem", "success", 0.01)

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert 'items_requests_total{method="CreateItem",status="success"} 1.0' in resp.text


def test_docs_are_disabled(client):
    assert client.get("/docs").status_code == 404


@pytest.mark.asyncio
async def test_degraded_still_available():
    class Slow(SelfCheck):
        name = "slow"
        tags = ("ready",)

        async def run(self):
            result = await super().run()
            result.status = HealthStatus.DEGRADED
            return result

    report = await HealthService([Slow(), ServiceHealthCheck()]).check("ready")

    assert report.status == HealthStatus.DEGRADED
    assert report.is_available
