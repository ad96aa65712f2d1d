"""
Health checks - liveness and readiness of the service and its dependencies.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from application.validation import ItemValidator
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}

LIVE = "live"
READY = "ready"


@dataclass
class HealthCheckResult:
    status: HealthStatus
    description: str
    duration_ms: float = 0.0
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "description": self.description,
            "duration_ms": self.duration_ms,
            "data": self.data,
        }


@dataclass
class HealthReport:
    status: HealthStatus
    checks: Dict[str, HealthCheckResult]
    duration_ms: float

    @property
    def is_available(self) -> bool:
        """Degraded still serves traffic; only unhealthy takes the instance out."""
        return self.status != HealthStatus.UNHEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "checks": {name: result.to_dict() for name, result in self.checks.items()},
        }


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthCheck:
    """One named probe. Subclasses implement `run`; it must not raise."""

    name = "check"
    tags: Sequence[str] = (READY,)

    async def run(self) -> HealthCheckResult:
        raise NotImplementedError


class SelfCheck(HealthCheck):
    """Liveness: the process is up and its event loop responsive."""

    name = "self"
    tags = (LIVE,)

    async def run(self) -> HealthCheckResult:
        return HealthCheckResult(HealthStatus.HEALTHY, "Service is running", data={"timestamp": _timestamp()})


class DatabaseHealthCheck(HealthCheck):
    name = "database"

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], timeout: float = 5.0):
        self._uow_factory = uow_factory
        self._timeout = timeout

    async def _count(self) -> int:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.item_repository.count()

    async def run(self) -> HealthCheckResult:
        try:
            record_count = await asyncio.wait_for(self._count(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("database_health_check_timeout", timeout=self._timeout)
            return HealthCheckResult(
                HealthStatus.UNHEALTHY,
                "Database health check timed out",
                data={"database": "timeout", "timestamp": _timestamp()},
            )
        except Exception as exc:
            logger.error("database_health_check_failed", error=str(exc), exc_info=True)
            return HealthCheckResult(
                HealthStatus.UNHEALTHY,
                f"Database health check failed: {exc}",
                data={"database": "error", "exception_type": type(exc).__name__, "timestamp": _timestamp()},
            )
        return HealthCheckResult(
            HealthStatus.HEALTHY,
            "Database is accessible and responsive",
            data={"database": "healthy", "record_count": record_count, "timestamp": _timestamp()},
        )


class ServiceHealthCheck(HealthCheck):
    """Round-trips a fresh id through the validator."""

    name = "service"

    def __init__(self, validator: Optional[ItemValidator] = None):
        self._validator = validator or ItemValidator()

    async def run(self) -> HealthCheckResult:
        data: Dict[str, Any] = {"timestamp": _timestamp()}
        sample_id = uuid.uuid4()
        try:
            parsed = self._validator.validate_and_parse_id(str(sample_id), "TestId")
        except Exception as exc:
            logger.error("validation_health_check_failed", error=str(exc))
            data.update(validation_service="error", validation_error=str(exc))
            return HealthCheckResult(HealthStatus.UNHEALTHY, "Validation service is not working", data=data)

        if parsed != sample_id:
            data["validation_service"] = "inconsistent"
            return HealthCheckResult(HealthStatus.DEGRADED, "Validation service is not working correctly", data=data)

        data.update(validation_service="healthy", core_services="healthy")
        return HealthCheckResult(HealthStatus.HEALTHY, "All core services are operational", data=data)


class HealthService:
    """Runs the registered checks for a tag and reports the worst status."""

    def __init__(self, checks: Sequence[HealthCheck]):
        self._checks: List[HealthCheck] = list(checks)

    async def _timed(self, check: HealthCheck) -> HealthCheckResult:
        started = time.perf_counter()
        result = await check.run()
        result.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        return result

    async def check(self, tag: str = READY) -> HealthReport:
        started = time.perf_counter()
        selected = [c for c in self._checks if tag in c.tags]
        results = await asyncio.gather(*(self._timed(c) for c in selected))
        checks = {c.name: r for c, r in zip(selected, results)}

        status = HealthStatus.HEALTHY
        for result in checks.values():
            if _SEVERITY[result.status] > _SEVERITY[status]:
                status = result.status

        report = HealthReport(
            status=status,
            checks=checks,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        if status != HealthStatus.HEALTHY:
            logger.warning("health_check_not_healthy", tag=tag, status=status.value,
                           failing=[n for n, r in checks.items() if r.status != HealthStatus.HEALTHY])
        return report
