from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import grpc
from grpc_health.v1 import health, health_pb2, health_pb2_grpc
from grpc_health.v1.health import aio as health_aio
from grpc_reflection.v1alpha import reflection

from application.services.item_service import ItemApplicationService
from application.services.token_service import TokenService
from core.config import Settings, settings as default_settings
from core.logging_config import get_logger
from core.metrics import MetricsCollector
from grpc_app.interceptors.authorization import AuthorizationMiddleware
from grpc_app.interceptors.exceptions import ExceptionMappingMiddleware
from grpc_app.interceptors.metrics import MetricsMiddleware
from grpc_app.interceptors.pipeline import Middleware, PipelineInterceptor
from grpc_app.interceptors.request_id import RequestIdMiddleware
from grpc_app.generated.items.v1 import item_service_pb2, item_service_pb2_grpc
from grpc_app.services.item_service import ItemService


logger = get_logger(__name__)

SERVICE_NAME = item_service_pb2.DESCRIPTOR.services_by_name["ItemService"].full_name


@dataclass
class GrpcServer:
    server: grpc.aio.Server
    port: int
    health: health_aio.HealthServicer

    async def set_serving(self, serving: bool) -> None:
        status = (
            health_pb2.HealthCheckResponse.SERVING
            if serving
            else health_pb2.HealthCheckResponse.NOT_SERVING
        )
        await self.health.set("", status)
        await self.health.set(SERVICE_NAME, status)


def build_middlewares(
    metrics: MetricsCollector,
    token_service: Optional[TokenService],
) -> List[Middleware]:
    """Order matters: request id -> metrics -> authorization -> exception mapping."""
    middlewares: List[Middleware] = [RequestIdMiddleware(), MetricsMiddleware(metrics)]
    if token_service is not None:
        middlewares.append(AuthorizationMiddleware(token_service))
    middlewares.append(ExceptionMappingMiddleware())
    return middlewares


def _server_credentials(cfg: Settings) -> grpc.ServerCredentials:
    tls = cfg.grpc.tls
    if not (tls.cert and tls.key):
        raise RuntimeError("GRPC TLS enabled but cert/key not provided")
    with open(tls.cert, "rb") as f:
        cert_chain = f.read()
    with open(tls.key, "rb") as f:
        private_key = f.read()
    root_certificates = None
    if tls.ca:
        with open(tls.ca, "rb") as f:
            root_certificates = f.read()
    return grpc.ssl_server_credentials(
        [(private_key, cert_chain)],
        root_certificates=root_certificates,
        require_client_auth=bool(root_certificates),
    )


async def create_server(
    item_service: ItemApplicationService,
    metrics: MetricsCollector,
    *,
    token_service: Optional[TokenService] = None,
    cfg: Optional[Settings] = None,
    address: Optional[str] = None,
) -> GrpcServer:
    """Build the gRPC server with the middleware pipeline and all services registered.

    Authorization runs only when `cfg.authorization_enabled` (never in
    ephemeral mode); pass `token_service` to override the default one.
    """
    cfg = cfg or default_settings
    if cfg.authorization_enabled:
        token_service = token_service or TokenService(cfg.SECRET_KEY, cfg.ALGORITHM)
    else:
        token_service = None
        logger.warning("grpc_authorization_disabled", environment=cfg.ENVIRONMENT)

    options = [
        ("grpc.max_concurrent_streams", max(1, cfg.grpc.max_concurrent_streams)),
    ]
    server = grpc.aio.server(
        interceptors=(PipelineInterceptor(build_middlewares(metrics, token_service)),),
        options=options,
    )

    item_service_pb2_grpc.add_ItemServiceServicer_to_server(ItemService(item_service), server)

    health_svc = health_aio.HealthServicer()
    health_pb2_grpc.add_HealthServicer_to_server(health_svc, server)

    if cfg.grpc.reflection:
        reflection.enable_server_reflection(
            (SERVICE_NAME, health.SERVICE_NAME, reflection.SERVICE_NAME),
            server,
        )

    address = address or f"{cfg.grpc.host}:{cfg.grpc.port}"
    if cfg.grpc.tls.enabled:
        port = server.add_secure_port(address, _server_credentials(cfg))
    else:
        port = server.add_insecure_port(address)

    grpc_server = GrpcServer(server=server, port=port, health=health_svc)
    await grpc_server.set_serving(True)
    logger.info("grpc_server_created", address=address, port=port, tls=cfg.grpc.tls.enabled)
    return grpc_server
