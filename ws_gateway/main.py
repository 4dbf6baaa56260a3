"""
WebSocket Gateway main application.

Serves the guest devices of every table over one WebSocket endpoint and a
small HTTP surface for health checks and table creation.

Component wiring (built once per process in the lifespan):
    TimerScheduler -> TableRegistry -> Vote/Split/Payment services
    ConnectionManager <- TableEventRouter -> services
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from shared.config.settings import settings
from shared.config.logging import setup_logging, ws_gateway_logger as logger
from partela.data import ID_TYPES, PHONE_CODES, VENEZUELAN_BANKS
from partela.schemas import CreateTableResponse, HealthResponse
from partela.services.demo_data import generate_table_id
from partela.services.domain import PaymentService, SplitService, TableRegistry, VoteService
from partela.services.scheduler import TimerScheduler
from ws_gateway.connection_manager import ConnectionManager
from ws_gateway.components.core.constants import DEFAULT_ALLOWED_ORIGINS, parse_allowed_origins
from ws_gateway.components.endpoints.handlers import TableEndpoint
from ws_gateway.components.events.router import TableEventRouter
from ws_gateway.components.events.types import ClientEvent, ServerEvent


@dataclass
class Gateway:
    """Process-wide components, owned by the application lifespan."""

    scheduler: TimerScheduler
    registry: TableRegistry
    manager: ConnectionManager
    router: TableEventRouter

    def get_stats(self) -> dict[str, int]:
        timers = {f"timers_{k}": v for k, v in self.scheduler.get_stats().items()}
        return {**self.manager.get_stats(), **self.registry.get_stats(), **timers}


def build_gateway(registry: TableRegistry | None = None) -> Gateway:
    """Wire the components. Tests pass a registry with a fixed item factory."""
    if registry is None:
        registry = TableRegistry(scheduler=TimerScheduler())
    if registry.scheduler is None:
        registry.scheduler = TimerScheduler()
    scheduler = registry.scheduler
    manager = ConnectionManager()
    router = TableEventRouter(
        manager,
        registry,
        VoteService(registry, scheduler),
        SplitService(registry),
        PaymentService(registry, scheduler),
    )
    manager.add_disconnect_hook(router.handle_disconnect)
    return Gateway(scheduler=scheduler, registry=registry, manager=manager, router=router)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds the gateway on startup (unless one was installed beforehand) and
    on shutdown cancels every pending timer and closes every socket.
    """
    setup_logging()
    logger.info(
        "Starting WebSocket Gateway",
        port=settings.ws_gateway_port,
        env=settings.environment,
    )
    for error in settings.validate_production():
        logger.warning("Configuration problem", error=error)

    gateway = getattr(app.state, "gateway", None)
    if gateway is None:
        gateway = build_gateway()
        app.state.gateway = gateway

    yield

    logger.info("Shutting down WebSocket Gateway")
    await gateway.registry.shutdown()
    await gateway.manager.shutdown()
    app.state.gateway = None


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Partela WebSocket Gateway",
    description="Real-time bill splitting for restaurant tables",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration: HTTPS variants of the development origins are added
DEFAULT_WS_ORIGINS = list(DEFAULT_ALLOWED_ORIGINS) + [
    origin.replace("http://", "https://") for origin in DEFAULT_ALLOWED_ORIGINS
]

ws_allowed_origins = (
    parse_allowed_origins(settings) if settings.allowed_origins else DEFAULT_WS_ORIGINS
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ws_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


# =============================================================================
# HTTP Endpoints
# =============================================================================


@app.get("/health", response_model=HealthResponse)
def health():
    """Liveness probe."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
    )


@app.get("/api")
def api_info():
    """Service description, the WebSocket event catalogue and payment form options."""
    return {
        "name": app.title,
        "version": app.version,
        "websocket": "/ws/table",
        "events": {
            "client": [e.value for e in ClientEvent],
            "server": [e.value for e in ServerEvent],
        },
        "payment": {
            "banks": list(VENEZUELAN_BANKS),
            "idTypes": list(ID_TYPES),
            "phoneCodes": list(PHONE_CODES),
        },
    }


@app.post("/api/tables", response_model=CreateTableResponse, response_model_by_alias=True)
def create_table():
    """
    Issue a fresh table code.

    The table itself is created lazily by the first `table:join`.
    """
    table_id = generate_table_id()
    logger.info("Table code issued", table_id=table_id)
    return CreateTableResponse(
        table_id=table_id,
        join_url=f"/mesa/{table_id}",
        message="Mesa creada. Escanea el QR o usa el link para unirte.",
    )


@app.get("/ws/health")
def ws_health(request: Request):
    """Health check with connection, table and timer statistics."""
    gateway = get_gateway(request)
    try:
        stats = gateway.get_stats()
    except Exception as e:
        logger.warning("Failed to get stats in health check", error=str(e))
        stats = {"error": "stats_unavailable"}
    return {
        "status": "healthy",
        "service": "ws-gateway",
        "version": app.version,
        "environment": settings.environment,
        **stats,
    }


# =============================================================================
# WebSocket Endpoint
# =============================================================================


@app.websocket("/ws/table")
async def table_websocket(websocket: WebSocket):
    """WebSocket endpoint for guests at a table."""
    gateway: Gateway = websocket.app.state.gateway
    endpoint = TableEndpoint(websocket, gateway.manager, gateway.router)
    await endpoint.run()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ws_gateway.main:app",
        host="0.0.0.0",
        port=settings.ws_gateway_port,
        reload=True,
    )
