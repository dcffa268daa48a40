"""FastAPI server for the Reconciliation Service.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health, metrics, orders, reconciliation
from core import __version__
from core.audit.runs import RunLogBackend, SQLiteRunLog
from core.config import Settings, get_settings
from core.observability.logging import configure_logging, get_logger
from datastore.base import RecordStore
from datastore.sqlite_store import SQLiteRecordStore
from reconciliation.monitor import ReconciliationMonitor
from reconciliation.rules import ReconciliationPolicy


logger = get_logger("api.server")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Opens the record store (creating its schema), starts the reconciliation
    monitor and stops it on shutdown.
    """
    settings: Settings = app.state.settings or get_settings()
    app.state.settings = settings

    owns_store = app.state.store is None
    if owns_store:
        app.state.store = SQLiteRecordStore(settings.database_path)
    if app.state.run_log is None:
        app.state.run_log = SQLiteRunLog(settings.database_path)

    monitor = ReconciliationMonitor(
        app.state.store,
        ReconciliationPolicy.from_settings(settings),
        run_log=app.state.run_log,
        debounce_seconds=settings.refresh_debounce_seconds,
        max_wait_seconds=settings.refresh_max_wait_seconds,
    )
    app.state.monitor = monitor
    logger.info("Reconciliation API starting up...")
    await monitor.start()

    yield

    logger.info("Reconciliation API shutting down...")
    await monitor.stop()
    if owns_store:
        app.state.store.close()


def create_app(
    store: Optional[RecordStore] = None,
    run_log: Optional[RunLogBackend] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Record store to serve (sqlite at settings.database_path if omitted)
        run_log: Run log backend (sqlite at settings.database_path if omitted)
        settings: Service settings (read from the environment if omitted)
    """
    app = FastAPI(
        title="Supply-Chain Reconciliation API",
        description="Reconciles ERP procurement orders against dispatch, shipment, invoice and delivery records",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.store = store
    app.state.run_log = run_log
    app.state.settings = settings
    app.state.monitor = None

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(reconciliation.router, prefix="/reconciliation", tags=["Reconciliation"])
    app.include_router(orders.router, prefix="/erp", tags=["ERP Intake"])
    app.include_router(metrics.router, tags=["Metrics"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json, force=True)
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
