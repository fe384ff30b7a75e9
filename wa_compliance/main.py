import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wa_compliance.core.config import AUTO_CREATE_TABLES, ENV
from wa_compliance.core.database import Base, engine
from wa_compliance.core.logging_setup import configure_logging
from wa_compliance.core.policy import get_policy
from wa_compliance.core.startup_checks import ensure_migrations_applied, validate_database_environment
from wa_compliance.middleware.observability import ObservabilityMiddleware
import wa_compliance.models  # registers the tables on Base before create_all
from wa_compliance.routers.compliance import router as compliance_router
from wa_compliance.routers.internal_metrics import router as internal_metrics_router
from wa_compliance.routers.webhook import router as webhook_router
from wa_compliance.services.compliance.errors import StorageUnavailableError

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if AUTO_CREATE_TABLES:
            logger.info("%s creating tables env=%s", STARTUP_PREFIX, ENV)
            Base.metadata.create_all(bind=engine)
        else:
            ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        get_policy()
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="WhatsApp Compliance API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(ObservabilityMiddleware)


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(_: Request, exc: StorageUnavailableError):
    return JSONResponse(
        status_code=503,
        content={"detail": "Compliance storage unavailable", "operation": exc.operation},
    )


app.include_router(webhook_router)
app.include_router(compliance_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
