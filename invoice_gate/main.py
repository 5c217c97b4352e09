import logging
import sys
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from invoice_gate.api.v1.endpoints import admission as admission_endpoints
from invoice_gate.core.config import settings
from invoice_gate.core.database import Base, engine  # noqa: F401

# Send package logs (including admission notifications) to the terminal
_app_log = logging.getLogger("invoice_gate")
_app_log.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
if not _app_log.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    _app_log.addHandler(_handler)

from invoice_gate.models import validation_record  # noqa: F401 - registers models


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.STORAGE_ROOT.mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        _app_log.info("Database connected successfully")
    yield
    await engine.dispose()
    _app_log.info("Disconnected from the database")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

if settings.CORS_ORIGINS.strip():
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(
    admission_endpoints.router,
    prefix="/api/v1/admissions",
    tags=["admissions"],
)


@app.get("/")
def root():
    """App info and the admission rules currently in force."""
    return {
        "app_name": settings.APP_NAME,
        "app_version": settings.APP_VERSION,
        "validation": {
            "max_file_size_bytes": settings.MAX_FILE_SIZE_BYTES,
            "allowed_content_types": sorted(settings.ALLOWED_CONTENT_TYPES),
            "threat_scan": settings.PERFORM_THREAT_SCAN,
            "fingerprint": settings.COMPUTE_FINGERPRINT,
        },
        "storage": {
            "bucket": settings.INVOICE_BUCKET,
            "incoming_prefix": settings.INCOMING_PREFIX,
            "validated_prefix": settings.VALIDATED_PREFIX,
            "quarantine_prefix": settings.QUARANTINE_PREFIX,
        },
    }


@app.get("/health")
async def health():
    """
    Health check for load balancers and containers.
    Returns 200 with database status; 503 if database is unreachable.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok", "database": "ok"}
    except Exception as e:
        logging.getLogger(__name__).warning("Health check failed: %s", e)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "error", "detail": str(e)},
        )


def start():
    uvicorn.run("invoice_gate.main:app", host="0.0.0.0", port=8000, reload=True)
