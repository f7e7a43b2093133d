import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from marketplace.config import settings

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")

from marketplace.database import engine
from marketplace.models import Base
from marketplace.api.endpoints import admin, bids, orders, requirements, users
from marketplace.services.errors import MarketplaceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.RESET_DB_ON_STARTUP:
        # Dev only: start from empty tables
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": exc.kind})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "error": "internal"})


app.include_router(admin.router)
app.include_router(users.router)
app.include_router(requirements.router)
app.include_router(bids.router)
app.include_router(orders.router)


@app.get("/health")
def health():
    """Health check endpoint for load balancers and readiness probes."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.warning("Health check could not reach the database: %s", e)
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "service": "tradelink-marketplace",
        "version": settings.APP_VERSION,
        "database": database,
    }
