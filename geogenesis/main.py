"""FastAPI app factory. Startup loads the tree snapshot, shutdown disposes the engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from geogenesis.config import settings
from geogenesis.db.database import async_session, close_db, init_db
from geogenesis.dependencies import get_clock, get_snapshot, get_verifier
from geogenesis.errors import GeoGenesisError
from geogenesis.routers import lottery, photos, plant, trees
from geogenesis.schemas.flow import HealthResponse
from geogenesis.services.flow_registry import PlantFlowRegistry
from geogenesis.services.photo_service import PhotoStore
from geogenesis.services.tree_snapshot import TreeSnapshot
from geogenesis.services.tree_store import SqlKeyValueStore, TreeStore
from geogenesis.services.verification_service import GeminiVerificationService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Initializing database...")
    await init_db()

    store = TreeStore(SqlKeyValueStore(async_session), settings.storage_key)
    app.state.snapshot = TreeSnapshot(store)
    await app.state.snapshot.load()

    app.state.photos = PhotoStore(settings.photo_storage_path)
    app.state.plant_flows = PlantFlowRegistry()
    app.state.verifier = GeminiVerificationService.from_settings(settings)
    if not settings.gemini_api_key:
        logger.warning("GEOGENESIS_GEMINI_API_KEY not set - verification will use the environment key")
    if settings.bypass_cadence_gate:
        logger.warning("Check-in cadence gate is bypassed")

    logger.info("Startup complete")
    yield

    # Shutdown
    logger.info("Shutting down...")
    await close_db()


app = FastAPI(
    title="GeoGenesis API",
    description="Plant trees, verify them from photos + GPS, check in monthly",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(plant.router)
app.include_router(trees.router)
app.include_router(lottery.router)
app.include_router(photos.router)


@app.exception_handler(GeoGenesisError)
async def geogenesis_error_handler(request: Request, exc: GeoGenesisError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"reason": exc.reason, "detail": exc.detail},
    )


@app.get("/")
async def root():
    return {"service": "geogenesis-api", "version": "1.0.0"}


@app.get("/api/health", response_model=HealthResponse)
async def health(
    snapshot: TreeSnapshot = Depends(get_snapshot),
    verifier=Depends(get_verifier),
    clock=Depends(get_clock),
):
    return HealthResponse(
        status="ok",
        trees_count=len(snapshot.trees),
        snapshot_version=snapshot.version,
        verifier_model=verifier.model_name,
        checked_at=clock(),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("geogenesis.main:app", host=settings.host, port=settings.port)
