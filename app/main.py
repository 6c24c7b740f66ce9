import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import get_settings
from app.db.session import ensure_tables
from app.api.routes import competencies, entities, extraction

settings = get_settings()

# Configure application logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Set log level for app modules
logger = logging.getLogger("app")
logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_tables()
    logger.info(f"{settings.app_name} started")
    yield


app = FastAPI(
    title=settings.app_name,
    description="AI-assisted competency extraction and deduplication",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers (catalog routes before the /api/{entity_kind} ones)
app.include_router(extraction.router, prefix="/api/extraction", tags=["Extraction"])
app.include_router(competencies.router, prefix="/api/competencies", tags=["Competencies"])
app.include_router(entities.router, prefix="/api", tags=["Entity Competencies"])


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": "0.1.0",
        "endpoints": {
            "extraction": "/api/extraction",
            "competencies": "/api/competencies",
            "people": "/api/people/{id}/competencies",
            "courses": "/api/courses/{id}/competencies",
            "health": "/health",
            "docs": "/docs",
            "redoc": "/redoc",
        },
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.app_name}
