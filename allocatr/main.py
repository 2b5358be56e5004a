from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from allocatr.api.assignments import router as assignments_router
from allocatr.api.engineers import router as engineers_router
from allocatr.api.projects import router as projects_router
from allocatr.config.settings import get_settings
from allocatr.storage.database import init_db
from allocatr.utils.logging_config import setup_logging


# Setup logging
logger = setup_logging()
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    description="Engineering resource allocation tracker with capacity conformance checks",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.app_name}...")
    init_db()
    logger.info("Database initialized")
    logger.info(f"Allocation lock backend: {settings.lock_backend}")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.app_name}...")

app.include_router(engineers_router, prefix="/api/engineers", tags=["engineers"])
app.include_router(projects_router, prefix="/api/projects", tags=["projects"])
app.include_router(assignments_router, prefix="/api/assignments", tags=["assignments"])


@app.get("/health", tags=["health"])
def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "ok", "app": settings.app_name, "version": "1.0.0"}
