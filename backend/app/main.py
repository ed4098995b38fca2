"""
Trellis - task dependency graph engine.

Validates dependency edits (no cycles, bounded depth, policy limits) and
serves the layered flow chart, critical path and integrity reports of each
project.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.database import init_db, dispose_db, check_db
from app.routes import tasks, dependencies, projects
from app.exceptions import register_exception_handlers
from app.logging_config import setup_logging, get_logger

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Trellis API...")
    await init_db()
    logger.info("Database initialized")
    yield
    await dispose_db()
    logger.info("Shutting down Trellis API...")


app = FastAPI(
    title="Trellis",
    description="Task dependency graph engine: validated edits, flow layout and critical paths",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(projects.router, prefix="/projects", tags=["Projects"])
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(dependencies.router, prefix="/dependencies", tags=["Dependencies"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    database_ok = await check_db()
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "ok" if database_ok else "unreachable",
    }
