"""
ARQ Worker for background task processing.

This worker handles:
- refresh_flow: Recomputes and caches the flow view of a project after its
  dependency graph changed

Usage:
    arq app.worker.WorkerSettings
"""

import uuid

from arq import create_pool
from arq.connections import RedisSettings, ArqRedis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.services.flow import bump_graph_revision, lock_project, refresh_flow
from app.logging_config import setup_logging, get_logger

# Initialize logging for the worker
setup_logging()
logger = get_logger(__name__)

settings = get_settings()


def parse_redis_url(url: str) -> RedisSettings:
    """Parse redis URL into RedisSettings."""
    # redis://localhost:6380/0 -> host=localhost, port=6380, database=0
    url = url.replace("redis://", "")
    database = 0
    if "/" in url:
        url, db_part = url.split("/", 1)
        if db_part:
            database = int(db_part)
    if ":" in url:
        host, port = url.split(":")
        return RedisSettings(host=host, port=int(port), database=database)
    return RedisSettings(host=url, database=database)


async def startup(ctx: dict) -> None:
    logger.info("ARQ Worker starting up...")
    logger.info(f"Redis: {settings.redis_url}")


async def shutdown(ctx: dict) -> None:
    logger.info("ARQ Worker shutting down...")


class WorkerSettings:
    """ARQ Worker configuration."""

    functions = [refresh_flow]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = parse_redis_url(settings.redis_url)
    max_jobs = 10
    job_timeout = 60


# Redis pool for enqueuing jobs and reading cached views from the API
_arq_pool: ArqRedis | None = None


async def get_arq_pool() -> ArqRedis:
    """Get or create the ARQ Redis pool."""
    global _arq_pool
    if _arq_pool is None:
        logger.debug("Creating ARQ Redis pool")
        _arq_pool = await create_pool(parse_redis_url(settings.redis_url))
    return _arq_pool


async def enqueue_flow_refresh(project_id: str, revision: int) -> None:
    """
    Enqueue a flow refresh for a project revision.

    A refresh that cannot be queued is logged and dropped: the flow route
    computes the view itself whenever no current cached view exists.
    """
    try:
        pool = await get_arq_pool()
        logger.debug(f"Enqueuing flow refresh: project={project_id[:8]}... revision={revision}")
        await pool.enqueue_job("refresh_flow", project_id, revision)
    except (RedisError, OSError) as e:
        logger.warning(f"Could not enqueue flow refresh for project={project_id}: {e}")


async def publish_graph_change(session: AsyncSession, project_ids: set[uuid.UUID]) -> None:
    """
    Bump the graph revision of each project, commit, then queue flow refreshes.

    The commit comes first so a worker never reads the previous revision and
    drops the job as stale.
    """
    revisions = {}
    for project_id in sorted(project_ids):
        project = await lock_project(session, project_id)
        if project is None:
            continue
        revisions[project_id] = await bump_graph_revision(session, project)

    await session.commit()

    for project_id, revision in revisions.items():
        await enqueue_flow_refresh(str(project_id), revision)
