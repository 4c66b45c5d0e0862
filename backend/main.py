"""
Exam Grader API - main entry point.
Creates FastAPI app, sets up lifespan (indexes, stale-job worker), CORS,
registers all routes.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware

from app.config import logger, get_version_info, get_cors_origins
from app.database import client, ensure_indexes
from app.deps import get_job_store
from app.services.background import run_background_worker, drain_running_tasks
from app.routes import register_all_routes

# Global reference to the background worker task
_worker_task = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - starts/stops background worker"""
    global _worker_task

    logger.info("🚀 FastAPI app starting up...")
    logger.info("REGISTERED ROUTES: %s", [r.path for r in app.routes])

    try:
        await ensure_indexes()
    except Exception as e:
        logger.error(f"❌ Failed to create MongoDB indexes: {e}")

    logger.info("🔄 Starting stale job sweeper...")
    _worker_task = asyncio.create_task(run_background_worker(get_job_store()))
    logger.info("=" * 60)

    yield

    logger.info("🛑 FastAPI app shutting down...")
    await drain_running_tasks()
    if _worker_task and not _worker_task.done():
        logger.info("⏹️  Stopping background task worker...")
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            logger.info("✅ Background task worker stopped cleanly")
    client.close()


# Create the main app with lifespan
app = FastAPI(title="Exam Grader API", lifespan=lifespan)

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")


@api_router.get("/version")
async def get_version():
    """Public version endpoint for deployment verification"""
    return get_version_info()


# Register all route modules on the api_router
register_all_routes(api_router)

# Include the api_router on the app
app.include_router(api_router)


# Root-level health check endpoint (for Kubernetes probes)
@app.get("/health")
async def root_health_check():
    """Health check for Kubernetes liveness/readiness probes"""
    return {"status": "healthy", "service": "Exam Grader API"}


# ============== CORS ==============

# Machine-to-machine trigger; any origin, standard headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)
