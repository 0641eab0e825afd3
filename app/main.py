from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.routers import dashboard_router, sync_router
from app.database import init_db
from app.utils.scheduler import TaskScheduler
from app.utils.logging_config import setup_logging, get_log_files_info
from app.config import get_settings
import logging

settings = get_settings()

# Setup comprehensive logging
logs_dir = setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

scheduler = TaskScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting billing sync service...")
    init_db()
    scheduler.start()
    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")
    scheduler.stop()
    logger.info("Application stopped")


app = FastAPI(
    title="Client Billing Time Tracker",
    description="ClickUp time entry sync and billed-hours calculations",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sync_router.router)
app.include_router(dashboard_router.router)


@app.get("/")
async def root():
    return {
        "message": "Client Billing Time Tracker API",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "scheduler": "running" if scheduler.scheduler.running else "stopped"
    }


@app.get("/logs/info")
async def logs_info():
    """Get information about current log files."""
    return {
        "logs_directory": str(logs_dir.absolute()),
        "log_files": get_log_files_info(logs_dir)
    }
