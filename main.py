"""Main entry point for the monitoring service."""

import uvicorn
import structlog
from fastapi import BackgroundTasks, FastAPI
from fastapi.responses import JSONResponse

from opswatch.config import get_config
from opswatch.log import configure_logging
from opswatch.service import MonitoringService

configure_logging(get_config().log_level)

logger = structlog.get_logger(__name__)

# Global service instance
service: MonitoringService = None
app = FastAPI(title="Certificate and Wallet Monitoring", version="0.1.0")


@app.on_event("startup")
async def startup_event():
    """Connect storage and start the schedules."""
    global service
    service = MonitoringService()
    await service.start()
    logger.info("Monitoring service started")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    global service
    if service:
        await service.close()
    logger.info("Monitoring service stopped")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "healthy", "service": "opswatch"}


@app.get("/status")
async def get_status():
    """Scheduler jobs and the latest report of each family."""
    if not service or not service.coordinator:
        return JSONResponse(content={"error": "System not initialized"}, status_code=503)
    return service.coordinator.get_system_status()


@app.get("/history")
async def get_history():
    """Recent ticks across all families."""
    if not service or not service.coordinator:
        return JSONResponse(content={"error": "System not initialized"}, status_code=503)
    return {"ticks": service.coordinator.get_task_history()}


@app.post("/run/{family}")
async def run_family(family: str, background_tasks: BackgroundTasks):
    """Queue one tick of a family outside its schedule."""
    if not service or not service.coordinator:
        return JSONResponse(content={"error": "System not initialized"}, status_code=503)
    if family not in service.coordinator.pipelines:
        return JSONResponse(content={"error": f"Unknown family: {family}"}, status_code=404)
    background_tasks.add_task(service.coordinator.run_family, family)
    return {"message": f"{family} tick started", "status": "running"}


if __name__ == "__main__":
    config = get_config()
    uvicorn.run(app, host=config.http_host, port=config.http_port)
