import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .api import configurations, executions
from .dependencies import (
    get_configuration_repository,
    get_execution_dispatcher,
    get_scheduler,
    get_settings,
    register_handlers,
)
from .logging_config import setup_logging

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging(settings)

    config_info = settings.config_file_info
    logging.info(f"Configuration loaded from: {config_info['active_config_file']}")
    logging.info(f"Running on hostname: {config_info['hostname']}")
    if len(config_info["all_available_configs"]) > 1:
        logging.info(f"Available config files: {', '.join(config_info['all_available_configs'])}")

    logging.info("File Retrieval Service starting up...")
    register_handlers()

    dispatcher = get_execution_dispatcher()
    dispatcher.start()

    scheduler = get_scheduler()
    await scheduler.start()
    logging.info(
        f"Scheduler startet som background task "
        f"({await get_configuration_repository().count()} configurations indlæst)"
    )

    yield

    # Shutdown
    logging.info("File Retrieval Service shutting down...")
    await scheduler.stop()
    await dispatcher.stop()
    logging.info("Alle background tasks stoppet")


app = FastAPI(
    title="File Retrieval Service",
    description="Henter filer fra FTP, HTTPS og Azure Blob efter cron-styrede configurations",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    logging.info(f"Validation failed for {request.method} {request.url.path}: {len(exc.errors())} error(s)")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logging.info(
        f"Incoming request: {request.method} {request.url.path}",
        extra={
            "operation": "http_request",
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else "unknown",
        },
    )

    response = await call_next(request)

    logging.info(
        f"Response: {response.status_code}",
        extra={
            "operation": "http_response",
            "status_code": response.status_code,
            "path": request.url.path,
        },
    )
    return response


app.include_router(configurations.router)
app.include_router(executions.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "File Retrieval Service er kørende"}


@app.get("/health")
async def health():
    """Detaljeret health check."""
    return {
        "status": "healthy",
        "service": "file-retrieval",
        "scheduler_running": get_scheduler().is_running,
        "active_executions": get_execution_dispatcher().active_count,
    }


if __name__ == "__main__":
    uvicorn.run("file_retrieval.main:app", host="0.0.0.0", port=8000, reload=False, log_level="info")
