"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from timeledger.config import settings
from timeledger.database import database
from timeledger.logging_config import setup_logging
from timeledger.routers import auth, entries, reports, tasks, timers, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    setup_logging(settings.log_level)
    await database.connect()
    yield
    # Shutdown
    await database.disconnect()


app = FastAPI(
    title="Timeledger API",
    description="Timer lifecycle, time aggregation and task access",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(timers.router)
app.include_router(entries.router)
app.include_router(reports.router)
app.include_router(tasks.router)
app.include_router(users.router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and query parameters are client errors (400)."""
    return JSONResponse(status_code=400, content={"detail": jsonable_errors(exc)})


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    """Unexpected store failures surface as 500 without leaking driver details."""
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"status": "ok", "message": "Timeledger API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("timeledger.main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
