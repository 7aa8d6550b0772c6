"""
FastAPI entrypoint for the trip operations coordinator.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tripops.core.config import settings
from tripops.core.exceptions import (
    ConcurrentModification, InsufficientBalance, InsufficientLeaveBalance,
    InvalidArgument, NotFound, PreconditionFailed, StoreFailure, TripOpsError
)
from tripops.core.logging_config import configure_logging
from tripops.core.utils import format_error
from tripops.store.factory import build_store
from tripops.api.router import api_router

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Looked up along the exception's MRO, most specific class first
ERROR_STATUS_CODES = {
    NotFound: 404,
    PreconditionFailed: 409,
    InvalidArgument: 422,
    InsufficientBalance: 409,
    InsufficientLeaveBalance: 409,
    ConcurrentModification: 409,
    StoreFailure: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store on startup and close it on shutdown."""
    app.state.store = build_store(settings)
    try:
        yield
    finally:
        app.state.store.close()


app = FastAPI(
    title="TripOps API",
    description="Trip lifecycle, order cascade and voucher ledger coordinator",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TripOpsError)
async def tripops_error_handler(request: Request, exc: TripOpsError):
    """Map coordinator errors to HTTP responses."""
    status_code = next(
        (ERROR_STATUS_CODES[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS_CODES),
        400
    )
    if exc.retryable:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content=format_error(exc.message, exc.to_details()))


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "TripOps API is running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
