"""
BillScan HTTP application.

``create_app`` wires the routes to one ``ProcessingOrchestrator``. Pass an
orchestrator to share it with the caller (tests, embedding); otherwise
one is built from configuration at startup and shut down on exit.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import billscan
from config import get_config
from billscan.utils.logger import get_logger
from billscan.utils.exceptions import (
    BillScanError,
    NothingToExportError,
    RecordNotFoundError,
    RecordStateError,
    RecordUpdateError,
    ValidationError,
)
from billscan.output_handler import ExcelExporter
from billscan.pipeline import ProcessingOrchestrator
from .routes import router

logger = get_logger(__name__)

# First match wins; anything else is a server-side failure
ERROR_STATUS_CODES = (
    (ValidationError, 400),
    (NothingToExportError, 400),
    (RecordNotFoundError, 404),
    (RecordStateError, 409),
    (RecordUpdateError, 422),
)


def status_code_for(exc: BillScanError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def create_app(orchestrator: Optional[ProcessingOrchestrator] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Pipeline to serve; built from configuration when omitted.

    Returns:
        Configured application.
    """
    owns_orchestrator = orchestrator is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.orchestrator is None:
            app.state.orchestrator = ProcessingOrchestrator()
        logger.info("BillScan API ready")
        yield
        if owns_orchestrator:
            app.state.orchestrator.shutdown(wait=False)
        logger.info("BillScan API stopped")

    app = FastAPI(
        title="BillScan",
        description="Billing image upload → OCR → field extraction → Excel export",
        version=billscan.__version__,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.state.exporter = ExcelExporter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_config("api.cors_origins", ["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BillScanError)
    async def billscan_error_handler(request: Request, exc: BillScanError):
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            message = error.get("msg", "invalid value")
            problems.append(f"{location}: {message}" if location else message)
        return JSONResponse(status_code=422, content={"error": "; ".join(problems)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(router, prefix="/api", tags=["BillScan"])

    return app
