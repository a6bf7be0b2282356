"""
FastAPI Application

HTTP adapter around the exercise prescription core. Stateless apart from the
shared fusion configuration store.
"""

import logging
from typing import Dict

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from exercise_rx.api.routes import adjustments, conditions, fusion_config, gate, prescriptions, rules
from exercise_rx.config import configure_logging
from exercise_rx.exceptions import ConfigurationError, RuleCatalogError

logger = logging.getLogger(__name__)

configure_logging()

app = FastAPI(
    title="Exercise Prescription API",
    description="Pre-exercise safety gate, rule-based FITT prescriptions and weekly adjustment",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS configuration - allow the app frontend to access the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(gate.router, prefix="/api", tags=["Safety Gate"])
app.include_router(prescriptions.router, prefix="/api", tags=["Prescriptions"])
app.include_router(adjustments.router, prefix="/api", tags=["Adjustments"])
app.include_router(rules.router, prefix="/api", tags=["Rules"])
app.include_router(fusion_config.router, prefix="/api", tags=["Configuration"])
app.include_router(conditions.router, prefix="/api", tags=["Conditions"])


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint - API information."""
    return {
        "name": "Exercise Prescription API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "exercise-rx-api"}


# Global exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "message": str(exc.detail)},
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request, exc: ConfigurationError):
    """Rejected fusion configuration; the active configuration is unchanged."""
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid Configuration", "message": str(exc)},
    )


@app.exception_handler(RuleCatalogError)
async def rule_catalog_error_handler(request, exc: RuleCatalogError):
    logger.error(f"Rule catalog unavailable: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Rule Catalog Error", "message": str(exc)},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": str(exc),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "exercise_rx.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
