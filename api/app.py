"""
Brand Monitor API Application

FastAPI app that:
1. Loads settings and builds the shared collaborators (providers,
   scraper, web search, analysis store)
2. Mounts the brand monitor router
3. Maps input validation errors to 400 responses

Run with:
    uvicorn api.app:app --reload
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from brandmonitor import __version__
from brandmonitor.errors import ValidationError
from brandmonitor.utils.config import get_settings

from .brand_monitor import BrandMonitorServices, router as brand_monitor_router

# Configure logging to stdout
logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(services: Optional[BrandMonitorServices] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        services: Pre-built collaborators (tests); built from settings when None
    """
    app = FastAPI(
        title="Brand Monitor",
        description="AI visibility analysis across multiple AI providers",
        version=__version__,
    )
    app.state.services = services or BrandMonitorServices.from_settings(get_settings())

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info(f"Rejected request to {request.url.path}: {exc}")
        return JSONResponse(
            status_code=400,
            content={"error": str(exc), "details": exc.fields},
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close HTTP clients."""
        await app.state.services.close()

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "Brand Monitor"}

    @app.get("/api/health")
    async def health():
        """Detailed health check including provider configuration."""
        services = app.state.services
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "providers": len(services.registry.list_enabled()),
            "scraper": "configured" if services.scraper else "disabled",
            "web_search": "configured" if services.web_search else "disabled",
        }

    app.include_router(brand_monitor_router)
    return app


app = create_app()
