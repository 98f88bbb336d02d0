"""
Briefcast - Personal Audio Briefing API
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from ..config.settings import Settings, get_settings
from ..config.startup_validation import run_startup_validation
from ..utils.logger import configure_logging
from .rate_limiter import RateLimiter
from .routers import briefing, connectors, persona
from .services import Services, build_services, create_supabase_client


load_dotenv()

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """Pass ``services`` to run against pre-built (e.g. fake) collaborators."""
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, settings.log_json_path)
        active = services or build_services(settings, supabase_client=create_supabase_client(settings))

        validation = run_startup_validation(settings, active.engine)
        if not validation.is_valid and settings.strict_startup:
            await active.aclose()
            raise RuntimeError("Startup validation failed: " + "; ".join(validation.errors))

        app.state.services = active
        app.state.rate_limiter = RateLimiter()
        logger.info("🚀 Briefcast API ready")
        try:
            yield
        finally:
            await active.aclose()

    app = FastAPI(title="Briefcast", version="1.0.0", lifespan=lifespan)

    app.include_router(briefing.router, prefix="/api")
    app.include_router(persona.router, prefix="/api")
    app.include_router(connectors.router, prefix="/api")

    @app.get("/health")
    async def health():
        active = getattr(app.state, "services", None)
        return {
            "status": "healthy",
            "generation": bool(active and active.pipeline is not None),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("briefcast.app.main:app", host="0.0.0.0", port=8000, reload=True)
