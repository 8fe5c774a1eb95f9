"""
SlideCraft - Main Application Entry Point

Generates slide decks from a topic with a hosted text model and exports them
as PowerPoint or PDF documents.
"""
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src import __version__
from src.core import get_settings, setup_logging, setup_tracing, is_tracing_enabled
from src.api.routes import slides, sessions, history, export
from src.services import get_history_store

load_dotenv()
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown."""
    settings = get_settings()

    # Startup
    logger.info(f"🚀 Starting {settings.app_name}...")
    settings.ensure_directories()

    # Initialize tracing (if enabled)
    if setup_tracing():
        logger.info("📡 OpenTelemetry tracing is active")

    # Log configuration
    logger.info(f"🤖 LLM Provider: \033[96m{settings.llm_provider}\033[0m")
    logger.info(f"🧠 Model deployment: \033[96m{settings.azure_openai_deployment}\033[0m")
    logger.info(f"📁 History file: \033[93m{settings.history_file}\033[0m")
    tracing_color = "\033[92m" if is_tracing_enabled() else "\033[91m"
    logger.info(f"🔍 Tracing enabled: {tracing_color}{is_tracing_enabled()}\033[0m")

    if not settings.has_azure_openai:
        logger.warning("⚠️  Azure OpenAI not configured - decks will come from the local fallback")

    yield

    # Shutdown
    for controller in sessions.session_controllers.values():
        await controller.close()
    written = await get_history_store().flush()
    if written:
        logger.info(f"💾 Flushed {written} pending history writes")
    logger.info(f"👋 Shutting down {settings.app_name}...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="AI slide deck generator with PPTX and PDF export",
        version=__version__,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(slides.router, tags=["slides"])
    app.include_router(sessions.router, tags=["sessions"])
    app.include_router(history.router, tags=["history"])
    app.include_router(export.router, tags=["export"])

    @app.get("/api/config")
    async def get_public_config():
        """Get public configuration."""
        return {
            "app_name": settings.app_name,
            "llm_enabled": settings.llm_provider != "none",
            "model": settings.azure_openai_deployment,
            "retry_cooldown_seconds": settings.retry_cooldown_seconds,
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
