"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ripsearch import __version__
from ripsearch.config import get_settings
from ripsearch.dependencies import logger
from ripsearch.files.router import router as files_router
from ripsearch.surface import get_search_surface
from ripsearch.surface import router as search_router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Stop any running search process when the server shuts down."""
    yield
    get_search_surface().close()
    logger.info("app_shutdown")


app = FastAPI(title="ripsearch", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search_router)
app.include_router(files_router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "default_root": str(settings.default_root),
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {"name": "ripsearch", "version": __version__, "docs": "/docs"}


def serve() -> None:
    """Run the API with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


logger.info("app_startup", extra={"host": settings.host, "port": settings.port})
