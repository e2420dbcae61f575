import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import convert, editor, health
from managers.graph_manager import GraphManager

# Configure logging
handler = logging.StreamHandler()
handler.setFormatter(
    logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
)

for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logger = logging.getLogger(logger_name)
    logger.setLevel(os.environ.get("WEB_SERVER_LOG_LEVEL", "WARNING").upper())
    logger.handlers.clear()
    logger.handlers = [handler]
    logger.propagate = False

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
logger.handlers = [handler]

# Optional pipeline description file loaded into the editor at startup.
INITIAL_PIPELINE_DESCRIPTION = os.environ.get("INITIAL_PIPELINE_DESCRIPTION", "")


def load_initial_description(path: str) -> None:
    """
    Load the startup pipeline description, if one is configured.

    A file that cannot be read is reported and the editor starts with an
    empty graph.
    """
    if not path:
        return
    try:
        GraphManager().load_file(path)
        logger.info(f"Loaded initial pipeline description from {path}")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read initial pipeline description {path}: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup and shutdown.
    """
    logger.info("Application starting...")
    load_initial_description(INITIAL_PIPELINE_DESCRIPTION)

    yield

    logger.info("Application shutting down...")


app = FastAPI(
    title="Pipeline Graph Editor API",
    description="API for editing pipeline graphs and their text descriptions",
    version="1.0.0",
    root_path="/api/v1",
    # without explicitly setting servers to the same value as root_path,
    # generating openapi schema would omit whole servers section
    servers=[
        {"url": "/api/v1"},
    ],
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(convert.router, prefix="/convert", tags=["convert"])
app.include_router(editor.router, prefix="/graph", tags=["graph"])
