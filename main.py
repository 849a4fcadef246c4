"""
Club Placement FastAPI Application

Main entry point for the club placement service, serving the REST API
and real-time updates for the interactive club placement map.
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

# Load environment variables before anything reads the configuration
load_dotenv()

from database import init_db  # noqa: E402
from logic.config import load_config  # noqa: E402
from logic.logging_setup import setup_logging  # noqa: E402
from server import sessions  # noqa: E402
from server.placement import router as placement_router  # noqa: E402

config = load_config()
setup_logging(
    environment=config["environment"],
    log_level=config["log_level"],
    log_dir=config["log_dir"],
)
logger = logging.getLogger(__name__)

init_db()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Club placement service started (directory: %s)", config["directory_url"])
    yield
    await sessions.close_all()


app = FastAPI(title="Club Placement", lifespan=lifespan)

app.include_router(placement_router)


@app.get("/health")
def health():
    return {"ok": True}
