import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .draft_routes import close_registry, router as draft_router
from .logging_config import configure_logging


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("Journey drafts starting: remote=%s persistence=%s", settings.remote_base_url, settings.persistence_mode)
    yield
    await close_registry()


app = FastAPI(title="Journey Drafts", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(draft_router)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "persistence_mode": settings.persistence_mode}


def run() -> None:
    import uvicorn

    host = os.getenv("JOURNEY_DRAFTS_HOST", "127.0.0.1")
    port = int(os.getenv("JOURNEY_DRAFTS_PORT", "8010"))
    logger.info("Starting journey drafts API on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run()
