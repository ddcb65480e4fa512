"""PopIt Speller FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from routers import health, session, tts  # noqa: E402
from services.speller import get_session  # noqa: E402

logging.basicConfig(
    level=os.environ.get("POPIT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = os.environ.get("POPIT_CORS_ORIGINS", "http://localhost:3000").split(",")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Loaded once per process; a failure is reported to the user, not retried.
    speller = get_session()
    await speller.load_model()
    yield
    speller.camera.stop()
    logger.info("Camera released on shutdown")


app = FastAPI(title="PopIt Speller", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(session.router)
app.include_router(tts.router)
