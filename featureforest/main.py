"""featureforest FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from featureforest import config
from featureforest.observability import initialize as initialize_observability, shutdown as shutdown_observability
from featureforest.routers.forest import forest_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("featureforest")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("featureforest API starting up")
    initialize_observability(app)
    yield
    logger.info("featureforest API shutting down")
    shutdown_observability(app)


app = FastAPI(
    title="featureforest API",
    description="Assemble line-oriented feature logs into program trees",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(forest_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}
