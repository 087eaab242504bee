"""
Wiki Resolver API

FastAPI server wrapping the resolver. Run with:

    python -m wiki_resolver.server
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wiki_resolver import service
from wiki_resolver.config import LOG_LEVEL, PORT
from wiki_resolver.router import resolver_router

# Configure logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service.get_resolver()
    logger.info("Wiki resolver API started")
    yield
    await service.shutdown()
    logger.info("Wiki resolver API stopped")


# FastAPI app
app = FastAPI(
    title="Wiki Resolver API",
    version="1.0.0",
    description="Resolves free-text subjects into cached, enriched Wikipedia knowledge records",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(resolver_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
