import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lyricsync.config import settings
from lyricsync.api import songs
from lyricsync.services.chunk_cache import close_chunk_cache

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    yield
    # Release the Redis connection pool when one was opened
    await close_chunk_cache()


app = FastAPI(
    title="Lyricsync API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(songs.router, prefix="/api/songs", tags=["songs"])


@app.get("/api/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
