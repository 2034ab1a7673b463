import logging
from contextlib import asynccontextmanager

import aiosqlite
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardwise.config import settings
from cardwise.db import init_all_databases
from cardwise.errors import (
    CardNotFoundError,
    CardwiseError,
    ReviewConflictError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    CardNotFoundError: 404,
    ReviewConflictError: 409,
    StorageUnavailableError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_all_databases(settings.data_dir)
    yield


async def cardwise_error_handler(request: Request, exc: CardwiseError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), 500)
    if status_code == 503:
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
        detail = "Database error occurred. Please try again."
    else:
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        detail = str(exc)
    return JSONResponse(status_code=status_code, content={"detail": detail})


async def sqlite_error_handler(request: Request, exc: aiosqlite.OperationalError) -> JSONResponse:
    logger.error("SQLite error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Database error occurred. Please try again."},
    )


def create_app() -> FastAPI:
    application = FastAPI(
        title="Cardwise Backend", version="0.1.0", lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(CardwiseError, cardwise_error_handler)
    application.add_exception_handler(aiosqlite.OperationalError, sqlite_error_handler)

    from cardwise.routers import flashcards, health, reviews, users

    application.include_router(health.router)
    application.include_router(
        flashcards.router, prefix="/flashcards", tags=["flashcards"]
    )
    application.include_router(
        reviews.router, prefix="/reviews", tags=["reviews"]
    )
    application.include_router(
        users.router, prefix="/users", tags=["users"]
    )

    return application


app = create_app()
