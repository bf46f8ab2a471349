from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from itemvault.db import get_engine, initialize_db
from itemvault.logging import configure_logging, reconfigure
from itemvault.settings import settings
from web.deps import DBConnectionMiddleware
from web.errors import register_error_handlers
from web.routes.auth import router as auth_router
from web.routes.items import router as items_router

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings.check_required()
    initialize_db()
    # Re-apply logging config; Alembic's fileConfig may have overridden it
    reconfigure()
    logger.info("Application started (rp_id=%s)", settings.webauthn_rp_id)
    yield
    get_engine().dispose()
    logger.info("Application stopped, database connections closed")


app = FastAPI(docs_url=None, redoc_url=None, lifespan=lifespan)

app.add_middleware(DBConnectionMiddleware)
# Outermost: answers preflight requests before routing.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

register_error_handlers(app)

app.include_router(auth_router)
app.include_router(items_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
