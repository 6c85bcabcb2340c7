# stockcount/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockcount.api.router import api_router
from stockcount.core.config import get_settings
from stockcount.core.logging import setup_logging
from stockcount.db.base import init_models
from stockcount.db.session import close_engines
from stockcount.http_problem_handlers import register_exception_handlers

settings = get_settings()
setup_logging(settings.LOG_LEVEL, json=settings.JSON_LOG)
logger = logging.getLogger("stockcount")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_models()
    logger.info("stockcount starting: env=%s", settings.ENV)
    yield
    await close_engines()


app = FastAPI(
    title="stockcount",
    version="0.3.0",
    docs_url="/docs",
    redoc_url="/redoc",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://127.0.0.1:8000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/")
async def root():
    return {"name": "stockcount", "version": "0.3.0"}


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
