"""
Main FastAPI application for the Tanishuv Stars ledger.
Serves health, payments, creators and metrics.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tanishuv.api.deps import close_redis
from tanishuv.api.errors import register_error_handlers
from tanishuv.api.routes import creators, health, payments
from tanishuv.core.config import settings
from tanishuv.core.logging import configure_logging
from tanishuv.utils.metrics import router as metrics_router


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_redis()


app = FastAPI(
    lifespan=lifespan,
    title="Tanishuv Payments API",
    description="Stars wallet, ledger and Telegram Stars payments for the Tanishuv Mini App",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000", "https://web.telegram.org"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(payments.router)
app.include_router(creators.router)
app.include_router(metrics_router)
