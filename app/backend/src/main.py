"""Entrypoint for the FastAPI application."""

import os

from dotenv import load_dotenv

# Load .env locally only; deployments inject env vars directly.
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, invoices
from .core.config import get_settings
from .core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="Invoice Studio", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    app.include_router(health.router, prefix="/api")
    app.include_router(invoices.router, prefix="/api")

    return app


app = create_app()
