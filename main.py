"""
Calendar backend-for-frontend: application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_middleware
from auth.routes import router as auth_router
from calendar_api.routes import router as calendar_router
from config.settings import config
from connectors.encryption import get_cipher
from connectors.registry import ConnectorRegistry
from connectors.routes import router as integrations_router
from database.session import create_tables

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "googleapiclient", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Calendar BFF",
        version="1.0.0",
        description="Magic-link auth, OAuth credential custody and calendar proxy.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)

    # Routes
    app.include_router(auth_router, prefix="/api/v1/auth")
    app.include_router(integrations_router, prefix="/api/v1/integrations")
    app.include_router(calendar_router, prefix="/api/v1/calendar")

    @app.on_event("startup")
    async def on_startup():
        await create_tables()
        get_cipher()

        providers = ConnectorRegistry().list_configured()
        if not providers:
            logger.warning("No OAuth connectors configured; calendar routes will fail")
        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
