# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

This module provides a pre-configured FastAPI application that loads the
process configuration and starts the MessagingService automatically.

Usage:
    uvicorn message_dispatch.server:app --host 0.0.0.0 --port 8000

Environment variables:
    MDS_CONFIG: Path to config.ini (default: config.ini)
    MDS_DB_PATH: Path to SQLite database (default: /data/message_dispatch.db)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import create_app
from .config import DispatchConfig, load_config
from .logger import configure_logging
from .service import MessagingService


def build_app(config: DispatchConfig) -> FastAPI:
    """Create the service for config and wrap it in the HTTP application."""
    service = MessagingService(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler - opens and closes the service."""
        await service.start()
        yield
        await service.close()

    return create_app(service, api_token=config.api_token, lifespan=lifespan)


_config = load_config()
configure_logging(_config.log_level)

app = build_app(_config)
