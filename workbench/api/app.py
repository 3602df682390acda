"""FastAPI application entry point for the underwriting workbench."""

from __future__ import annotations

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workbench.api.routes import router
from workbench.api.session_service import SessionService
from workbench.config.settings import WorkbenchConfig
from workbench.telemetry.log_setup import configure_logging

VERSION = "1.0.0"


def create_app(
    config: WorkbenchConfig | None = None,
    service: SessionService | None = None,
    *,
    setup_logging: bool = True,
) -> FastAPI:
    """Factory function for creating the FastAPI application.

    Serve with ``uvicorn workbench.api.app:create_app --factory`` or the
    ``workbench-api`` script.
    """
    config = config or WorkbenchConfig()
    if setup_logging:
        configure_logging(config.log_level, config.log_style)

    app = FastAPI(
        title="Underwriting Workbench",
        description="AI-assisted extraction of underwriting data from insurance submissions",
        version=VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.session_service = service or SessionService.from_config(config)
    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "underwriting-workbench", "version": VERSION}

    return app


def main() -> None:
    import uvicorn

    uvicorn.run(
        create_app(),
        host=os.getenv("WORKBENCH_HOST", "127.0.0.1"),
        port=int(os.getenv("WORKBENCH_PORT", "8000")),
        log_config=None,
    )
