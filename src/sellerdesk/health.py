"""Health and readiness endpoints for container orchestration.

- ``GET /health`` -- Liveness probe.  Returns 200 if the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when a database
  connection can be opened and answers ``SELECT 1``; 503 otherwise.
"""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import closing
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


def _check_database(services: dict[str, Any]) -> str:
    factory = services.get("connection_factory")
    if factory is None:
        return "fail"
    try:
        with closing(factory()) as conn:
            conn.execute("SELECT 1")
    except sqlite3.Error:
        logger.warning("readiness_database_failed", exc_info=True)
        return "fail"
    return "ok"


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*."""

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe -- checks the database is reachable."""
        services: dict[str, Any] = request.app.state.services
        checks = {"database": await asyncio.to_thread(_check_database, services)}

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
