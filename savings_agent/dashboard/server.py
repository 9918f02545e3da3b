"""FastAPI debug API exposing read-only ledger snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from savings_agent import get_version
from savings_agent.core.logging import get_logger

if TYPE_CHECKING:
    from savings_agent.engine import SavingsEngine


LOG = get_logger(__name__)

RECENT_LIMIT = 50

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def create_app(engine: "SavingsEngine") -> FastAPI:
    """Build the debug API around an engine's ledgers and stats service."""

    app = FastAPI(title="Savings Agent Debug API", version=get_version())
    ctx = engine.ctx

    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse({"error": message}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        LOG.error("Debug API request failed", path=request.url.path, error=str(exc))
        return JSONResponse({"error": str(exc)}, status_code=500, headers=CORS_HEADERS)

    @app.get("/api/stats")
    async def stats() -> JSONResponse:
        return JSONResponse(await engine.stats.collect())

    @app.get("/api/transactions")
    async def transactions() -> JSONResponse:
        records = ctx.store.recent_transactions(RECENT_LIMIT)
        return JSONResponse([record.model_dump(mode="json") for record in records])

    @app.get("/api/plans")
    async def plans() -> JSONResponse:
        return JSONResponse([plan.model_dump(mode="json") for plan in ctx.store.get_all()])

    @app.get("/api/costs")
    async def costs() -> JSONResponse:
        return JSONResponse(
            {
                "costs": [entry.model_dump(mode="json") for entry in ctx.costs.recent_costs(RECENT_LIMIT)],
                "revenue": [entry.model_dump(mode="json") for entry in ctx.costs.recent_revenue(RECENT_LIMIT)],
            }
        )

    return app


__all__ = ["create_app", "RECENT_LIMIT"]
