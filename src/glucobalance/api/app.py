"""FastAPI application factory for the GlucoBalance API layer.

The module loader is created on startup (critical modules preloaded) and
kept on ``app.state.loader``; routes reach it from the request.
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from core import metrics
from core.config import get_config
from core.log import configure_logging
from core.modules import ModuleLoader
from glucobalance.api.routes.ai import router as ai_router
from glucobalance.api.routes.modules import router as modules_router

logger = logging.getLogger("glucobalance.api")


def create_app(loader: ModuleLoader | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = get_config()
        configure_logging(cfg.logging)
        if getattr(app.state, "loader", None) is None:
            app.state.loader = ModuleLoader()
        sources = await app.state.loader.start()
        logger.info("startup complete, critical modules: %s", sources)
        try:
            yield
        finally:
            await app.state.loader.wait_idle()

    app = FastAPI(
        title="GlucoBalance API",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.loader = loader

    # Dev CORS (UI on :3000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():  # noqa: D401
        return {"status": "ok"}

    @app.get("/config")
    def config():  # noqa: D401
        cfg = get_config()
        return {
            "environment": cfg.system.environment,
            "loader": cfg.loader.model_dump(),
            "ai": {
                "model": cfg.ai.model,
                "queue_delay_ms": cfg.ai.queue_delay_ms,
                "sampling": cfg.ai.sampling.model_dump(),
            },
        }

    @app.get("/metrics")
    def metrics_snapshot(format: str = "json"):  # noqa: D401
        if format == "text":
            return PlainTextResponse(metrics.render_text())
        return metrics.snapshot()

    app.include_router(modules_router)
    app.include_router(ai_router)

    @app.middleware("http")
    async def _metrics_mw(request: Request, call_next):  # noqa: D401
        start = time.time()
        labels = {"route": request.url.path, "method": request.method}
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration_ms = (time.time() - start) * 1000.0
            metrics.inc("api_request_total", labels)
            metrics.observe("api_request_latency_ms", duration_ms, labels)
            if status >= 400:
                metrics.inc("api_request_errors_total", labels | {"status": status})

    return app


def main() -> None:  # pragma: no cover
    import uvicorn

    uvicorn.run(
        "glucobalance.api.app:create_app",
        factory=True,
        host="127.0.0.1",
        port=8000,
        reload=False,
    )


if __name__ == "__main__":  # pragma: no cover
    main()
