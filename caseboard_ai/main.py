from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from caseboard_ai.agent.generator import PlanGenerator
from caseboard_ai.api.routes import router
from caseboard_ai.core.access import BoardAccessService
from caseboard_ai.core.auth import TokenVerifier
from caseboard_ai.core.config import Settings, settings
from caseboard_ai.core.errors import CaseboardError
from caseboard_ai.core.logging import get_logger
from caseboard_ai.db.session import init_db
from caseboard_ai.llm.tracing import Tracer

log = get_logger("api")


def create_app(
    *,
    generator: Optional[PlanGenerator] = None,
    verifier: Optional[TokenVerifier] = None,
    access: Optional[BoardAccessService] = None,
    tracer: Optional[Tracer] = None,
    cfg: Settings = settings,
    bench_client: Optional[httpx.AsyncClient] = None,
    init_database: bool = True,
) -> FastAPI:
    app = FastAPI(title="Caseboard AI Planning API", version="0.1.0")
    app.state.cfg = cfg
    app.state.injected = {"generator": generator, "verifier": verifier, "access": access, "tracer": tracer}
    app.state.services = None
    app.state.bench_client = bench_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Benchmark-Secret"],
        expose_headers=["X-AI-Provider", "X-AI-Model"],
    )
    app.include_router(router)

    @app.exception_handler(CaseboardError)
    async def on_caseboard_error(request: Request, exc: CaseboardError):
        if exc.status_code >= 500:
            log.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
        return JSONResponse({"error": exc.public_message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def on_http_error(request: Request, exc: StarletteHTTPException):
        message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
        return JSONResponse({"error": message}, status_code=exc.status_code, headers=exc.headers)

    if init_database:

        @app.on_event("startup")
        async def on_startup():
            await init_db()

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.services is not None:
            await app.state.services.tracer.drain()

    return app


app = create_app()
