"""
API 层 - FastAPI 应用

Miroyo DJ 成果卡片 - 成果解析接口
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from miroyo.api.skeleton import router as skeleton_router
from miroyo.config.settings import settings
from miroyo.observability import metrics as obs
from miroyo.services.interpret_service import InterpretRequest, InterpretService
from miroyo.services.llm_client import GeminiClient
from miroyo.services.rate_limiter import MemoryRateLimitStore, build_rate_limit_store

logger = logging.getLogger(__name__)

NO_STORE = "no-store"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Global singletons
llm_client = GeminiClient()
interpret_service = InterpretService(llm_client=llm_client, rate_limiter=MemoryRateLimitStore())


@asynccontextmanager
async def lifespan(app: FastAPI):
    global interpret_service
    logger.info("Miroyo starting up")
    rate_limiter = await build_rate_limit_store()
    interpret_service = InterpretService(llm_client=llm_client, rate_limiter=rate_limiter)
    obs.set_app_info(settings.app_name, app.version, settings.env)
    yield
    logger.info("Miroyo shutting down")
    await rate_limiter.close()
    await llm_client.close()


app = FastAPI(
    title="Miroyo API",
    description="DJ がんばり成果カード",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(skeleton_router)


@app.middleware("http")
async def no_store_and_metrics_middleware(request: Request, call_next):
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    method = request.method
    status_code = 500
    start = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers["Cache-Control"] = NO_STORE
        status_code = response.status_code
        return response
    finally:
        if path != "/metrics":
            obs.observe_http_request(method, path, status_code, time.perf_counter() - start)


def get_interpret_service() -> InterpretService:
    return interpret_service


# ===================================================================
# Interpret Endpoint
# ===================================================================

@app.api_route("/api/interpret", methods=ALL_METHODS)
async def interpret(request: Request, service: InterpretService = Depends(get_interpret_service)):
    body: Optional[bytes] = await request.body() if request.method == "POST" else None
    outcome = await service.handle(InterpretRequest(
        method=request.method,
        headers=request.headers,
        body=body,
    ))
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body,
        headers={"Cache-Control": NO_STORE},
    )


# ===================================================================
# Health & Metrics
# ===================================================================

@app.get("/api/v1/health")
async def health_check():
    llm_health = await llm_client.health_check()
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.env,
        "llm": llm_health,
    }


@app.get("/metrics")
async def prometheus_metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
