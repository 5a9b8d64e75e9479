"""API skeleton endpoints for quick bootstrap and capability introspection."""

from typing import Any, Dict

from fastapi import APIRouter

from miroyo.config.settings import settings

router = APIRouter(prefix="/api/v1", tags=["system"])


@router.get("", summary="API index")
async def api_index() -> Dict[str, Any]:
    return {
        "name": "Miroyo API",
        "app": settings.app_name,
        "env": settings.env,
        "docs": "/docs",
        "interpret": "/api/interpret",
        "health": "/api/v1/health",
        "metrics": "/metrics",
    }


@router.get("/capabilities", summary="Runtime capability matrix")
async def capabilities() -> Dict[str, Any]:
    return {
        "llm": {
            "backend": "gemini",
            "model": settings.llm.gemini_model,
            "configured": bool(settings.llm.gemini_api_key),
            "temperature": settings.llm.temperature,
            "max_output_tokens": settings.llm.max_output_tokens,
        },
        "interpret": {
            "max_input_length": settings.interpret.max_input_length,
            "model_timeout_seconds": settings.interpret.model_timeout_seconds,
        },
        "rate_limit": {
            "backend": settings.rate_limit.backend,
            "requests": settings.rate_limit.requests,
            "window_seconds": settings.rate_limit.window_seconds,
        },
        "share": {
            "max_bytes": settings.share.max_bytes,
            "max_token_length": settings.share.max_token_length,
            "formats": ["legacy", "z_"],
        },
    }
