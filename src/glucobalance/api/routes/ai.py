"""/ai/generate: dashboard insight through whatever the loader resolved.

The loaded ``ai`` module is either the real service (async
``generate_content``) or its stub (plain string); both are accepted.
"""
from __future__ import annotations

import inspect
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from glucobalance.features.ai import get_error_message

router = APIRouter(prefix="/ai")


class GenerateRequest(BaseModel):  # noqa: D401
    prompt: str = Field(min_length=1)
    feature: str = "generic"
    context: dict[str, Any] = Field(default_factory=dict)


@router.post("/generate")
async def generate(payload: GenerateRequest, request: Request):  # noqa: D401
    loader = request.app.state.loader
    ai = await loader.require("ai")
    generate_content = getattr(ai, "generate_content", None)
    if generate_content is None:
        return JSONResponse(
            status_code=503,
            content={"error_type": "stub-missing", "message": "AI module unavailable"},
        )
    context = {"feature": payload.feature, **payload.context}
    try:
        text = generate_content(payload.prompt, context)
        if inspect.isawaitable(text):
            text = await text
    except Exception as e:  # noqa: BLE001
        return JSONResponse(
            status_code=502,
            content={
                "error_type": getattr(e, "error_type", "ai-request-failed"),
                "message": get_error_message(e),
            },
        )
    return {"text": text, "source": loader.source_of("ai")}
