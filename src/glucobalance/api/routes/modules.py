"""/modules routes: the module loader's public API over HTTP."""
from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from core.modules import ModuleLoader
from core.modules.registry import is_valid_name

router = APIRouter(prefix="/modules")


class PreloadRequest(BaseModel):  # noqa: D401
    modules: list[str] = Field(default_factory=list)


def _loader(request: Request) -> ModuleLoader:
    return request.app.state.loader


def _check_name(name: str) -> None:
    if not is_valid_name(name):
        raise HTTPException(
            status_code=422, detail={"error": "invalid-module-name", "module": name}
        )


@router.get("")
def list_modules(request: Request):  # noqa: D401
    return _loader(request).info()


@router.post("/{name}/require")
async def require_module(name: str, request: Request):  # noqa: D401
    _check_name(name)
    loader = _loader(request)
    await loader.require(name)
    return {
        "module": name,
        "loaded": loader.is_loaded(name),
        "source": loader.source_of(name),
    }


@router.post("/{name}/prefetch")
async def prefetch_module(name: str, request: Request):  # noqa: D401
    _check_name(name)
    result = await _loader(request).prefetch_module(name)
    return result.to_dict()


@router.post("/preload")
async def preload_modules(payload: PreloadRequest, request: Request):  # noqa: D401
    names = [n for n in payload.modules if is_valid_name(n)]
    tasks = _loader(request).preload(names)
    results = await asyncio.gather(*tasks)
    return {
        "results": [r.to_dict() for r in results],
        "skipped": [n for n in payload.modules if n not in names],
    }


@router.get("/performance")
def performance(request: Request):  # noqa: D401
    return {"entries": _loader(request).get_performance_data()}


@router.delete("/cache")
def clear_cache(request: Request):  # noqa: D401
    loader = _loader(request)
    cleared = len(loader.loaded_names())
    loader.clear_cache()
    return {"ok": True, "cleared": cleared}
