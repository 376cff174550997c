"""Core/system schemas: storage and system."""
from __future__ import annotations

from pydantic import BaseModel


class StorageConfig(BaseModel):
    # None keeps the LocalStore in memory (tests, ephemeral runs)
    dir: str | None = ".glucobalance"


class SystemConfig(BaseModel):
    locale: str = "en-US"
    timezone: str = "UTC"
    environment: str = "development"
