"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, covrest.toml only contains overrides.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_ACCEPT = "application/prs.coverage+json, application/ld+json;q=0.9, application/json;q=0.8"


class HttpConfig(BaseModel):
    """[http] section."""

    model_config = {"frozen": True}

    timeout: float = 30.0
    accept: str = DEFAULT_ACCEPT
    user_agent: str = "covrest"
    headers: dict[str, str] = Field(default_factory=dict)


class QueryConfig(BaseModel):
    """[query] section."""

    model_config = {"frozen": True}

    snap_ranges: bool = True
