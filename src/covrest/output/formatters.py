"""Formatting entry point: JSON for machines, Rich renderers for humans."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

from covrest.output.renderers import render_result

if TYPE_CHECKING:
    from covrest.services.result import ServiceResult


class OutputSettings(BaseModel):
    """How the CLI renders results."""

    model_config = {"frozen": True}

    json_output: bool = False
    verbose: bool = False


def format_result(result: ServiceResult, *, settings: OutputSettings | None = None) -> str:
    """Format a ServiceResult for display."""
    settings = settings or OutputSettings()
    if settings.json_output:
        return result.model_dump_json(indent=2)
    return render_result(result, verbose=settings.verbose)
