"""Pluggy hook specifications for covrest extension points.

Hooks fire at exactly three points: after a capability descriptor is
built, after a plan is computed, and just before a remote call is issued.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("covrest")


class CovrestHookSpec:
    """Hook specifications for the covrest plugin system."""

    @hookspec
    def post_discover(self, data_id: str | None, capabilities: dict[str, Any]) -> None:
        """Called after a capability descriptor has been discovered."""

    @hookspec
    def post_plan(
        self,
        operation: str,
        remote: dict[str, str],
        local: list[str],
    ) -> None:
        """Called after constraints were split into remote and local parts."""

    @hookspec
    def pre_request(self, url: str, headers: dict[str, str]) -> None:
        """Called just before the loader is invoked for a remote call."""
