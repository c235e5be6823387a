"""Remote execution — turn accepted remote constraints into zero or one loader call."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from covrest.domain.capabilities import CapabilityDescriptor, RemoteRequest
from covrest.domain.types import EmbedPart

if TYPE_CHECKING:
    from covrest.services.composer import WrapOptions
    from covrest.services.planner import Plan

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RemoteOutcome:
    """Result of the remote step.

    Attributes:
        data: The loaded object, or the untouched input when nothing was
            delegated.
        request: The request that was issued, None when skipped.
    """

    data: Any
    request: RemoteRequest | None = None

    @property
    def fetched(self) -> bool:
        return self.request is not None


class RemoteExecutor:
    """Builds the request for a plan and invokes the injected loader once."""

    def __init__(self, capabilities: CapabilityDescriptor, options: WrapOptions) -> None:
        self._capabilities = capabilities
        self._options = options

    async def execute(
        self,
        data: Any,
        *,
        filter_plan: Plan | None = None,
        subset_plan: Plan | None = None,
        embed: Iterable[EmbedPart] = (),
    ) -> RemoteOutcome:
        """Fetch the remote part of the plans, or return *data* untouched.

        Nothing remote and no embed request means zero network interaction.
        Loader failures propagate unchanged.
        """
        embed_parts = frozenset(embed)
        filter_remote = filter_plan.remote if filter_plan else {}
        subset_remote = subset_plan.remote if subset_plan else {}
        index_remote = subset_plan.index if subset_plan else {}
        if not (filter_remote or subset_remote or index_remote or embed_parts):
            return RemoteOutcome(data=data)

        request = self._capabilities.build_url(
            filter=filter_remote,
            subset=subset_remote,
            index=index_remote,
            embed=embed_parts,
        )
        log.debug("remote.request", url=request.url, headers=request.headers)
        self._options.notify("pre_request", url=request.url, headers=dict(request.headers))
        result = await self._options.loader(request.url, dict(request.headers))
        return RemoteOutcome(data=result, request=request)
