"""Keep a client's runtime version and metadata in step with the node."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from substratekit.state import ClientState

logger = logging.getLogger(__name__)


def _spec_version(version: Any) -> Any:
    if isinstance(version, Mapping):
        return version.get("specVersion", version.get("spec_version"))
    return getattr(version, "spec_version")


@dataclass
class UpdateClient:
    """Follows runtime version changes reported by the node.

    ``rpc`` must offer ``subscribe_runtime_version()``, an awaitable that
    yields an async iterator of runtime versions, and ``metadata()``, an
    awaitable that returns the node's current metadata.
    """

    rpc: Any
    state: ClientState

    async def perform_runtime_updates(self) -> None:
        """Apply runtime updates until the subscription ends or an error is raised.

        Meant to run in a dedicated background task.
        """
        subscription = await self.rpc.subscribe_runtime_version()
        async for new_version in subscription:
            current = _spec_version(self.state.runtime_version)
            incoming = _spec_version(new_version)
            # The node reports its version right after subscribing; skip it
            # when it matches what the client already has.
            if current == incoming:
                logger.debug(
                    "Runtime update not performed for spec_version=%s, "
                    "client has spec_version=%s",
                    incoming,
                    current,
                )
                continue

            logger.info("Performing runtime update from %s to %s", current, incoming)
            self.state.replace(runtime_version=new_version)

            metadata = await self.rpc.metadata()
            logger.debug("Performing metadata update")
            self.state.replace(metadata=metadata)
            logger.debug("Runtime update completed")