"""Shared, lock-protected runtime version and metadata of a client."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

_KEEP: Any = object()


@dataclass
class ClientState:
    """The runtime version and metadata a client currently works with."""

    runtime_version: Any
    metadata: Any
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def replace(self, runtime_version: Any = _KEEP, metadata: Any = _KEEP) -> None:
        """Replace the runtime version, the metadata, or both, atomically."""
        with self._lock:
            if runtime_version is not _KEEP:
                self.runtime_version = runtime_version
            if metadata is not _KEEP:
                self.metadata = metadata