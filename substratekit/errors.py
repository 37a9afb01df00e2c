"""Exceptions raised by the client."""

from __future__ import annotations

from typing import Any, Sequence


class SubxtError(Exception):
    """Base class of every error raised by the client."""


class RpcError(SubxtError):
    """A request to the node failed or a subscription ended unexpectedly."""


class DecodeError(SubxtError):
    """Bytes returned by the node could not be decoded."""


class MetadataError(SubxtError):
    """The runtime metadata lacks an item or does not match what was expected."""


class TransactionError(SubxtError):
    """A submitted transaction could not be followed to completion."""

    FINALITY_SUBSCRIPTION_TIMEOUT = "The finality subscription expired"
    BLOCK_HASH_NOT_FOUND = (
        "The block containing the transaction can no longer be found"
    )

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ModuleError(SubxtError):
    """A pallet reported a dispatch error for the transaction."""

    def __init__(
        self,
        pallet: str,
        error: str,
        description: Sequence[str] = (),
        error_data: Any = None,
    ) -> None:
        self.pallet = pallet
        self.error = error
        self.description = list(description)
        self.error_data = error_data
        text = f"Module error: {pallet}::{error}"
        if self.description:
            text += ": " + " ".join(self.description)
        super().__init__(text)


class RuntimeError(SubxtError):  # noqa: A001 - named after the dispatch outcome
    """The runtime rejected the transaction with a non-module dispatch error."""

    def __init__(self, dispatch_error: Any) -> None:
        self.dispatch_error = dispatch_error
        super().__init__(f"Runtime error: {dispatch_error!r}")