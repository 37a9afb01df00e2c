"""Follow a submitted transaction until it is in a block or finalized.

The ``client`` given to :class:`TransactionProgress` must offer:

* ``rpc.block(block_hash)``: a coroutine returning the block, or ``None``.
  The block holds ``block.extrinsics``; mappings of the form
  ``{"block": {"extrinsics": [...]}}`` are accepted too.
* ``events_at(block_hash)``: a coroutine returning the events of a block,
  as described in :mod:`substratekit.events`.
* ``state``: a :class:`~substratekit.state.ClientState` whose metadata has
  ``error(pallet_index, error_index)`` returning details with ``pallet``,
  ``error`` and ``description``.
* optionally ``hash_extrinsic(extrinsic)``; extrinsics are otherwise
  hashed with BLAKE2b-256 of their bytes (hex strings are decoded first).

The ``dispatch_error`` type has a ``decode(data)`` class method; the decoded
value has a ``module_error_data()`` method returning ``None`` or an object
with ``pallet_index`` and ``error_index``.

Statuses from the subscription use the node's JSON form: plain names such
as ``"ready"``, or one-entry mappings such as ``{"inBlock": hash}``.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from substratekit.errors import (
    DecodeError,
    ModuleError,
    RpcError,
    RuntimeError,
    SubxtError,
    TransactionError,
)
from substratekit.events import TransactionEvents
from substratekit.hashing import blake2_256

_SUBSCRIPTION_DROPPED = "RPC subscription dropped"


class StatusKind(enum.Enum):
    """The kinds of status a transaction passes through."""

    FUTURE = "future"
    READY = "ready"
    BROADCAST = "broadcast"
    IN_BLOCK = "inblock"
    RETRACTED = "retracted"
    FINALITY_TIMEOUT = "finalitytimeout"
    FINALIZED = "finalized"
    USURPED = "usurped"
    DROPPED = "dropped"
    INVALID = "invalid"


_WITH_PAYLOAD = frozenset(
    {
        StatusKind.BROADCAST,
        StatusKind.IN_BLOCK,
        StatusKind.RETRACTED,
        StatusKind.FINALITY_TIMEOUT,
        StatusKind.FINALIZED,
        StatusKind.USURPED,
    }
)
_FINAL = frozenset({StatusKind.FINALIZED, StatusKind.FINALITY_TIMEOUT})


def _attr(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        value = obj[name]
    else:
        value = getattr(obj, name)
    return value() if callable(value) else value


def _parse_status(raw: Any) -> tuple[StatusKind, Any]:
    if isinstance(raw, str):
        name, payload = raw, None
    elif isinstance(raw, Mapping) and len(raw) == 1:
        ((name, payload),) = raw.items()
    else:
        raise DecodeError(f"unexpected transaction status: {raw!r}")
    try:
        kind = StatusKind(str(name).replace("_", "").lower())
    except ValueError:
        raise DecodeError(f"unknown transaction status: {name!r}") from None
    if (kind in _WITH_PAYLOAD) != (payload is not None):
        raise DecodeError(f"malformed transaction status: {raw!r}")
    return kind, payload


def _extrinsics(block: Any) -> list[Any]:
    inner = block["block"] if isinstance(block, Mapping) else block.block
    if isinstance(inner, Mapping):
        return list(inner["extrinsics"])
    return list(inner.extrinsics)


def _hash_extrinsic(client: Any, extrinsic: Any) -> Any:
    hasher = getattr(client, "hash_extrinsic", None)
    if callable(hasher):
        return hasher(extrinsic)
    if isinstance(extrinsic, str):
        text = extrinsic[2:] if extrinsic.startswith("0x") else extrinsic
        extrinsic = bytes.fromhex(text)
    return blake2_256(bytes(extrinsic))


@dataclass(frozen=True)
class TransactionStatus:
    """One status reported for a transaction.

    ``value`` holds the peers for ``BROADCAST``, a :class:`TransactionInBlock`
    for ``IN_BLOCK`` and ``FINALIZED``, a block hash for ``RETRACTED``,
    ``USURPED`` and ``FINALITY_TIMEOUT``, and ``None`` otherwise.
    """

    kind: StatusKind
    value: Any = None

    def as_finalized(self) -> Optional[TransactionInBlock]:
        """Return the block details if the transaction is finalized."""
        return self.value if self.kind is StatusKind.FINALIZED else None

    def as_in_block(self) -> Optional[TransactionInBlock]:
        """Return the block details if the transaction is in a (non-final) block."""
        return self.value if self.kind is StatusKind.IN_BLOCK else None


@dataclass
class TransactionInBlock:
    """A transaction that has made it into a block."""

    block_hash: Any
    extrinsic_hash: Any
    client: Any
    dispatch_error: Any

    async def wait_for_success(self) -> TransactionEvents:
        """Return the transaction's events, raising if it failed.

        Raises :class:`ModuleError` when a pallet reported the failure and
        :class:`RuntimeError` for any other dispatch error.
        """
        events = await self.fetch_events()
        for ev in events.iter_raw():
            if ev.pallet != "System" or ev.variant != "ExtrinsicFailed":
                continue
            try:
                error = self.dispatch_error.decode(bytes(ev.bytes))
            except SubxtError:
                raise
            except Exception as exc:
                raise DecodeError(f"cannot decode dispatch error: {exc}") from exc
            error_data = error.module_error_data()
            if error_data is None:
                raise RuntimeError(error)
            details = self.client.state.metadata.error(
                _attr(error_data, "pallet_index"), _attr(error_data, "error_index")
            )
            raise ModuleError(
                pallet=str(_attr(details, "pallet")),
                error=str(_attr(details, "error")),
                description=list(_attr(details, "description")),
                error_data=error_data,
            )
        return events

    async def fetch_events(self) -> TransactionEvents:
        """Return the events of this transaction, whether it succeeded or not."""
        block = await self.client.rpc.block(self.block_hash)
        if block is None:
            raise TransactionError(TransactionError.BLOCK_HASH_NOT_FOUND)
        index = next(
            (
                position
                for position, extrinsic in enumerate(_extrinsics(block))
                if _hash_extrinsic(self.client, extrinsic) == self.extrinsic_hash
            ),
            None,
        )
        if index is None:
            raise TransactionError(TransactionError.BLOCK_HASH_NOT_FOUND)
        events = await self.client.events_at(self.block_hash)
        return TransactionEvents(
            extrinsic_hash=self.extrinsic_hash, extrinsic_index=index, events=events
        )


@dataclass
class TransactionProgress:
    """The stream of statuses of a submitted transaction.

    The stream ends after a ``FINALIZED`` or ``FINALITY_TIMEOUT`` status, or
    when the subscription itself ends.
    """

    subscription: Any
    client: Any
    extrinsic_hash: Any
    dispatch_error: Any
    _source: Any = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._source = aiter(self.subscription)

    def __aiter__(self) -> TransactionProgress:
        return self

    async def __anext__(self) -> TransactionStatus:
        status = await self.next_item()
        if status is None:
            raise StopAsyncIteration
        return status

    async def next_item(self) -> Optional[TransactionStatus]:
        """Return the next status, or ``None`` once the stream has ended."""
        if self._source is None:
            return None
        try:
            raw = await anext(self._source)
        except StopAsyncIteration:
            self._source = None
            return None
        except SubxtError:
            raise
        except Exception as exc:
            raise RpcError(f"transaction subscription failed: {exc}") from exc

        kind, payload = _parse_status(raw)
        if kind in _FINAL:
            self._source = None
        if kind in (StatusKind.IN_BLOCK, StatusKind.FINALIZED):
            payload = TransactionInBlock(
                block_hash=payload,
                extrinsic_hash=self.extrinsic_hash,
                client=self.client,
                dispatch_error=self.dispatch_error,
            )
        elif kind is StatusKind.BROADCAST:
            payload = list(payload)
        return TransactionStatus(kind, payload)

    async def wait_for_in_block(self) -> TransactionInBlock:
        """Wait until the transaction is in a block, finalized or not.

        Statuses such as ``INVALID`` or ``USURPED`` are skipped, since the
        transaction may still make it into a block.
        """
        async for status in self:
            if status.kind in (StatusKind.IN_BLOCK, StatusKind.FINALIZED):
                return status.value
            if status.kind is StatusKind.FINALITY_TIMEOUT:
                raise TransactionError(TransactionError.FINALITY_SUBSCRIPTION_TIMEOUT)
        raise RpcError(_SUBSCRIPTION_DROPPED)

    async def wait_for_finalized(self) -> TransactionInBlock:
        """Wait until the transaction is finalized."""
        async for status in self:
            if status.kind is StatusKind.FINALIZED:
                return status.value
            if status.kind is StatusKind.FINALITY_TIMEOUT:
                raise TransactionError(TransactionError.FINALITY_SUBSCRIPTION_TIMEOUT)
        raise RpcError(_SUBSCRIPTION_DROPPED)

    async def wait_for_finalized_success(self) -> TransactionEvents:
        """Wait for finalization and return the events of a successful transaction."""
        in_block = await self.wait_for_finalized()
        return await in_block.wait_for_success()