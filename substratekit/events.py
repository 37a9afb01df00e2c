"""Events of a block, narrowed to those emitted by one extrinsic.

The ``events`` object wrapped by :class:`TransactionEvents` must offer a
``block_hash`` (attribute or method), and ``iter()`` and ``iter_raw()``
returning iterables of event details. Each detail has a ``phase``, written
either as ``("ApplyExtrinsic", index)`` or ``{"ApplyExtrinsic": index}``.
Raw details also carry ``pallet``, ``variant`` and ``bytes``.

Event types passed to :meth:`TransactionEvents.find` have ``PALLET`` and
``EVENT`` names and a ``decode(data)`` class method.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from substratekit.errors import DecodeError, SubxtError

_APPLY_EXTRINSIC = "ApplyExtrinsic"
_MISSING = object()


def _applies_to(phase: Any, index: int) -> bool:
    if isinstance(phase, Mapping):
        return phase.get(_APPLY_EXTRINSIC, _MISSING) == index
    if isinstance(phase, tuple) and len(phase) == 2:
        return phase[0] == _APPLY_EXTRINSIC and phase[1] == index
    return False


def _decode_event(event_type: Any, data: Any) -> Any:
    try:
        return event_type.decode(bytes(data))
    except SubxtError:
        raise
    except Exception as exc:
        raise DecodeError(
            f"cannot decode event {event_type.PALLET}::{event_type.EVENT}: {exc}"
        ) from exc


@dataclass
class TransactionEvents:
    """The events of the block a transaction made it into."""

    extrinsic_hash: Any
    extrinsic_index: int
    events: Any

    @property
    def block_hash(self) -> Any:
        """The hash of the block the transaction made it into."""
        value = self.events.block_hash
        return value() if callable(value) else value

    def all_events_in_block(self) -> Any:
        """Return every event in the block, related to the transaction or not."""
        return self.events

    def iter(self) -> Iterator[Any]:
        """Yield the decoded events emitted while applying this extrinsic."""
        return (
            ev for ev in self.events.iter() if _applies_to(ev.phase, self.extrinsic_index)
        )

    def iter_raw(self) -> Iterator[Any]:
        """Yield the raw events emitted while applying this extrinsic."""
        return (
            ev
            for ev in self.events.iter_raw()
            if _applies_to(ev.phase, self.extrinsic_index)
        )

    def find(self, event_type: Any) -> Iterator[Any]:
        """Yield each event of this extrinsic that is of ``event_type``, decoded."""
        for ev in self.iter_raw():
            if ev.pallet == event_type.PALLET and ev.variant == event_type.EVENT:
                yield _decode_event(event_type, ev.bytes)

    def find_first(self, event_type: Any) -> Optional[Any]:
        """Return the first event of ``event_type``, or ``None``."""
        return next(self.find(event_type), None)

    def has(self, event_type: Any) -> bool:
        """Tell whether this extrinsic emitted an event of ``event_type``."""
        return self.find_first(event_type) is not None