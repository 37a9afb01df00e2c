"""Runtime storage queries: key construction, fetching and paged iteration.

A storage key is built from the prefix
``twox_128(pallet) ++ twox_128(storage_item)``, followed for map entries by
``hasher(encoded_key)`` for each map key in turn.

The ``rpc`` object given to :class:`StorageClient` must offer these
coroutines:

* ``storage(key, block_hash)``: the raw value under ``key``, or ``None``;
* ``storage_keys_paged(prefix, count, start_key, block_hash)``: up to
  ``count`` keys under ``prefix`` that follow ``start_key``, in order;
* ``query_storage(keys, start, end)``: historical change sets;
* ``query_storage_at(keys, block_hash)``: change sets at one block, each
  holding ``changes`` as ``(key, value or None)`` pairs;
* ``block_hash(number)``: a block hash, the latest one for ``None``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from substratekit.errors import DecodeError, MetadataError, RpcError, SubxtError
from substratekit.hashing import StorageHasher, twox_128
from substratekit.state import ClientState

Decoder = Callable[[bytes], Any]


def _decode(decode: Decoder, data: Any) -> Any:
    try:
        return decode(bytes(data))
    except SubxtError:
        raise
    except Exception as exc:
        raise DecodeError(f"cannot decode storage value: {exc}") from exc


def _changes(change_set: Any) -> Iterable[tuple[Any, Any]]:
    if isinstance(change_set, Mapping):
        return change_set["changes"]
    return change_set.changes


@dataclass(frozen=True)
class StorageMapKey:
    """One SCALE-encoded key of a storage map together with its hasher."""

    value: bytes
    hasher: StorageHasher

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bytes(self.value))

    def hashed(self) -> bytes:
        """Return the key as it appears in the final storage key."""
        return self.hasher.hash(self.value)


@dataclass(frozen=True)
class StorageEntryKey:
    """The key data of a storage entry: plain, or a sequence of map keys."""

    map_keys: Optional[tuple[StorageMapKey, ...]] = None

    @classmethod
    def plain(cls) -> StorageEntryKey:
        """A key made from the prefix alone."""
        return cls(None)

    @classmethod
    def map(cls, map_keys: Iterable[StorageMapKey]) -> StorageEntryKey:
        """A key made from the prefix followed by the hashed map keys."""
        return cls(tuple(map_keys))

    @property
    def is_plain(self) -> bool:
        return self.map_keys is None

    def final_key(self, prefix: StorageKeyPrefix) -> bytes:
        """Build the full storage key below ``prefix``."""
        return prefix.data + b"".join(key.hashed() for key in self.map_keys or ())


@dataclass(frozen=True)
class StorageKeyPrefix:
    """The ``twox_128(pallet) ++ twox_128(storage)`` prefix of an entry."""

    data: bytes

    @classmethod
    def for_entry(cls, entry: StorageEntry) -> StorageKeyPrefix:
        """Compute the prefix of ``entry``."""
        return cls(twox_128(entry.pallet) + twox_128(entry.storage))

    def to_storage_key(self) -> bytes:
        """Return the prefix as a storage key."""
        return self.data


@dataclass(frozen=True)
class StorageEntry:
    """A storage item of a pallet, with its map keys and value decoder.

    ``map_keys`` is ``None`` for a plain entry. ``decoder`` turns the raw
    bytes stored under the key into a value.
    """

    pallet: str
    storage: str
    map_keys: Optional[tuple[StorageMapKey, ...]] = None
    decoder: Decoder = bytes

    def __post_init__(self) -> None:
        if self.map_keys is not None:
            object.__setattr__(self, "map_keys", tuple(self.map_keys))

    def key(self) -> StorageEntryKey:
        """Return the key data of this entry."""
        if self.map_keys is None:
            return StorageEntryKey.plain()
        return StorageEntryKey.map(self.map_keys)

    def decode_value(self, data: bytes) -> Any:
        """Decode a stored value, raising DecodeError when it cannot be decoded."""
        return _decode(self.decoder, data)


@dataclass
class StorageClient:
    """Queries runtime storage through an RPC connection."""

    rpc: Any
    state: ClientState
    iter_page_size: int

    async def fetch_unhashed(
        self, key: bytes, decode: Decoder, block_hash: Any = None
    ) -> Any:
        """Fetch and decode the value under a raw key, or ``None`` if absent."""
        data = await self.rpc.storage(key, block_hash)
        if data is None:
            return None
        return _decode(decode, data)

    async def fetch_raw(self, key: bytes, block_hash: Any = None) -> Optional[bytes]:
        """Fetch the raw encoded value under a raw key."""
        return await self.rpc.storage(key, block_hash)

    async def fetch(self, entry: StorageEntry, block_hash: Any = None) -> Any:
        """Fetch the value of ``entry``, or ``None`` if nothing is stored."""
        key = entry.key().final_key(StorageKeyPrefix.for_entry(entry))
        return await self.fetch_unhashed(key, entry.decode_value, block_hash)

    async def fetch_or_default(self, entry: StorageEntry, block_hash: Any = None) -> Any:
        """Fetch the value of ``entry``, falling back to the metadata default."""
        key = entry.key().final_key(StorageKeyPrefix.for_entry(entry))
        data = await self.fetch_raw(key, block_hash)
        if data is not None:
            return entry.decode_value(data)
        metadata = self.state.metadata
        default = metadata.pallet(entry.pallet).storage(entry.storage).default
        try:
            return entry.decode_value(default)
        except DecodeError as exc:
            raise MetadataError(
                f"cannot decode default value of {entry.pallet}::{entry.storage}: {exc}"
            ) from exc

    async def query_storage(
        self, keys: Iterable[bytes], start: Any, end: Any = None
    ) -> list[Any]:
        """Query historical changes of ``keys`` from block ``start`` to ``end``."""
        return await self.rpc.query_storage(list(keys), start, end)

    async def fetch_keys(
        self,
        entry: StorageEntry,
        count: int,
        start_key: Optional[bytes] = None,
        block_hash: Any = None,
    ) -> list[bytes]:
        """Fetch up to ``count`` keys of a storage map in lexicographic order.

        Pass the last key of a page as ``start_key`` to get the next page.
        """
        prefix = StorageKeyPrefix.for_entry(entry).to_storage_key()
        keys = await self.rpc.storage_keys_paged(prefix, count, start_key, block_hash)
        return list(keys)

    async def iter(self, entry: StorageEntry, block_hash: Any = None) -> KeyIter:
        """Return an async iterator over the key/value pairs of a storage map."""
        if block_hash is None:
            block_hash = await self.rpc.block_hash(None)
            if block_hash is None:
                raise RpcError("the node returned no hash for the latest block")
        return KeyIter(
            client=self,
            entry=entry,
            block_hash=block_hash,
            count=self.iter_page_size,
        )


@dataclass
class KeyIter:
    """Iterates over the key/value pairs of a storage map, page by page."""

    client: StorageClient
    entry: StorageEntry
    block_hash: Any
    count: int
    start_key: Optional[bytes] = None
    _buffer: list[tuple[bytes, bytes]] = field(
        default_factory=list, init=False, repr=False
    )

    def __aiter__(self) -> KeyIter:
        return self

    async def __anext__(self) -> tuple[bytes, Any]:
        item = await self.next()
        if item is None:
            raise StopAsyncIteration
        return item

    async def next(self) -> Optional[tuple[bytes, Any]]:
        """Return the next key and decoded value, or ``None`` when exhausted."""
        while True:
            if self._buffer:
                key, data = self._buffer.pop()
                return key, self.entry.decode_value(data)

            start_key, self.start_key = self.start_key, None
            keys = await self.client.fetch_keys(
                self.entry, self.count, start_key, self.block_hash
            )
            if not keys:
                return None
            self.start_key = keys[-1]

            change_sets = await self.client.rpc.query_storage_at(keys, self.block_hash)
            for change_set in change_sets:
                self._buffer.extend(
                    (key, value)
                    for key, value in _changes(change_set)
                    if value is not None
                )