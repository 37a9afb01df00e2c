# substratekit

An asyncio toolkit for working with a Substrate-based node through an RPC
object that you supply. It does three jobs:

- **Storage queries.** Build storage keys from pallet and item names, then
  fetch, page through or iterate over storage entries.
- **Transaction tracking.** Turn a transaction-status subscription into typed
  statuses, wait until the transaction is in a block or finalized, and check
  its events for success.
- **Runtime updates.** Keep the client's runtime version and metadata in step
  with the node when the node upgrades its runtime.

It has no runtime dependencies.

## Installation

```
pip install substratekit
```

## Modules

- `substratekit.hashing`: `twox_64`, `twox_128`, `twox_256` (xxHash64 with
  seeds 0, 0–1 and 0–3, little-endian, concatenated), `blake2_128`,
  `blake2_256` (BLAKE2b digests), and the `StorageHasher` enum.
- `substratekit.storage`: `StorageEntry`, `StorageMapKey`, `StorageEntryKey`,
  `StorageKeyPrefix`, `StorageClient` and `KeyIter`.
- `substratekit.events`: `TransactionEvents`, the events of a block narrowed
  to one extrinsic.
- `substratekit.transaction`: `StatusKind`, `TransactionStatus`,
  `TransactionProgress` and `TransactionInBlock`.
- `substratekit.state`: `ClientState`, the shared runtime version and metadata.
- `substratekit.updates`: `UpdateClient`.
- `substratekit.errors`: the exceptions.

## Storage keys

A storage key starts with `twox_128(pallet) ++ twox_128(item)`. For a map,
each SCALE-encoded key is then hashed with its hasher and appended.

```python
from substratekit.hashing import StorageHasher, twox_128
from substratekit.storage import StorageEntry, StorageKeyPrefix, StorageMapKey

assert twox_128(b"System") == bytes.fromhex("26aa394eea5630e07c48ae0c9558cef7")

entry = StorageEntry(
    pallet="System",
    storage="Account",
    map_keys=[StorageMapKey(account_id_bytes, StorageHasher.BLAKE2_128_CONCAT)],
    decoder=decode_account_info,   # bytes -> value; defaults to bytes
)
key = entry.key().final_key(StorageKeyPrefix.for_entry(entry))
```

`StorageHasher` has the members `IDENTITY`, `BLAKE2_128`,
`BLAKE2_128_CONCAT`, `BLAKE2_256`, `TWOX_128`, `TWOX_256` and
`TWOX_64_CONCAT`; `StorageHasher.hash(data)` hashes bytes (or a UTF-8
string) with one of them. A plain entry is one whose `map_keys` is `None`.

## Querying storage

`StorageClient` needs an `rpc` object with the coroutines `storage`,
`storage_keys_paged`, `query_storage`, `query_storage_at` and `block_hash`,
a `ClientState`, and the page size used when iterating.

```python
from substratekit.state import ClientState
from substratekit.storage import StorageClient

state = ClientState(runtime_version, metadata)
client = StorageClient(rpc, state, iter_page_size=10)

value = await client.fetch(entry)                # None if the key is unset
value = await client.fetch_or_default(entry)     # falls back to the metadata default
raw = await client.fetch_raw(key)                # undecoded bytes, or None
keys = await client.fetch_keys(entry, 10)        # the first ten keys, in order
more = await client.fetch_keys(entry, 10, start_key=keys[-1])

async for key, value in await client.iter(entry):
    print(key.hex(), value)
```

`fetch_or_default` reads the default from
`state.metadata.pallet(name).storage(name).default` and raises
`MetadataError` if it cannot be decoded. `iter` uses the latest block hash
when none is given; `KeyIter.next()` returns `None` once the map is
exhausted.

## Following a transaction

`TransactionProgress` wraps an async iterable of statuses in the node's JSON
form (`"ready"`, `{"inBlock": hash}`, …) and yields `TransactionStatus`
values, each with a `StatusKind` and a `value`. The stream ends after a
`FINALIZED` or `FINALITY_TIMEOUT` status.

```python
from substratekit.transaction import TransactionProgress

progress = TransactionProgress(subscription, client, extrinsic_hash, DispatchError)

async for status in progress:
    print(status.kind, status.value)
```

Or wait for a particular point:

```python
in_block = await progress.wait_for_in_block()         # in a block or finalized
finalized = await progress.wait_for_finalized()
events = await progress.wait_for_finalized_success()  # raises on failure
if events.has(Transfer):
    transfer = events.find_first(Transfer)
```

Here `client` offers `rpc.block(hash)`, `events_at(hash)` and a `state`, and
may offer `hash_extrinsic(extrinsic)` (BLAKE2b-256 is used otherwise). Event
types such as `Transfer` carry `PALLET` and `EVENT` names and a
`decode(data)` class method. Statuses like `INVALID`, `USURPED` or `DROPPED`
are skipped by the wait helpers.

`TransactionInBlock.fetch_events()` returns a `TransactionEvents` for the
extrinsic whatever its outcome; `wait_for_success()` raises `ModuleError`
(pallet and error names looked up in the metadata) or `RuntimeError` when a
`System::ExtrinsicFailed` event is found. A `FINALITY_TIMEOUT` status, or a
block or extrinsic that cannot be found, raises `TransactionError`; a
subscription that ends too early raises `RpcError`.

## Runtime updates

```python
import asyncio
from substratekit.updates import UpdateClient

updater = UpdateClient(rpc, state)
task = asyncio.create_task(updater.perform_runtime_updates())
```

`rpc` must offer `subscribe_runtime_version()` and `metadata()`. An update
is applied only when the reported spec version differs from the one in the
`ClientState`; then the runtime version is replaced and the metadata is
fetched again.

## Errors

Every error derives from `SubxtError`: `RpcError`, `DecodeError`,
`MetadataError`, `TransactionError`, `ModuleError` and `RuntimeError`.

## What this package does not do

- It does not connect to a node. There is no WebSocket or HTTP RPC client;
  you pass in an object with the coroutines listed above.
- It has no SCALE codec and does not parse runtime metadata. Map keys must
  be given already encoded, and values, events and dispatch errors are
  decoded by callables you provide.
- It does not build, sign or submit extrinsics; it only follows a status
  subscription you already have.