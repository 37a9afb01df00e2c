from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace

import pytest

from substratekit.errors import (
    DecodeError,
    ModuleError,
    RpcError,
    RuntimeError,
    TransactionError,
)
from substratekit.hashing import blake2_256
from substratekit.state import ClientState
from substratekit.transaction import (
    StatusKind,
    TransactionInBlock,
    TransactionProgress,
    TransactionStatus,
)

EXTRINSICS = [b"\x01timestamp", b"\x02transfer", b"\x03remark"]
EXT_HASH = blake2_256(EXTRINSICS[1])
BLOCK_A = b"\xaa" * 32
BLOCK_B = b"\xbb" * 32
ALICE = 1
BOB = 2


@dataclass(frozen=True)
class Transfer:
    PALLET = "Balances"
    EVENT = "Transfer"

    from_: int
    to: int
    amount: int

    @classmethod
    def decode(cls, data):
        return cls(data[0], data[1], int.from_bytes(data[2:], "little"))


class ExtrinsicSuccess:
    PALLET = "System"
    EVENT = "ExtrinsicSuccess"

    @classmethod
    def decode(cls, data):
        return "success"


class DispatchError:
    def __init__(self, data):
        self.data = data

    @classmethod
    def decode(cls, data):
        if not data:
            raise ValueError("empty")
        return cls(data)

    def module_error_data(self):
        if self.data[0] != 3:
            return None
        return SimpleNamespace(pallet_index=self.data[1], error_index=self.data[2])

    def __repr__(self):
        return f"DispatchError({self.data!r})"


class Metadata:
    def error(self, pallet_index, error_index):
        assert (pallet_index, error_index) == (5, 2)
        return SimpleNamespace(
            pallet="Balances",
            error="InsufficientBalance",
            description=["Balance too low to send value."],
        )


def raw(pallet, variant, data, index=1):
    return SimpleNamespace(
        pallet=pallet, variant=variant, bytes=data, phase=("ApplyExtrinsic", index)
    )


class Events:
    def __init__(self, block_hash, raw_events):
        self.block_hash = block_hash
        self._raw = raw_events

    def iter(self):
        return iter(self._raw)

    def iter_raw(self):
        return iter(self._raw)


class Rpc:
    def __init__(self, blocks):
        self.blocks = blocks

    async def block(self, block_hash):
        return self.blocks.get(block_hash)


class Client:
    def __init__(self, raw_events, blocks=None):
        if blocks is None:
            blocks = {
                BLOCK_A: {"block": {"extrinsics": EXTRINSICS}},
                BLOCK_B: SimpleNamespace(block=SimpleNamespace(extrinsics=EXTRINSICS)),
            }
        self.rpc = Rpc(blocks)
        self.state = ClientState(runtime_version={"specVersion": 1}, metadata=Metadata())
        self.raw_events = raw_events

    async def events_at(self, block_hash):
        return Events(block_hash, self.raw_events)


def transfer_events():
    amount = (10_000).to_bytes(16, "little")
    return [
        raw("System", "ExtrinsicSuccess", b"", index=0),
        raw("Balances", "Transfer", bytes([9, 9]) + (5).to_bytes(16, "little"), index=0),
        raw("Balances", "Transfer", bytes([ALICE, BOB]) + amount),
        raw("System", "ExtrinsicSuccess", b""),
    ]


async def stream(items):
    for item in items:
        if isinstance(item, Exception):
            raise item
        yield item


def progress(items, client=None):
    return TransactionProgress(
        subscription=stream(items),
        client=client or Client(transfer_events()),
        extrinsic_hash=EXT_HASH,
        dispatch_error=DispatchError,
    )


@pytest.mark.asyncio
async def test_statuses_are_mapped_in_order_and_stop_after_finalized():
    prog = progress(
        [
            "future",
            "ready",
            {"broadcast": ["peer-1", "peer-2"]},
            {"inBlock": BLOCK_A},
            {"retracted": BLOCK_A},
            {"usurped": BLOCK_B},
            "dropped",
            "invalid",
            {"finalized": BLOCK_B},
            "ready",
        ]
    )
    statuses = [status async for status in prog]
    assert [s.kind for s in statuses] == [
        StatusKind.FUTURE,
        StatusKind.READY,
        StatusKind.BROADCAST,
        StatusKind.IN_BLOCK,
        StatusKind.RETRACTED,
        StatusKind.USURPED,
        StatusKind.DROPPED,
        StatusKind.INVALID,
        StatusKind.FINALIZED,
    ]
    assert statuses[2].value == ["peer-1", "peer-2"]
    assert statuses[3].value.block_hash == BLOCK_A
    assert statuses[3].value.extrinsic_hash == EXT_HASH
    assert statuses[4].value == BLOCK_A
    assert statuses[5].value == BLOCK_B
    assert await prog.next_item() is None


@pytest.mark.asyncio
async def test_finality_timeout_ends_stream():
    prog = progress([{"finalityTimeout": BLOCK_A}, "ready"])
    status = await prog.next_item()
    assert status == TransactionStatus(StatusKind.FINALITY_TIMEOUT, BLOCK_A)
    assert await prog.next_item() is None


@pytest.mark.asyncio
async def test_as_finalized_and_as_in_block():
    prog = progress([{"inBlock": BLOCK_A}, {"finalized": BLOCK_B}])
    in_block = await prog.next_item()
    finalized = await prog.next_item()
    assert in_block.as_in_block().block_hash == BLOCK_A
    assert in_block.as_finalized() is None
    assert finalized.as_finalized().block_hash == BLOCK_B
    assert finalized.as_in_block() is None
    assert TransactionStatus(StatusKind.READY).as_in_block() is None


@pytest.mark.asyncio
async def test_unknown_status_is_a_decode_error():
    prog = progress(["sideways"])
    with pytest.raises(DecodeError):
        await prog.next_item()


@pytest.mark.asyncio
async def test_subscription_failure_becomes_rpc_error():
    prog = progress(["ready", ConnectionError("gone")])
    assert (await prog.next_item()).kind is StatusKind.READY
    with pytest.raises(RpcError):
        await prog.next_item()


@pytest.mark.asyncio
async def test_wait_for_in_block_skips_invalid_and_usurped():
    prog = progress(["ready", "invalid", {"usurped": BLOCK_B}, {"inBlock": BLOCK_A}])
    in_block = await prog.wait_for_in_block()
    assert in_block.block_hash == BLOCK_A


@pytest.mark.asyncio
async def test_wait_for_in_block_accepts_finalized():
    prog = progress(["ready", {"finalized": BLOCK_B}])
    in_block = await prog.wait_for_in_block()
    assert in_block.block_hash == BLOCK_B


@pytest.mark.asyncio
async def test_wait_for_in_block_raises_on_finality_timeout():
    prog = progress(["ready", {"finalityTimeout": BLOCK_A}])
    with pytest.raises(TransactionError) as info:
        await prog.wait_for_in_block()
    assert info.value.reason == TransactionError.FINALITY_SUBSCRIPTION_TIMEOUT


@pytest.mark.asyncio
async def test_wait_for_finalized_skips_in_block():
    prog = progress([{"inBlock": BLOCK_A}, {"finalized": BLOCK_B}])
    in_block = await prog.wait_for_finalized()
    assert in_block.block_hash == BLOCK_B


@pytest.mark.asyncio
async def test_wait_for_finalized_raises_when_subscription_ends():
    prog = progress(["ready", {"inBlock": BLOCK_A}])
    with pytest.raises(RpcError, match="RPC subscription dropped"):
        await prog.wait_for_finalized()


@pytest.mark.asyncio
async def test_wait_for_finalized_raises_on_finality_timeout():
    prog = progress([{"finalityTimeout": BLOCK_A}])
    with pytest.raises(TransactionError) as info:
        await prog.wait_for_finalized()
    assert info.value.reason == TransactionError.FINALITY_SUBSCRIPTION_TIMEOUT


@pytest.mark.asyncio
async def test_fetch_events_finds_extrinsic_index():
    in_block = TransactionInBlock(BLOCK_A, EXT_HASH, Client(transfer_events()), DispatchError)
    events = await in_block.fetch_events()
    assert events.extrinsic_index == 1
    assert events.block_hash == BLOCK_A
    assert events.extrinsic_hash == EXT_HASH


@pytest.mark.asyncio
async def test_fetch_events_with_attribute_block():
    in_block = TransactionInBlock(BLOCK_B, EXT_HASH, Client(transfer_events()), DispatchError)
    events = await in_block.fetch_events()
    assert events.extrinsic_index == 1


@pytest.mark.asyncio
async def test_fetch_events_missing_block():
    client = Client(transfer_events(), blocks={})
    in_block = TransactionInBlock(BLOCK_A, EXT_HASH, client, DispatchError)
    with pytest.raises(TransactionError) as info:
        await in_block.fetch_events()
    assert info.value.reason == TransactionError.BLOCK_HASH_NOT_FOUND


@pytest.mark.asyncio
async def test_fetch_events_missing_extrinsic():
    in_block = TransactionInBlock(
        BLOCK_A, blake2_256(b"other"), Client(transfer_events()), DispatchError
    )
    with pytest.raises(TransactionError) as info:
        await in_block.fetch_events()
    assert info.value.reason == TransactionError.BLOCK_HASH_NOT_FOUND


@pytest.mark.asyncio
async def test_basic_transfer_finalized_success():
    prog = progress(["ready", {"inBlock": BLOCK_A}, {"finalized": BLOCK_A}])
    events = await prog.wait_for_finalized_success()
    assert events.find_first(Transfer) == Transfer(from_=ALICE, to=BOB, amount=10_000)
    assert events.find_first(ExtrinsicSuccess) == "success"
    assert events.has(Transfer) is True


@pytest.mark.asyncio
async def test_multiple_transfers_in_block_succeed():
    for _ in range(3):
        prog = progress([{"inBlock": BLOCK_A}])
        in_block = await prog.wait_for_in_block()
        events = await in_block.wait_for_success()
        assert [e.amount for e in events.find(Transfer)] == [10_000]


@pytest.mark.asyncio
async def test_transfer_error_is_module_error():
    failing = [raw("System", "ExtrinsicFailed", bytes([3, 5, 2, 0, 0, 0]))]
    prog = progress([{"finalized": BLOCK_A}], client=Client(failing))
    with pytest.raises(ModuleError) as info:
        await prog.wait_for_finalized_success()
    assert info.value.pallet == "Balances"
    assert info.value.error == "InsufficientBalance"
    assert info.value.description == ["Balance too low to send value."]
    assert info.value.error_data.pallet_index == 5


@pytest.mark.asyncio
async def test_non_module_failure_is_runtime_error():
    failing = [raw("System", "ExtrinsicFailed", bytes([1]))]
    in_block = TransactionInBlock(BLOCK_A, EXT_HASH, Client(failing), DispatchError)
    with pytest.raises(RuntimeError) as info:
        await in_block.wait_for_success()
    assert info.value.dispatch_error.data == bytes([1])


@pytest.mark.asyncio
async def test_failure_of_other_extrinsic_is_ignored():
    events_list = transfer_events() + [
        raw("System", "ExtrinsicFailed", bytes([1]), index=2)
    ]
    in_block = TransactionInBlock(BLOCK_A, EXT_HASH, Client(events_list), DispatchError)
    events = await in_block.wait_for_success()
    assert events.has(Transfer) is True


@pytest.mark.asyncio
async def test_undecodable_dispatch_error():
    failing = [raw("System", "ExtrinsicFailed", b"")]
    in_block = TransactionInBlock(BLOCK_A, EXT_HASH, Client(failing), DispatchError)
    with pytest.raises(DecodeError):
        await in_block.wait_for_success()