from types import SimpleNamespace

import pytest

from substratekit.errors import RpcError
from substratekit.state import ClientState
from substratekit.updates import UpdateClient


class FakeRpc:
    def __init__(self, versions, metadata=(), metadata_error=None):
        self.versions = list(versions)
        self.metadata_values = list(metadata)
        self.metadata_error = metadata_error
        self.metadata_calls = 0

    async def subscribe_runtime_version(self):
        return self._stream()

    async def _stream(self):
        for item in self.versions:
            if isinstance(item, Exception):
                raise item
            yield item

    async def metadata(self):
        self.metadata_calls += 1
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.metadata_values.pop(0)


def version(n):
    return SimpleNamespace(spec_version=n)


@pytest.mark.asyncio
async def test_same_version_is_skipped():
    state = ClientState(runtime_version=version(7), metadata="old")
    rpc = FakeRpc([version(7)])
    await UpdateClient(rpc, state).perform_runtime_updates()
    assert state.metadata == "old"
    assert state.runtime_version.spec_version == 7
    assert rpc.metadata_calls == 0


@pytest.mark.asyncio
async def test_new_version_updates_version_and_metadata():
    state = ClientState(runtime_version=version(7), metadata="old")
    new = version(8)
    rpc = FakeRpc([version(7), new], metadata=["new"])
    await UpdateClient(rpc, state).perform_runtime_updates()
    assert state.runtime_version is new
    assert state.metadata == "new"
    assert rpc.metadata_calls == 1


@pytest.mark.asyncio
async def test_several_updates_apply_in_order():
    state = ClientState(runtime_version=version(1), metadata="m1")
    rpc = FakeRpc([version(2), version(2), version(3)], metadata=["m2", "m3"])
    await UpdateClient(rpc, state).perform_runtime_updates()
    assert state.runtime_version.spec_version == 3
    assert state.metadata == "m3"
    assert rpc.metadata_calls == 2


@pytest.mark.asyncio
async def test_mapping_versions_are_understood():
    state = ClientState(runtime_version={"specVersion": 4}, metadata="m")
    rpc = FakeRpc([{"specVersion": 4}, {"specVersion": 5}], metadata=["m5"])
    await UpdateClient(rpc, state).perform_runtime_updates()
    assert state.runtime_version == {"specVersion": 5}
    assert state.metadata == "m5"


@pytest.mark.asyncio
async def test_subscription_error_propagates():
    state = ClientState(runtime_version=version(1), metadata="m1")
    rpc = FakeRpc([version(2), RpcError("dropped")], metadata=["m2"])
    with pytest.raises(RpcError):
        await UpdateClient(rpc, state).perform_runtime_updates()
    assert state.metadata == "m2"


@pytest.mark.asyncio
async def test_metadata_failure_leaves_version_updated():
    state = ClientState(runtime_version=version(1), metadata="m1")
    rpc = FakeRpc([version(2)], metadata_error=RpcError("no metadata"))
    with pytest.raises(RpcError):
        await UpdateClient(rpc, state).perform_runtime_updates()
    assert state.runtime_version.spec_version == 2
    assert state.metadata == "m1"