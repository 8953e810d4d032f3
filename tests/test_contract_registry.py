import asyncio

import pytest
from web3 import Web3

from conftest import (
    AUCTION_ADDRESS,
    EXCHANGE_ABI,
    EXCHANGE_ADDRESS,
    OTHER_ADDRESS,
    SEPOLIA,
    FakeCall,
    FakeRegistryClient,
    FakeWeb3,
)
from zuno_sdk.cache import AsyncCache
from zuno_sdk.contract_registry import ContractRegistry, Signer, TokenStandard
from zuno_sdk.errors import (
    ContractCallFailed,
    InvalidAbi,
    InvalidAddress,
    InvalidParameter,
    NotFound,
    UnsupportedNetwork,
)
from zuno_sdk.registry_client import AbiDescriptor, ContractMetadata


@pytest.mark.asyncio
async def test_first_resolution_fetches_metadata_then_abi(registry, fake_client, reader):
    handle = await registry.get_handle("Exchange", "sepolia", reader)

    assert handle.address == EXCHANGE_ADDRESS
    assert handle.network == SEPOLIA
    assert list(handle.abi) == EXCHANGE_ABI
    assert fake_client.metadata_calls == [("Exchange", SEPOLIA)]
    assert fake_client.abi_calls == ["abi-1"]

    again = await registry.get_handle("Exchange", "sepolia", reader)
    assert again is handle
    assert fake_client.remote_calls == 2


@pytest.mark.asyncio
async def test_network_spellings_share_one_cache_entry(registry, fake_client, reader):
    by_name = await registry.get_handle("Exchange", "sepolia", reader)
    by_id = await registry.get_handle("Exchange", SEPOLIA, reader)
    by_str = await registry.get_handle("Exchange", str(SEPOLIA), reader)

    assert by_name is by_id is by_str
    assert fake_client.remote_calls == 2


@pytest.mark.asyncio
async def test_concurrent_resolutions_coalesce_into_one_lookup(reader):
    client = FakeRegistryClient(delay=0.01)
    registry = ContractRegistry(client, AsyncCache())

    handles = await asyncio.gather(
        *(registry.get_handle("Exchange", "sepolia", reader) for _ in range(10))
    )

    assert len(client.metadata_calls) == 1
    assert len(client.abi_calls) == 1
    assert {h.address for h in handles} == {EXCHANGE_ADDRESS}
    assert all(h.abi == handles[0].abi for h in handles)


@pytest.mark.asyncio
async def test_rebinding_to_a_signer_does_not_refetch(registry, fake_client, reader):
    first = await registry.get_handle("Exchange", "sepolia", reader)
    signer = Signer(w3=FakeWeb3(), account=OTHER_ADDRESS)

    rebound = await registry.get_handle("Exchange", "sepolia", signer)

    assert fake_client.remote_calls == 2
    assert rebound is not first
    assert rebound.connection is signer
    assert rebound.abi is first.abi
    assert rebound.address is first.address
    assert first.connection is reader
    assert rebound.can_sign and not first.can_sign


@pytest.mark.asyncio
async def test_explicit_address_skips_metadata_address(registry, fake_client, reader):
    handle = await registry.get_handle("Exchange", "sepolia", reader, address=OTHER_ADDRESS)

    assert handle.address == OTHER_ADDRESS
    default = await registry.get_handle("Exchange", "sepolia", reader)
    assert default.address == EXCHANGE_ADDRESS
    # both keys share the single ABI entry
    assert fake_client.remote_calls == 2


@pytest.mark.asyncio
async def test_malformed_explicit_address_is_rejected(registry, reader):
    with pytest.raises(InvalidAddress):
        await registry.get_handle("Exchange", "sepolia", reader, address="0x1234")


@pytest.mark.asyncio
async def test_malformed_registry_address_is_rejected(fake_client, reader):
    fake_client.deployments[("Exchange", SEPOLIA)] = ContractMetadata(
        "Exchange", SEPOLIA, "not-an-address", "abi-1"
    )
    registry = ContractRegistry(fake_client, AsyncCache())

    with pytest.raises(InvalidAddress):
        await registry.get_handle("Exchange", "sepolia", reader)


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_abi", [(), {"type": "function"}, ("transfer(address)",), ({"type": "banana"},)])
async def test_malformed_abi_is_rejected(fake_client, reader, bad_abi):
    fake_client.abis["abi-1"] = AbiDescriptor("abi-1", bad_abi)
    registry = ContractRegistry(fake_client, AsyncCache())

    with pytest.raises(InvalidAbi):
        await registry.get_handle("Exchange", "sepolia", reader)


@pytest.mark.asyncio
async def test_unknown_contract_and_network_errors_propagate(registry, reader):
    with pytest.raises(NotFound):
        await registry.get_handle("Nope", "sepolia", reader)
    with pytest.raises(UnsupportedNetwork):
        await registry.get_handle("Exchange", "atlantis", reader)


@pytest.mark.asyncio
async def test_failed_lookup_is_not_cached(registry, fake_client, reader):
    with pytest.raises(NotFound):
        await registry.get_handle("Nope", "sepolia", reader)
    with pytest.raises(NotFound):
        await registry.get_handle("Nope", "sepolia", reader)

    assert len(fake_client.metadata_calls) == 2
    assert not registry.is_abi_cached("Nope", "sepolia")


@pytest.mark.asyncio
async def test_clear_cache_forces_full_resolution(registry, fake_client, reader):
    await registry.get_handle("Exchange", "sepolia", reader)
    registry.clear_cache()

    assert not registry.is_abi_cached("Exchange", "sepolia")
    await registry.get_handle("Exchange", "sepolia", reader)
    assert len(fake_client.metadata_calls) == 2
    assert len(fake_client.abi_calls) == 2


@pytest.mark.asyncio
async def test_clear_handle_cache_keeps_abis(registry, fake_client, reader):
    first = await registry.get_handle("Exchange", "sepolia", reader)
    registry.clear_handle_cache()

    second = await registry.get_handle("Exchange", "sepolia", reader)
    assert second is not first
    assert fake_client.remote_calls == 2


@pytest.mark.asyncio
async def test_is_abi_cached_never_fetches(registry, fake_client):
    assert registry.is_abi_cached("Exchange", "sepolia") is False
    assert fake_client.remote_calls == 0


@pytest.mark.asyncio
async def test_prefetch_warms_every_name(registry, fake_client):
    await registry.prefetch(["Exchange", "EnglishAuction", "Exchange"], "sepolia")

    assert registry.is_abi_cached("Exchange", "sepolia")
    assert registry.is_abi_cached("EnglishAuction", SEPOLIA)
    assert len(fake_client.metadata_calls) == 2


@pytest.mark.asyncio
async def test_prefetch_fails_when_any_name_fails(registry):
    with pytest.raises(NotFound):
        await registry.prefetch(["Exchange", "Missing"], "sepolia")


@pytest.mark.asyncio
async def test_get_abi_by_address(registry, fake_client):
    abi = await registry.get_abi_by_address(AUCTION_ADDRESS, "sepolia")
    assert abi[0]["name"] == "placeBid"

    await registry.get_abi_by_address(AUCTION_ADDRESS.upper().replace("0X", "0x"), "sepolia")
    assert len(fake_client.info_calls) == 1
    assert fake_client.abi_calls == ["abi-2"]


@pytest.mark.asyncio
async def test_handle_call_and_transact(registry):
    w3 = FakeWeb3({"getListing": lambda listing_id: FakeCall(result=42)})
    handle = await registry.get_handle("Exchange", "sepolia", w3)

    assert await handle.call("getListing", b"\x01" * 32) == 42
    with pytest.raises(InvalidParameter):
        await handle.transact("getListing", b"\x01" * 32)
    with pytest.raises(InvalidParameter):
        await handle.call("missingFunction")

    pending = FakeCall()
    signer_w3 = FakeWeb3({"cancel": lambda listing_id: pending})
    signed = await registry.get_handle("Exchange", "sepolia", Signer(signer_w3, OTHER_ADDRESS))
    receipt = await signed.transact("cancel", b"\x01" * 32, wait=True, gas=100000)

    assert pending.sent == {"from": OTHER_ADDRESS, "gas": 100000}
    assert receipt["status"] == 1
    assert signer_w3.eth.created[0].address.lower() == EXCHANGE_ADDRESS.lower()


@pytest.mark.asyncio
async def test_failed_contract_call_is_typed(registry):
    w3 = FakeWeb3({"getListing": lambda listing_id: FakeCall(exc=RuntimeError("execution reverted"))})
    handle = await registry.get_handle("Exchange", "sepolia", w3)

    with pytest.raises(ContractCallFailed) as excinfo:
        await handle.call("getListing", b"\x00" * 32)
    assert excinfo.value.context["method"] == "getListing"


def _probe(answers):
    def supports_interface(interface_id):
        answer = answers.get(interface_id.hex())
        if isinstance(answer, Exception):
            return FakeCall(exc=answer)
        return FakeCall(result=bool(answer))

    return FakeWeb3({"supportsInterface": supports_interface})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answers, expected",
    [
        ({"80ac58cd": True}, TokenStandard.ERC721),
        ({"80ac58cd": False, "d9b67a26": True}, TokenStandard.ERC1155),
        ({"80ac58cd": RuntimeError("revert"), "d9b67a26": True}, TokenStandard.ERC1155),
        ({}, TokenStandard.UNKNOWN),
    ],
)
async def test_resolve_token_standard(registry, answers, expected):
    assert await registry.resolve_token_standard(AUCTION_ADDRESS, _probe(answers)) is expected


@pytest.mark.asyncio
async def test_token_standard_degrades_when_every_probe_fails(registry):
    w3 = _probe({"80ac58cd": RuntimeError("no code"), "d9b67a26": ValueError("bad output")})
    assert await registry.resolve_token_standard(AUCTION_ADDRESS, w3) is TokenStandard.UNKNOWN

    missing = FakeWeb3()
    assert await registry.resolve_token_standard(AUCTION_ADDRESS, missing) is TokenStandard.UNKNOWN


@pytest.mark.asyncio
async def test_token_standard_still_validates_address(registry, reader):
    with pytest.raises(InvalidAddress):
        await registry.resolve_token_standard("0xnope", reader)


@pytest.mark.asyncio
async def test_explicit_address_with_trailing_newline_is_rejected(registry, fake_client, reader):
    with pytest.raises(InvalidAddress):
        await registry.get_handle("Exchange", "sepolia", reader, address=OTHER_ADDRESS + "\n")
    assert fake_client.remote_calls == 0


@pytest.mark.asyncio
async def test_explicit_address_case_shares_one_handle(registry, fake_client, reader):
    lower = await registry.get_handle("Exchange", "sepolia", reader, address=AUCTION_ADDRESS)
    upper = await registry.get_handle(
        "Exchange", "sepolia", reader, address="0x" + AUCTION_ADDRESS[2:].upper()
    )

    assert upper is lower
    assert fake_client.remote_calls == 2


class BlockingCall:
    """Answers like a synchronous Web3 contract call: a plain value, not an awaitable."""

    def __init__(self, result):
        self.result = result

    def call(self):
        return self.result


@pytest.mark.asyncio
async def test_synchronous_web3_connection_is_rejected(registry, fake_client):
    blocking = Web3()

    with pytest.raises(InvalidParameter):
        await registry.get_handle("Exchange", "sepolia", blocking)
    with pytest.raises(InvalidParameter):
        await registry.get_handle("Exchange", "sepolia", Signer(blocking, OTHER_ADDRESS))
    with pytest.raises(InvalidParameter):
        await registry.resolve_token_standard(AUCTION_ADDRESS, blocking)
    assert fake_client.remote_calls == 0


@pytest.mark.asyncio
async def test_non_awaitable_contract_calls_are_rejected(registry):
    w3 = FakeWeb3(
        {
            "supportsInterface": lambda interface_id: BlockingCall(True),
            "getListing": lambda listing_id: BlockingCall(42),
        }
    )

    with pytest.raises(InvalidParameter):
        await registry.resolve_token_standard(AUCTION_ADDRESS, w3)

    handle = await registry.get_handle("Exchange", "sepolia", w3)
    with pytest.raises(InvalidParameter):
        await handle.call("getListing", b"\x01" * 32)
