"""Shared fakes: an in-memory registry client and a minimal web3 stand-in."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from zuno_sdk.cache import AsyncCache
from zuno_sdk.contract_registry import ContractRegistry
from zuno_sdk.errors import NotFound
from zuno_sdk.registry_client import AbiDescriptor, ContractMetadata, ResolvedAbi

SEPOLIA = 11155111
EXCHANGE_ADDRESS = "0x" + "A" * 40
AUCTION_ADDRESS = "0x" + "b" * 40
OTHER_ADDRESS = "0x" + "1" * 40

EXCHANGE_ABI = [
    {
        "type": "function",
        "name": "getListing",
        "stateMutability": "view",
        "inputs": [{"name": "listingId", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "event",
        "name": "ListingCreated",
        "inputs": [{"name": "listingId", "type": "bytes32", "indexed": True}],
    },
]
AUCTION_ABI = [{"type": "function", "name": "placeBid", "inputs": [], "outputs": []}]


class FakeRegistryClient:
    """Counts remote lookups; ``delay`` forces callers to overlap."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.deployments: Dict[Tuple[str, int], ContractMetadata] = {
            ("Exchange", SEPOLIA): ContractMetadata("Exchange", SEPOLIA, EXCHANGE_ADDRESS, "abi-1"),
            ("EnglishAuction", SEPOLIA): ContractMetadata(
                "EnglishAuction", SEPOLIA, AUCTION_ADDRESS, "abi-2"
            ),
        }
        self.abis: Dict[str, AbiDescriptor] = {
            "abi-1": AbiDescriptor("abi-1", tuple(EXCHANGE_ABI)),
            "abi-2": AbiDescriptor("abi-2", tuple(AUCTION_ABI)),
        }
        self.metadata_calls: List[Tuple[str, int]] = []
        self.abi_calls: List[str] = []
        self.info_calls: List[Tuple[str, int]] = []

    @property
    def remote_calls(self) -> int:
        return len(self.metadata_calls) + len(self.abi_calls) + len(self.info_calls)

    async def get_contract_metadata(self, logical_name: str, chain_id: int) -> ContractMetadata:
        self.metadata_calls.append((logical_name, chain_id))
        await asyncio.sleep(self.delay)
        try:
            return self.deployments[(logical_name, chain_id)]
        except KeyError:
            raise NotFound(f"Contract '{logical_name}' not found on chain ID {chain_id}.") from None

    async def get_abi_by_id(self, abi_id: str) -> AbiDescriptor:
        self.abi_calls.append(abi_id)
        await asyncio.sleep(self.delay)
        try:
            return self.abis[abi_id]
        except KeyError:
            raise NotFound(f"ABI '{abi_id}' not found.") from None

    async def get_abi(self, logical_name: str, chain_id: int) -> ResolvedAbi:
        metadata = await self.get_contract_metadata(logical_name, chain_id)
        return ResolvedAbi(metadata=metadata, abi=await self.get_abi_by_id(metadata.abi_id))

    async def get_contract_info(self, address: str, chain_id: int) -> ContractMetadata:
        self.info_calls.append((address, chain_id))
        for metadata in self.deployments.values():
            if metadata.deployed_address.lower() == address.lower() and metadata.network == chain_id:
                return metadata
        raise NotFound(f"Contract {address} not found.")


class FakeCall:
    def __init__(self, result: Any = None, exc: Optional[Exception] = None) -> None:
        self.result = result
        self.exc = exc
        self.sent: Optional[dict] = None

    async def call(self) -> Any:
        if self.exc is not None:
            raise self.exc
        return self.result

    async def transact(self, tx: dict) -> str:
        if self.exc is not None:
            raise self.exc
        self.sent = tx
        return "0x" + "f" * 64


class FakeFunctions:
    def __init__(self, behaviours: Dict[str, Callable[..., FakeCall]]) -> None:
        self._behaviours = behaviours

    def __getattr__(self, name: str) -> Callable[..., FakeCall]:
        try:
            return self._behaviours[name]
        except KeyError:
            raise AttributeError(name) from None


class FakeContract:
    def __init__(self, address: str, abi: list, functions: FakeFunctions) -> None:
        self.address = address
        self.abi = abi
        self.functions = functions


class FakeEth:
    def __init__(self, behaviours: Dict[str, Callable[..., FakeCall]]) -> None:
        self.behaviours = behaviours
        self.created: List[FakeContract] = []
        self.receipts: List[str] = []

    def contract(self, address: str, abi: list) -> FakeContract:
        contract = FakeContract(address, abi, FakeFunctions(self.behaviours))
        self.created.append(contract)
        return contract

    async def wait_for_transaction_receipt(self, tx_hash: str) -> dict:
        self.receipts.append(tx_hash)
        return {"transactionHash": tx_hash, "status": 1}


class FakeWeb3:
    def __init__(self, behaviours: Optional[Dict[str, Callable[..., FakeCall]]] = None) -> None:
        self.eth = FakeEth(behaviours or {})


@pytest.fixture
def fake_client() -> FakeRegistryClient:
    return FakeRegistryClient()


@pytest.fixture
def registry(fake_client: FakeRegistryClient) -> ContractRegistry:
    return ContractRegistry(fake_client, AsyncCache(ttl=300, gc_time=600))


@pytest.fixture
def reader() -> FakeWeb3:
    return FakeWeb3()
