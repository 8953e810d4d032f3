"""Resolve logical contract names into ready-to-call contract handles.

ABIs and deployment metadata come from the remote registry through the shared
``AsyncCache``; instantiated handles live in a second, registry-owned map keyed
by ``(logical_name, chain_id, lower-cased address or "default")``. That map is never
expired by time, only by :meth:`ContractRegistry.clear_cache`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import Any, Dict, Iterable, Optional, Tuple

from web3 import Web3

from .cache import AsyncCache
from .chains import NetworkIdentifier, resolve_chain_id
from .errors import ContractCallFailed, InvalidAbi, InvalidParameter, ZunoSDKError, validate_address
from .registry_client import AbiDescriptor, RegistryClient, ResolvedAbi

logger = logging.getLogger(__name__)

ABI_ENTRY_TYPES = {"function", "event", "constructor", "fallback", "receive", "error"}

# ERC-165 interface ids
ERC721_INTERFACE_ID = "0x80ac58cd"
ERC1155_INTERFACE_ID = "0xd9b67a26"

SUPPORTS_INTERFACE_ABI = [
    {
        "type": "function",
        "name": "supportsInterface",
        "stateMutability": "view",
        "inputs": [{"name": "interfaceId", "type": "bytes4"}],
        "outputs": [{"name": "", "type": "bool"}],
    }
]


class TokenStandard(str, Enum):
    ERC721 = "ERC721"
    ERC1155 = "ERC1155"
    UNKNOWN = "Unknown"


# Tried in order; the first probe answering True wins.
TOKEN_STANDARD_PROBES: Tuple[Tuple[str, TokenStandard], ...] = (
    (ERC721_INTERFACE_ID, TokenStandard.ERC721),
    (ERC1155_INTERFACE_ID, TokenStandard.ERC1155),
)

HandleKey = Tuple[str, int, str]


@dataclass(frozen=True)
class Signer:
    """A signing identity: an ``AsyncWeb3`` connection plus the account it submits from.

    The SDK never signs; the node or wallet behind ``w3`` does.
    """

    w3: Any
    account: str


def web3_of(connection: Any) -> Any:
    return connection.w3 if isinstance(connection, Signer) else connection


def require_async(connection: Any) -> Any:
    """Reject a blocking ``Web3`` connection; contract calls are awaited on the event loop."""
    if isinstance(web3_of(connection), Web3):
        raise InvalidParameter(
            "Synchronous Web3 connections are not supported; pass an AsyncWeb3 instance "
            f"(or a Signer wrapping one). Got {type(web3_of(connection)).__name__}."
        )
    return connection


def _awaitable(result: Any, method: str) -> Any:
    if not inspect.isawaitable(result):
        raise InvalidParameter(
            f"{method} returned {type(result).__name__} instead of an awaitable; "
            "bind an AsyncWeb3 connection."
        )
    return result


@dataclass(frozen=True)
class ContractHandle:
    """A resolved contract bound to an ``AsyncWeb3`` connection or a ``Signer``.

    ``call`` and ``transact`` await the underlying web3 calls.
    """

    logical_name: str
    network: int
    address: str
    abi: Tuple[Dict[str, Any], ...]
    connection: Any = field(compare=False, repr=False)

    def with_connection(self, connection: Any) -> "ContractHandle":
        """Return a copy bound to ``connection``; ``abi`` and ``address`` are shared, not copied."""
        return replace(self, connection=require_async(connection))

    @property
    def can_sign(self) -> bool:
        return isinstance(self.connection, Signer)

    @cached_property
    def contract(self) -> Any:
        return web3_of(self.connection).eth.contract(
            address=Web3.to_checksum_address(self.address), abi=list(self.abi)
        )

    def _function(self, name: str, args: Tuple[Any, ...]) -> Any:
        try:
            return getattr(self.contract.functions, name)(*args)
        except AttributeError as exc:
            raise InvalidParameter(
                f"Function '{name}' not found in ABI.",
                context={"contract": self.logical_name, "method": name, "network": self.network},
            ) from exc

    async def call(self, name: str, *args: Any) -> Any:
        """Read-only call of contract function ``name`` with positional ``args``."""
        fn = self._function(name, args)
        try:
            return await _awaitable(fn.call(), name)
        except ZunoSDKError:
            raise
        except Exception as exc:
            raise ContractCallFailed(
                f"Call to {name} failed: {exc}",
                context={"contract": self.logical_name, "method": name, "network": self.network},
            ) from exc

    async def transact(self, name: str, *args: Any, wait: bool = False, **overrides: Any) -> Any:
        """Submit a state-changing call through the bound signing identity.

        Returns the transaction hash, or the receipt when ``wait`` is true.
        """
        if not isinstance(self.connection, Signer):
            raise InvalidParameter(
                f"{self.logical_name} handle is read-only; bind a Signer to call {name}.",
                context={"contract": self.logical_name, "method": name},
            )
        fn = self._function(name, args)
        tx = {"from": self.connection.account, **overrides}
        try:
            tx_hash = await _awaitable(fn.transact(tx), name)
            if wait:
                return await _awaitable(
                    self.connection.w3.eth.wait_for_transaction_receipt(tx_hash),
                    "wait_for_transaction_receipt",
                )
            return tx_hash
        except ZunoSDKError:
            raise
        except Exception as exc:
            raise ContractCallFailed(
                f"Transaction {name} failed: {exc}",
                context={"contract": self.logical_name, "method": name, "network": self.network},
            ) from exc


class ContractRegistry:
    def __init__(
        self,
        client: RegistryClient,
        cache: AsyncCache,
        abi_ttl: Optional[float] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.abi_ttl = abi_ttl
        self._handles: Dict[HandleKey, ContractHandle] = {}

    async def get_handle(
        self,
        logical_name: str,
        network: NetworkIdentifier,
        connection: Any,
        address: Optional[str] = None,
    ) -> ContractHandle:
        """Resolve ``logical_name`` on ``network`` to a handle bound to ``connection``.

        When ``address`` is given the deployment address from the registry is
        not used, but the ABI is still looked up by name.
        """
        require_async(connection)
        chain_id = resolve_chain_id(network)
        if address is not None:
            validate_address(address)
        key: HandleKey = (logical_name, chain_id, address.lower() if address else "default")

        cached = self._handles.get(key)
        if cached is not None:
            return self._bind(key, cached, connection)

        resolved = await self._resolve_abi(logical_name, chain_id)
        contract_address = address if address is not None else resolved.metadata.deployed_address
        validate_address(contract_address)
        abi = self._validated_abi(resolved.abi, logical_name)

        # A concurrent caller for the same key may have finished while we awaited.
        existing = self._handles.get(key)
        if existing is not None:
            return self._bind(key, existing, connection)

        handle = ContractHandle(
            logical_name=logical_name,
            network=chain_id,
            address=contract_address,
            abi=abi,
            connection=connection,
        )
        self._handles[key] = handle
        logger.debug("resolved %s on chain %d at %s", logical_name, chain_id, contract_address)
        return handle

    def _bind(self, key: HandleKey, cached: ContractHandle, connection: Any) -> ContractHandle:
        if cached.connection is connection:
            return cached
        rebound = cached.with_connection(connection)
        self._handles[key] = rebound
        logger.debug("rebound %s on chain %d to a new connection", key[0], key[1])
        return rebound

    async def _resolve_abi(self, logical_name: str, chain_id: int) -> ResolvedAbi:
        return await self.cache.fetch_or_populate(
            ("abi", logical_name, chain_id),
            lambda: self.client.get_abi(logical_name, chain_id),
            ttl=self.abi_ttl,
        )

    def _validated_abi(self, descriptor: AbiDescriptor, logical_name: str) -> Tuple[Dict[str, Any], ...]:
        abi = descriptor.abi
        if not isinstance(abi, (list, tuple)) or not abi:
            raise InvalidAbi(
                f"Invalid ABI for contract type: {logical_name}.",
                context={"contract": logical_name},
            )
        for entry in abi:
            if not isinstance(entry, dict):
                raise InvalidAbi(f"Invalid ABI entry for {logical_name}: {entry!r}.")
            entry_type = entry.get("type", "function")
            if entry_type not in ABI_ENTRY_TYPES:
                raise InvalidAbi(f"Unknown ABI entry type '{entry_type}' for {logical_name}.")
        return tuple(abi)

    async def get_abi(self, logical_name: str, network: NetworkIdentifier) -> Tuple[Dict[str, Any], ...]:
        chain_id = resolve_chain_id(network)
        resolved = await self._resolve_abi(logical_name, chain_id)
        return self._validated_abi(resolved.abi, logical_name)

    async def get_abi_by_address(
        self, address: str, network: NetworkIdentifier
    ) -> Tuple[Dict[str, Any], ...]:
        validate_address(address)
        chain_id = resolve_chain_id(network)
        info = await self.cache.fetch_or_populate(
            ("contracts", address.lower(), chain_id),
            lambda: self.client.get_contract_info(address, chain_id),
            ttl=self.abi_ttl,
        )
        descriptor = await self.cache.fetch_or_populate(
            ("abi-id", info.abi_id),
            lambda: self.client.get_abi_by_id(info.abi_id),
            ttl=self.abi_ttl,
        )
        return self._validated_abi(descriptor, info.logical_name or address)

    def is_abi_cached(self, logical_name: str, network: NetworkIdentifier) -> bool:
        return self.cache.contains(("abi", logical_name, resolve_chain_id(network)))

    async def prefetch(self, logical_names: Iterable[str], network: NetworkIdentifier) -> None:
        """Warm the ABI cache for ``logical_names``; the first failure is raised."""
        chain_id = resolve_chain_id(network)
        names = list(dict.fromkeys(logical_names))
        logger.debug("prefetching %d ABIs on chain %d", len(names), chain_id)
        await asyncio.gather(*(self._resolve_abi(name, chain_id) for name in names))

    def clear_cache(self) -> None:
        self._handles.clear()
        for category in ("abi", "abi-id", "contracts"):
            self.cache.invalidate((category,))

    def clear_handle_cache(self) -> None:
        self._handles.clear()

    async def resolve_token_standard(self, address: str, connection: Any) -> TokenStandard:
        """Probe ERC-165 support; any probe failure counts as "not supported"."""
        validate_address(address)
        require_async(connection)
        try:
            contract = web3_of(connection).eth.contract(
                address=Web3.to_checksum_address(address), abi=SUPPORTS_INTERFACE_ABI
            )
        except Exception as exc:
            raise ContractCallFailed(f"Cannot build probe contract for {address}: {exc}") from exc

        for interface_id, standard in TOKEN_STANDARD_PROBES:
            try:
                supported = await _awaitable(
                    contract.functions.supportsInterface(bytes.fromhex(interface_id[2:])).call(),
                    "supportsInterface",
                )
            except InvalidParameter:
                raise
            except Exception as exc:
                logger.debug("%s probe on %s failed: %s", standard.value, address, exc)
                continue
            if supported:
                return standard
        return TokenStandard.UNKNOWN
