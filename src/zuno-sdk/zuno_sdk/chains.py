from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Union

from .errors import UnsupportedNetwork

_WORD_RE = re.compile(r"[a-z0-9]+")
_SPACE_RE = re.compile(r"[\s_\-]+")

NetworkIdentifier = Union[str, int]


def _norm(text: str) -> str:
    candidate = (text or "").strip().lower()
    candidate = _SPACE_RE.sub(" ", candidate)
    return "-".join(_WORD_RE.findall(candidate))


@dataclass(frozen=True)
class ChainInfo:
    name: str
    chain_id: int
    testnet: bool = False


CHAINS: List[ChainInfo] = [
    ChainInfo("mainnet", 1),
    ChainInfo("polygon", 137),
    ChainInfo("arbitrum", 42161),
    ChainInfo("optimism", 10),
    ChainInfo("base", 8453),
    ChainInfo("bsc", 56),
    ChainInfo("avalanche", 43114),
    ChainInfo("sepolia", 11155111, testnet=True),
    ChainInfo("goerli", 5, testnet=True),
    ChainInfo("mumbai", 80001, testnet=True),
    ChainInfo("arbitrum-sepolia", 421614, testnet=True),
    ChainInfo("optimism-sepolia", 11155420, testnet=True),
    ChainInfo("base-sepolia", 84532, testnet=True),
    ChainInfo("bsc-testnet", 97, testnet=True),
    ChainInfo("localhost", 31337, testnet=True),
    ChainInfo("ganache", 1337, testnet=True),
]

# Long-form spellings that map onto a canonical name above.
_ALIASES: Dict[str, str] = {
    "ethereum": "mainnet",
    "eth": "mainnet",
    "polygon-mainnet": "polygon",
    "arbitrum-one": "arbitrum",
    "optimism-mainnet": "optimism",
    "base-mainnet": "base",
    "binance-smart-chain": "bsc",
    "avalanche-c-chain": "avalanche",
    "ethereum-sepolia": "sepolia",
    "polygon-mumbai": "mumbai",
    "hardhat": "localhost",
    "anvil": "localhost",
}

SUPPORTED_NETWORKS: Dict[str, int] = {info.name: info.chain_id for info in CHAINS}
SUPPORTED_NETWORKS.update({alias: SUPPORTED_NETWORKS[name] for alias, name in _ALIASES.items()})


def supported_network_names() -> List[str]:
    return sorted(SUPPORTED_NETWORKS)


def list_chains(include_testnets: bool = True) -> List[Dict[str, object]]:
    out: List[Dict[str, object]] = []
    for info in sorted(CHAINS, key=lambda c: c.chain_id):
        if info.testnet and not include_testnets:
            continue
        aliases = sorted(alias for alias, name in _ALIASES.items() if name == info.name)
        out.append(
            {
                "name": info.name,
                "chain_id": info.chain_id,
                "testnet": info.testnet,
                "aliases": aliases,
            }
        )
    return out


def is_supported_network(network: str) -> bool:
    return isinstance(network, str) and _norm(network) in SUPPORTED_NETWORKS


def resolve_chain_id(network: NetworkIdentifier) -> int:
    """Resolve a short network name or raw chain id to the numeric chain id.

    Pure and idempotent: numeric ids (int or digit string) pass through
    unchanged, so ``resolve_chain_id(resolve_chain_id(x)) == resolve_chain_id(x)``.
    """
    if isinstance(network, bool):
        raise UnsupportedNetwork(f"Unknown network: {network!r}.")

    if isinstance(network, int):
        if network <= 0:
            raise UnsupportedNetwork(f"Chain id must be positive, got {network}.")
        return network

    raw = str(network or "").strip()
    if not raw:
        raise UnsupportedNetwork("network must be a non-empty string or chain id.")

    if raw.isascii() and raw.isdigit():
        chain_id = int(raw)
        if chain_id <= 0:
            raise UnsupportedNetwork(f"Chain id must be positive, got {raw}.")
        return chain_id

    chain_id = SUPPORTED_NETWORKS.get(_norm(raw))
    if chain_id is None:
        allowed = ", ".join(supported_network_names() + ["<chain_id>"])
        raise UnsupportedNetwork(f"Unknown network '{network}'. Supported: {allowed}.")
    return chain_id
