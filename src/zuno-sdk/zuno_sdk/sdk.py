from typing import Any, List, Optional, Sequence

import httpx

from .batch import BatchOperation, BatchOptions, BatchOutcome, run_batch
from .cache import AsyncCache
from .config import Config, load_config
from .contract_registry import ContractRegistry
from .registry_client import RegistryClient


class ZunoSDK:
    """Combine configuration, cache, registry client and contract registry."""

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.cache = AsyncCache(ttl=config.abi_stale_seconds, gc_time=config.abi_gc_seconds)
        self.client = RegistryClient(
            api_key=config.api_key,
            base_url=config.api_url,
            timeout=config.request_timeout,
            transport=transport,
        )
        self.registry = ContractRegistry(self.client, self.cache)
        self.batch_options = BatchOptions(
            continue_on_error=config.batch_continue_on_error,
            max_concurrency=config.batch_max_concurrency,
        )

    @classmethod
    def from_env(cls) -> "ZunoSDK":
        return cls(load_config())

    async def run_batch(
        self,
        operations: Sequence[BatchOperation],
        continue_on_error: Optional[bool] = None,
        max_concurrency: Optional[int] = None,
        **kwargs: Any,
    ) -> List[BatchOutcome]:
        return await run_batch(
            operations,
            continue_on_error=(
                self.batch_options.continue_on_error if continue_on_error is None else continue_on_error
            ),
            max_concurrency=(
                self.batch_options.max_concurrency if max_concurrency is None else max_concurrency
            ),
            **kwargs,
        )

    async def networks(self) -> List[dict]:
        """Networks known to the registry service, cached for ``networks_stale_seconds``."""
        return await self.cache.fetch_or_populate(
            ("networks",), self.client.get_networks, ttl=self.config.networks_stale_seconds
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ZunoSDK":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
