import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .errors import NotFound, RateLimited, RequestFailed, Timeout, Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractMetadata:
    logical_name: str
    network: int
    deployed_address: str
    abi_id: str


@dataclass(frozen=True)
class AbiDescriptor:
    id: str
    abi: Any  # tuple of entries when well-formed
    version: Optional[str] = None


@dataclass(frozen=True)
class ResolvedAbi:
    """Metadata and ABI fetched together and cached as one entry."""

    metadata: ContractMetadata
    abi: AbiDescriptor


class RegistryClient:
    """Thin async wrapper around the Zuno contract registry API.

    Performs no retries; every failure surfaces as a typed ``RequestFailed``
    subclass so callers can decide on their own retry policy.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"X-API-Key": api_key, "Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.session.aclose()

    async def get_contract_metadata(self, logical_name: str, chain_id: int) -> ContractMetadata:
        payload = await self._request(
            f"/contracts/by-name/{quote(logical_name, safe='')}", params={"chainId": chain_id}
        )
        record = self._first_contract(payload)
        if record is None:
            raise NotFound(
                f"Contract '{logical_name}' not found on chain ID {chain_id}.",
                context={"contract": logical_name, "network": chain_id},
            )
        return self._parse_metadata(record, logical_name, chain_id)

    async def get_abi_by_id(self, abi_id: str) -> AbiDescriptor:
        payload = await self._request(f"/abis/id/{quote(abi_id, safe='')}")
        record = self._unwrap(payload)
        if not isinstance(record, dict):
            raise RequestFailed(f"Unexpected ABI response for '{abi_id}' (non-object).")
        if "abi" not in record:
            raise RequestFailed(f"Unexpected ABI response for '{abi_id}' (missing abi).")
        abi = record["abi"]
        # Shape checks belong to the caller, which raises InvalidAbi.
        return AbiDescriptor(
            id=str(record.get("id") or abi_id),
            abi=tuple(abi) if isinstance(abi, list) else abi,
            version=record.get("version"),
        )

    async def get_abi(self, logical_name: str, chain_id: int) -> ResolvedAbi:
        metadata = await self.get_contract_metadata(logical_name, chain_id)
        abi = await self.get_abi_by_id(metadata.abi_id)
        return ResolvedAbi(metadata=metadata, abi=abi)

    async def get_contract_info(self, address: str, chain_id: int) -> ContractMetadata:
        payload = await self._request(
            f"/contracts/{quote(address, safe='')}", params={"networkId": chain_id}
        )
        record = self._unwrap(payload)
        if not isinstance(record, dict):
            raise RequestFailed(f"Unexpected contract response for {address} (non-object).")
        return self._parse_metadata(record, str(record.get("contractName") or ""), chain_id)

    async def get_networks(self) -> List[Dict[str, Any]]:
        payload = await self._request("/networks")
        result = self._unwrap(payload)
        if isinstance(result, dict):
            result = result.get("networks")
        if not isinstance(result, list):
            raise RequestFailed("Unexpected networks response (missing list).")
        return [item for item in result if isinstance(item, dict)]

    def _unwrap(self, payload: Any) -> Any:
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    def _first_contract(self, payload: Any) -> Optional[Dict[str, Any]]:
        data = self._unwrap(payload)
        if isinstance(data, dict) and "contracts" in data:
            data = data["contracts"]
        if isinstance(data, list):
            return next((item for item in data if isinstance(item, dict)), None)
        if isinstance(data, dict):
            return data
        return None

    def _parse_metadata(
        self, record: Dict[str, Any], logical_name: str, chain_id: int
    ) -> ContractMetadata:
        address = record.get("deployedAddress") or record.get("address")
        abi_id = record.get("abiId")
        if not address:
            raise RequestFailed(f"Contract '{logical_name}' response has no deployed address.")
        if not abi_id:
            raise NotFound(
                f"Contract '{logical_name}' has no ABI associated.",
                context={"contract": logical_name, "network": chain_id},
            )
        return ContractMetadata(
            logical_name=str(record.get("logicalName") or record.get("contractName") or logical_name),
            network=chain_id,
            deployed_address=str(address),
            abi_id=str(abi_id),
        )

    def _classify(self, response: httpx.Response) -> RequestFailed:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message") if isinstance(body, dict) else None

        if status in {401, 403}:
            return Unauthorized("Unauthorized: invalid API key.", status_code=status, details=body)
        if status == 404:
            return NotFound(message or "Resource not found.", status_code=status, details=body)
        if status == 429:
            return RateLimited("Rate limit exceeded.", status_code=status, details=body)
        return RequestFailed(
            message or f"API request failed with status {status}.", status_code=status, details=body
        )

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug("GET %s%s params=%s", self.base_url, path, params)
        try:
            response = await self.session.get(path, params=params)
        except httpx.TimeoutException as exc:
            raise Timeout(f"Request timeout: {path}.") from exc
        except httpx.HTTPError as exc:
            raise RequestFailed(f"Request failed: {exc}.") from exc

        if not response.is_success:
            raise self._classify(response)

        try:
            return response.json()
        except ValueError as exc:
            raise RequestFailed(f"Failed to parse response from registry: {path}.") from exc
