"""Contract registry and batch execution core of the Zuno marketplace SDK."""

from .batch import (
    BATCH_LIMITS,
    BatchOptions,
    BatchOutcome,
    BatchStatus,
    run_batch,
    summarize,
    validate_batch_size,
)
from .cache import AsyncCache, CacheEntry
from .chains import (
    SUPPORTED_NETWORKS,
    is_supported_network,
    list_chains,
    resolve_chain_id,
    supported_network_names,
)
from .config import Config, load_config
from .contract_registry import ContractHandle, ContractRegistry, Signer, TokenStandard
from .errors import (
    BatchSizeExceeded,
    ConfigError,
    ContractCallFailed,
    ErrorCode,
    InvalidAbi,
    InvalidAddress,
    InvalidParameter,
    MissingApiKey,
    NotFound,
    RateLimited,
    RequestFailed,
    Timeout,
    Unauthorized,
    UnsupportedNetwork,
    ZunoSDKError,
    validate_address,
)
from .registry_client import AbiDescriptor, ContractMetadata, RegistryClient, ResolvedAbi
from .retry import with_retry, with_timeout
from .sdk import ZunoSDK

__version__ = "0.1.0"

__all__ = [
    "AbiDescriptor",
    "AsyncCache",
    "BATCH_LIMITS",
    "BatchOptions",
    "BatchOutcome",
    "BatchSizeExceeded",
    "BatchStatus",
    "CacheEntry",
    "Config",
    "ConfigError",
    "ContractCallFailed",
    "ContractHandle",
    "ContractMetadata",
    "ContractRegistry",
    "ErrorCode",
    "InvalidAbi",
    "InvalidAddress",
    "InvalidParameter",
    "MissingApiKey",
    "NotFound",
    "RateLimited",
    "RegistryClient",
    "RequestFailed",
    "ResolvedAbi",
    "SUPPORTED_NETWORKS",
    "Signer",
    "Timeout",
    "TokenStandard",
    "Unauthorized",
    "UnsupportedNetwork",
    "ZunoSDK",
    "ZunoSDKError",
    "is_supported_network",
    "list_chains",
    "load_config",
    "resolve_chain_id",
    "run_batch",
    "summarize",
    "supported_network_names",
    "validate_address",
    "validate_batch_size",
    "with_retry",
    "with_timeout",
]
