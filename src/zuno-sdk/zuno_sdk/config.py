import os
from dataclasses import dataclass

from .errors import ConfigError, MissingApiKey

DEFAULT_API_URL = "https://api.zuno.com/v1"

# Registry data changes rarely; ABI entries go stale after five minutes and are
# collected after ten.
DEFAULT_ABI_STALE_SECONDS = 300.0
DEFAULT_ABI_GC_SECONDS = 600.0
DEFAULT_NETWORKS_STALE_SECONDS = 1800.0

DEFAULT_BATCH_MAX_CONCURRENCY = 3
DEFAULT_BATCH_CONTINUE_ON_ERROR = True


@dataclass
class Config:
    api_key: str
    api_url: str = DEFAULT_API_URL
    request_timeout: float = 30.0
    abi_stale_seconds: float = DEFAULT_ABI_STALE_SECONDS
    abi_gc_seconds: float = DEFAULT_ABI_GC_SECONDS
    networks_stale_seconds: float = DEFAULT_NETWORKS_STALE_SECONDS
    batch_max_concurrency: int = DEFAULT_BATCH_MAX_CONCURRENCY
    batch_continue_on_error: bool = DEFAULT_BATCH_CONTINUE_ON_ERROR
    retry_max_attempts: int = 3
    retry_backoff_seconds: float = 1.0

    def __post_init__(self) -> None:
        if not self.api_key:
            raise MissingApiKey("API key is required.")
        if self.abi_gc_seconds < self.abi_stale_seconds:
            raise ConfigError("abi_gc_seconds must be >= abi_stale_seconds.")
        if self.batch_max_concurrency < 1:
            raise ConfigError("batch_max_concurrency must be a positive integer.")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{name} must be a boolean, got '{raw}'.")


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got '{raw}'.") from exc


def load_config() -> Config:
    """Load configuration from environment variables."""
    api_key = os.getenv("ZUNO_API_KEY")
    if not api_key:
        raise MissingApiKey("ZUNO_API_KEY is required but not set.")

    api_url = os.getenv("ZUNO_API_URL", DEFAULT_API_URL).rstrip("/")

    return Config(
        api_key=api_key,
        api_url=api_url,
        request_timeout=_env_number("REQUEST_TIMEOUT", "30", float),
        abi_stale_seconds=_env_number("ABI_STALE_SECONDS", str(DEFAULT_ABI_STALE_SECONDS), float),
        abi_gc_seconds=_env_number("ABI_GC_SECONDS", str(DEFAULT_ABI_GC_SECONDS), float),
        networks_stale_seconds=_env_number(
            "NETWORKS_STALE_SECONDS", str(DEFAULT_NETWORKS_STALE_SECONDS), float
        ),
        batch_max_concurrency=_env_number(
            "BATCH_MAX_CONCURRENCY", str(DEFAULT_BATCH_MAX_CONCURRENCY), int
        ),
        batch_continue_on_error=_env_bool(
            "BATCH_CONTINUE_ON_ERROR", DEFAULT_BATCH_CONTINUE_ON_ERROR
        ),
        retry_max_attempts=_env_number("RETRY_MAX_ATTEMPTS", "3", int),
        retry_backoff_seconds=_env_number("RETRY_BACKOFF_SECONDS", "1.0", float),
    )
