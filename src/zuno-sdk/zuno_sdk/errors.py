"""Typed error taxonomy shared by every SDK component."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Optional

ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")


class ErrorCode(str, Enum):
    INVALID_CONFIG = "INVALID_CONFIG"
    MISSING_API_KEY = "MISSING_API_KEY"
    INVALID_NETWORK = "INVALID_NETWORK"

    API_REQUEST_FAILED = "API_REQUEST_FAILED"
    API_TIMEOUT = "API_TIMEOUT"
    API_UNAUTHORIZED = "API_UNAUTHORIZED"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    API_NOT_FOUND = "API_NOT_FOUND"

    CONTRACT_CALL_FAILED = "CONTRACT_CALL_FAILED"
    INVALID_ABI = "INVALID_ABI"

    INVALID_PARAMETER = "INVALID_PARAMETER"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    BATCH_SIZE_EXCEEDED = "BATCH_SIZE_EXCEEDED"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ZunoSDKError(Exception):
    """Base error carrying a machine-readable code and optional debugging context.

    ``context`` accepts the keys ``contract``, ``method``, ``network`` and
    ``suggestion``; they are folded into :meth:`to_user_message`.
    """

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details
        self.context = dict(context or {})

    @classmethod
    def wrap(cls, exc: BaseException, code: Optional[ErrorCode] = None) -> "ZunoSDKError":
        if isinstance(exc, ZunoSDKError):
            return exc
        wrapped = cls(str(exc) or exc.__class__.__name__, code=code)
        wrapped.__cause__ = exc
        return wrapped

    def is_(self, code: ErrorCode) -> bool:
        return self.code == code

    def to_user_message(self) -> str:
        msg = self.message
        if self.context.get("contract"):
            msg += f" (Contract: {self.context['contract']})"
        if self.context.get("method"):
            msg += f" (Method: {self.context['method']})"
        if self.context.get("network") is not None:
            msg += f" (Network: {self.context['network']})"
        if self.context.get("suggestion"):
            msg += f"\nSuggestion: {self.context['suggestion']}"
        return msg

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "context": self.context,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value!r}, message={self.message!r})"


class ConfigError(ZunoSDKError, ValueError):
    default_code = ErrorCode.INVALID_CONFIG


class MissingApiKey(ConfigError):
    default_code = ErrorCode.MISSING_API_KEY


class UnsupportedNetwork(ZunoSDKError, ValueError):
    default_code = ErrorCode.INVALID_NETWORK


class InvalidParameter(ZunoSDKError, ValueError):
    default_code = ErrorCode.INVALID_PARAMETER


class BatchSizeExceeded(InvalidParameter):
    default_code = ErrorCode.BATCH_SIZE_EXCEEDED


class InvalidAddress(InvalidParameter):
    default_code = ErrorCode.INVALID_ADDRESS


class InvalidAbi(ZunoSDKError, ValueError):
    default_code = ErrorCode.INVALID_ABI


class RequestFailed(ZunoSDKError):
    """Remote call failed; ``status_code`` is set when the server answered."""

    default_code = ErrorCode.API_REQUEST_FAILED

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code


class NotFound(RequestFailed):
    default_code = ErrorCode.API_NOT_FOUND


class Unauthorized(RequestFailed):
    default_code = ErrorCode.API_UNAUTHORIZED


class RateLimited(RequestFailed):
    default_code = ErrorCode.API_RATE_LIMIT


class Timeout(RequestFailed):
    default_code = ErrorCode.API_TIMEOUT


class ContractCallFailed(ZunoSDKError):
    default_code = ErrorCode.CONTRACT_CALL_FAILED


def validate_address(address: Any, param_name: str = "address") -> str:
    """Return ``address`` unchanged if it is 0x + 40 hex chars, else raise InvalidAddress."""
    if not isinstance(address, str) or not ADDRESS_PATTERN.fullmatch(address):
        raise InvalidAddress(
            f"Invalid {param_name}: {address!r}. Expected 0x-prefixed 40 hex characters."
        )
    return address
