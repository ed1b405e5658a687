"""
Typed error classes for tvm-deploy.

Every component raises one of these so callers can catch a specific failure
mode (bad configuration, transport failure, message construction, missing
account state, funding timeout, undecodable response) while still being able to
catch the base `TvmDeployError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

__all__ = [
    "TvmDeployError",
    "ConfigError",
    "NetworkError",
    "EncodingError",
    "NotFoundError",
    "FundingTimeoutError",
    "DecodeError",
]


class TvmDeployError(Exception):
    """Base class for all tvm-deploy errors."""


def _where(**parts: Any) -> str:
    bits = [f"{k}={v}" for k, v in parts.items() if v is not None]
    return (" [" + ", ".join(bits) + "]") if bits else ""


@dataclass(slots=True, eq=False)
class ConfigError(TvmDeployError):
    """Missing or invalid external configuration or key material."""

    message: str
    setting: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"ConfigError{_where(setting=self.setting, path=self.path)}: {self.message}"


@dataclass(slots=True, eq=False)
class NetworkError(TvmDeployError):
    """
    Raised when a query or message submission fails at the transport/RPC level.

    Fields:
      - operation: the client operation that failed (query, process_message, ...)
      - address: account the operation was about, if any
      - code: HTTP status or SDK error code when known
      - data: raw error payload for diagnostics
    """

    message: str
    operation: Optional[str] = None
    address: Optional[str] = None
    code: Optional[int] = None
    data: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = _where(op=self.operation, address=self.address, code=self.code)
        return f"NetworkError{where}: {self.message}"


@dataclass(slots=True, eq=False)
class EncodingError(TvmDeployError):
    """
    Raised when a message cannot be built: unknown function, malformed
    arguments, or the client's encoder rejecting the parameters.
    """

    message: str
    function: Optional[str] = None
    parameter: Optional[str] = None
    address: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = _where(fn=self.function, param=self.parameter, address=self.address)
        return f"EncodingError{where}: {self.message}"


@dataclass(slots=True, eq=False)
class NotFoundError(TvmDeployError):
    """No matching account, or the account carries no serialized state."""

    message: str
    address: Optional[str] = None
    function: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"NotFoundError{_where(address=self.address, fn=self.function)}: {self.message}"


@dataclass(slots=True, eq=False)
class FundingTimeoutError(TvmDeployError, TimeoutError):
    """Funds sent to a future address were not observed within the poll window."""

    message: str
    address: Optional[str] = None
    attempts: int = 0

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.message}{_where(address=self.address, attempts=self.attempts)}"


@dataclass(slots=True, eq=False)
class DecodeError(TvmDeployError):
    """A response did not match the expected shape."""

    message: str
    function: Optional[str] = None
    address: Optional[str] = None
    data: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"DecodeError{_where(fn=self.function, address=self.address)}: {self.message}"
