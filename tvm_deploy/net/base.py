"""
tvm_deploy.net.base
===================

The network-client capability consumed by the core, plus the message
parameter types passed through it.

The core never encodes cells, talks GraphQL, or runs the TVM itself. It builds
`MessageParams` and hands them to an object implementing `NetworkClient`:

- `encode_message(params)`      -> ResultOfEncode   (local, no round trip)
- `process_message(params)`     -> transaction dict (encode + send + wait for inclusion)
- `run_tvm(message, account, abi)` -> decoded output mapping or None (local execution)
- `query(query, variables)`     -> GraphQL `data` object
- `query_collection(...)`       -> list of rows
- `wait_for_collection(...)`    -> first row matching a filter, waiting server-side

A single client instance is shared by every component of a flow and may be
shared by concurrent flows; implementations keep no per-flow state.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from ..abi import ContractAbi
from ..keys import KeyPair

JsonDict = Dict[str, Any]

__all__ = [
    "SignerKind",
    "Signer",
    "FunctionHeader",
    "CallSet",
    "DeploySet",
    "MessageParams",
    "ResultOfEncode",
    "NetworkClient",
    "b64encode",
]


def b64encode(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


class SignerKind(str, Enum):
    NONE = "none"
    KEYS = "keys"
    EXTERNAL = "external"


@dataclass(frozen=True)
class Signer:
    """
    How a message is signed.

    - `Signer.none()`            unsigned message
    - `Signer.from_keys(keys)`   signed with the full keypair
    - `Signer.external(public)`  public key only; used to compute deploy
                                 addresses without signing anything
    """

    kind: SignerKind
    keys: Optional[KeyPair] = None
    public_key: Optional[str] = None

    @classmethod
    def none(cls) -> "Signer":
        return cls(SignerKind.NONE)

    @classmethod
    def from_keys(cls, keys: KeyPair) -> "Signer":
        return cls(SignerKind.KEYS, keys=keys, public_key=keys.public)

    @classmethod
    def external(cls, public_key: str) -> "Signer":
        return cls(SignerKind.EXTERNAL, public_key=public_key)

    @property
    def is_signed(self) -> bool:
        return self.kind is SignerKind.KEYS


@dataclass(frozen=True)
class FunctionHeader:
    time: Optional[int] = None
    expire: Optional[int] = None
    pubkey: Optional[str] = None


@dataclass(frozen=True)
class CallSet:
    function_name: str
    input: JsonDict = field(default_factory=dict)
    header: Optional[FunctionHeader] = None


@dataclass(frozen=True)
class DeploySet:
    """Code image (base64 TVC) plus the initial public key baked into the state."""

    tvc: str
    workchain_id: int = 0
    initial_pubkey: Optional[str] = None
    initial_data: Optional[JsonDict] = None


@dataclass(frozen=True)
class MessageParams:
    """Everything the client needs to encode one message."""

    abi: ContractAbi
    signer: Signer
    address: Optional[str] = None
    deploy_set: Optional[DeploySet] = None
    call_set: Optional[CallSet] = None


@dataclass(frozen=True)
class ResultOfEncode:
    message: str  # base64 BOC
    address: str


@runtime_checkable
class NetworkClient(Protocol):
    async def encode_message(self, params: MessageParams) -> ResultOfEncode: ...

    async def process_message(self, params: MessageParams) -> JsonDict: ...

    async def run_tvm(self, message: str, account: str, abi: ContractAbi) -> Optional[JsonDict]: ...

    async def query(self, query: str, variables: Optional[Mapping[str, Any]] = None) -> JsonDict: ...

    async def query_collection(
        self,
        collection: str,
        filter: Mapping[str, Any],
        result: str,
        limit: Optional[int] = None,
    ) -> List[JsonDict]: ...

    async def wait_for_collection(
        self,
        collection: str,
        filter: Mapping[str, Any],
        result: str,
        timeout_ms: Optional[int] = None,
    ) -> Optional[JsonDict]: ...
