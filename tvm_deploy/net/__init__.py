"""
Network-client capability and its implementations.

- `NetworkClient`   : Protocol consumed by the core (see `base`)
- `GraphQLClient`   : httpx-based query transport
- `SdkNetworkClient`: full client for a live network (needs `tonclient`)
"""

from .base import (  # noqa: F401
    CallSet,
    DeploySet,
    FunctionHeader,
    MessageParams,
    NetworkClient,
    ResultOfEncode,
    Signer,
    SignerKind,
    b64encode,
)
from .graphql import GraphQLClient  # noqa: F401
from .sdk import SdkNetworkClient  # noqa: F401

__all__ = [
    "CallSet",
    "DeploySet",
    "FunctionHeader",
    "MessageParams",
    "NetworkClient",
    "ResultOfEncode",
    "Signer",
    "SignerKind",
    "b64encode",
    "GraphQLClient",
    "SdkNetworkClient",
]
