"""
tvm-deploy: deploy and interact with TVM smart contracts.
Convenience exports for the most common APIs.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import Settings, get_settings, load_settings  # noqa: F401
from .errors import (  # noqa: F401
    ConfigError,
    DecodeError,
    EncodingError,
    FundingTimeoutError,
    NetworkError,
    NotFoundError,
    TvmDeployError,
)

# Keys & ABI
from .keys import KeyPair, generate_keys, load_keys, random_address, save_keys  # noqa: F401
from .abi import ContractAbi  # noqa: F401

# Network
from .net import GraphQLClient, NetworkClient, SdkNetworkClient  # noqa: F401

# Building blocks
from .accounts import AccountSnapshot, AccountStateFetcher, AccountType  # noqa: F401
from .messages import EncodedMessage, MessageBuilder  # noqa: F401

# Contracts
from .contracts import (  # noqa: F401
    CallResult,
    Contract,
    Deployer,
    DeployPolicy,
    DeployState,
    UnsignedCallPolicy,
)

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "load_settings",
    "TvmDeployError",
    "ConfigError",
    "NetworkError",
    "EncodingError",
    "NotFoundError",
    "FundingTimeoutError",
    "DecodeError",
    "KeyPair",
    "generate_keys",
    "load_keys",
    "save_keys",
    "random_address",
    "ContractAbi",
    "NetworkClient",
    "GraphQLClient",
    "SdkNetworkClient",
    "AccountSnapshot",
    "AccountStateFetcher",
    "AccountType",
    "EncodedMessage",
    "MessageBuilder",
    "CallResult",
    "Contract",
    "Deployer",
    "DeployPolicy",
    "DeployState",
    "UnsignedCallPolicy",
]
