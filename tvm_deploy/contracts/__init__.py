"""
Contract handles and the deploy flow.
"""

from .client import CallResult, Contract, UnsignedCallPolicy  # noqa: F401
from .deployer import Deployer, DeployPolicy, DeployState  # noqa: F401

__all__ = [
    "CallResult",
    "Contract",
    "UnsignedCallPolicy",
    "Deployer",
    "DeployPolicy",
    "DeployState",
]
