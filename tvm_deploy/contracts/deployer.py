"""
tvm_deploy.contracts.deployer
=============================

Deploy a contract from its code image.

The flow:
- Derives the future address from (code image, public key, workchain)
- Asks a funding source (a giver/wallet contract) to transfer value there
- Polls the address until it is an uninitialized account with a balance
- Submits the deploy message (deploy set + signed constructor call) and waits
- Returns a `Contract` handle bound to the derived address

Typical usage
-------------
    from tvm_deploy.contracts import Contract, Deployer
    from tvm_deploy.resources import GIVER, HELLO_WORLD

    giver = Contract(net, wallet_address, GIVER, keys=wallet_keys)
    deployer = Deployer(net, giver)
    hello = await deployer.deploy(code_bytes, HELLO_WORLD)

Notes
-----
* Funding and deploy submission are single shot. Only the funding poll
  repeats, bounded by `DeployPolicy.poll_attempts`.
* Funds sent to the derived address are not recovered if a later step fails.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from ..abi import ContractAbi
from ..accounts import AccountSnapshot, AccountStateFetcher
from ..errors import ConfigError, FundingTimeoutError
from ..keys import KeyPair, generate_keys
from ..logging import bind_context, clear_context, get_logger
from ..messages import MessageBuilder
from ..net.base import NetworkClient
from .client import Contract, UnsignedCallPolicy

log = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]
ProgressFn = Callable[[str], None]


class DeployState(str, Enum):
    ADDRESS_DERIVED = "address_derived"
    FUNDING = "funding"
    WAITING_FOR_FUNDS = "waiting_for_funds"
    READY = "ready"
    DEPLOYED = "deployed"
    FAILED = "failed"


# structlog event emitted on entering each state
STATE_EVENTS = {
    DeployState.ADDRESS_DERIVED: "address_derived",
    DeployState.FUNDING: "funding_requested",
    DeployState.WAITING_FOR_FUNDS: "funds_wait",
    DeployState.READY: "funds_confirmed",
    DeployState.DEPLOYED: "deployed",
    DeployState.FAILED: "deploy_failed",
}


@dataclass(frozen=True)
class DeployPolicy:
    funding_amount: int = 1_000_000_000
    poll_attempts: int = 30
    poll_interval_s: float = 2.0
    workchain_id: int = 0

    def __post_init__(self) -> None:
        if self.funding_amount <= 0:
            raise ValueError("funding_amount must be positive")
        if self.poll_attempts < 1:
            raise ValueError("poll_attempts must be >= 1")
        if self.poll_interval_s < 0:
            raise ValueError("poll_interval_s must be >= 0")


class Deployer:
    """
    Parameters
    ----------
    client : NetworkClient
        Shared with the funding source and the returned contract.
    funding_source : Contract
        Contract exposing `sendTransaction(dest, value, bounce)`.
    policy : DeployPolicy
    sleep : awaitable sleep used between funding polls (default `asyncio.sleep`).
    progress : optional callback receiving human-readable milestones.
    """

    def __init__(
        self,
        client: NetworkClient,
        funding_source: Contract,
        *,
        policy: Optional[DeployPolicy] = None,
        sleep: SleepFn = asyncio.sleep,
        progress: Optional[ProgressFn] = None,
        unsigned_policy: UnsignedCallPolicy = UnsignedCallPolicy.ALLOW,
    ) -> None:
        self._client = client
        self._funding_source = funding_source
        self.policy = policy or DeployPolicy()
        self._sleep = sleep
        self._progress = progress
        self._unsigned_policy = unsigned_policy
        self._messages = MessageBuilder(client)
        self._accounts = AccountStateFetcher(client)
        self.state: Optional[DeployState] = None
        self.address: Optional[str] = None

    def _enter(self, state: DeployState, **kw: Any) -> None:
        self.state = state
        log.info(STATE_EVENTS[state], state=state.value, address=self.address, **kw)

    def _say(self, msg: str) -> None:
        if self._progress is not None:
            self._progress(msg)

    async def deploy(
        self,
        code_image: bytes,
        abi: ContractAbi,
        *,
        keys: Optional[KeyPair] = None,
        name: Optional[str] = None,
    ) -> Contract:
        """
        Run the whole deploy flow and return a handle to the new contract.

        Raises
        ------
        EncodingError        bad code image or ABI without a usable constructor
        NetworkError         funding or deploy submission failed (not retried)
        FundingTimeoutError  funds did not arrive within the poll budget
        """
        self.state = None
        self.address = None
        bind_context(contract=name or abi.name)
        try:
            return await self._deploy(code_image, abi, keys=keys, name=name)
        except BaseException:
            if self.state is not DeployState.FAILED:
                self._enter(DeployState.FAILED)
            raise
        finally:
            clear_context("contract")

    async def _deploy(
        self,
        code_image: bytes,
        abi: ContractAbi,
        *,
        keys: Optional[KeyPair],
        name: Optional[str],
    ) -> Contract:
        p = self.policy
        keys = keys or generate_keys()
        # Fail fast on a bad constructor before spending funds.
        self._messages.deploy_params(code_image, abi, keys, workchain_id=p.workchain_id)

        self.address = await self._messages.derive_deploy_address(
            code_image, keys.public, p.workchain_id, abi=abi
        )
        self._enter(DeployState.ADDRESS_DERIVED)
        self._say(f"Future address of {name or abi.name} contract is: {self.address}")

        self._enter(DeployState.FUNDING, amount=p.funding_amount)
        funding_tx = await self._funding_source.call(
            "sendTransaction",
            {"dest": self.address, "value": p.funding_amount, "bounce": False},
        )
        self._say(f"Requested {p.funding_amount} nanotokens for {self.address}. Transaction id: {funding_tx}")

        self._enter(DeployState.WAITING_FOR_FUNDS)
        snap = await self._wait_for_funds(self.address)
        self._enter(DeployState.READY, balance=snap.balance)
        self._say(f"Contract status: Uninit (ready to deploy), balance: {snap.balance}")

        params = self._messages.deploy_params(code_image, abi, keys, workchain_id=p.workchain_id)
        await self._client.process_message(params)
        self._enter(DeployState.DEPLOYED)
        self._say(f"Contract {name or abi.name} deployed at {self.address}")

        return Contract(
            self._client, self.address, abi, keys=keys, name=name, unsigned_policy=self._unsigned_policy
        )

    async def _wait_for_funds(self, address: str) -> AccountSnapshot:
        p = self.policy
        last: Optional[AccountSnapshot] = None
        for attempt in range(1, p.poll_attempts + 1):
            last = await self._accounts.fetch_snapshot(address)
            log.debug(
                "funds_poll",
                address=address,
                attempt=attempt,
                acc_type=last.account_type.value,
                balance=last.balance,
            )
            if last.ready_to_deploy:
                return last
            await self._sleep(p.poll_interval_s)

        self._enter(DeployState.FAILED, attempts=p.poll_attempts)
        raise FundingTimeoutError(
            "deploy failed: requested funds never arrived", address=address, attempts=p.poll_attempts
        )

    async def deploy_file(
        self,
        tvc_path: Union[str, Path],
        abi: ContractAbi,
        *,
        keys: Optional[KeyPair] = None,
        name: Optional[str] = None,
    ) -> Contract:
        """Read the code image from `tvc_path` and deploy it."""
        p = Path(tvc_path)
        try:
            code_image = p.read_bytes()
        except OSError as e:
            raise ConfigError(f"cannot read contract code: {e}", path=str(p)) from e
        return await self.deploy(code_image, abi, keys=keys, name=name or p.name.split(".")[0])


__all__ = ["Deployer", "DeployPolicy", "DeployState", "STATE_EVENTS"]
