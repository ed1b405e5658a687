"""
tvm_deploy.contracts.client
===========================

A handle to one deployed contract that:
- Runs getter functions locally against the contract's current on-chain state
  (nothing is submitted, the local run never changes anything)
- Submits state-changing calls and waits for their transaction
- Decodes return values with the contract's ABI

The handle is thin and delegates to:
- `tvm_deploy.accounts` for the serialized account state
- `tvm_deploy.messages` for message parameters and encoding
- the shared `NetworkClient` for execution and submission

Example
-------
    from tvm_deploy.net import SdkNetworkClient
    from tvm_deploy.contracts.client import Contract
    from tvm_deploy.resources import HELLO_WORLD

    async with SdkNetworkClient(endpoint) as net:
        c = Contract(net, "0:ab...", HELLO_WORLD, keys=keys)
        before = await c.run_local("timestamp", result_type=int)
        res = await c.call_with_result("touch")
        after = await c.run_local("timestamp", result_type=int, after_lt=res.lt)

Signing
-------
`call` signs with the contract's keys when it has them. A keyless contract
sends unsigned calls, unless constructed with `UnsignedCallPolicy.REJECT`, in
which case `call` fails before touching the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from ..abi import ContractAbi
from ..accounts import AccountStateFetcher
from ..errors import DecodeError, EncodingError, NetworkError
from ..keys import KeyPair
from ..logging import get_logger
from ..messages import MessageBuilder
from ..net.base import NetworkClient, Signer

log = get_logger(__name__)

JsonDict = Dict[str, Any]


class UnsignedCallPolicy(str, Enum):
    ALLOW = "allow"
    REJECT = "reject"


@dataclass(frozen=True)
class CallResult:
    """Outcome of a submitted call: transaction id and its logical time."""

    transaction_id: str
    lt: Optional[str] = None
    transaction: Optional[JsonDict] = None


class Contract:
    """
    Handle to a deployed contract.

    Parameters
    ----------
    client : NetworkClient
        Shared client, used for state reads, local execution and submission.
    address : str
        Fixed at construction; never recomputed.
    abi : ContractAbi
    keys : KeyPair | None
        Signing keys. Without them calls are unsigned.
    name : str | None
        Label for logs and messages; defaults to the ABI's name.
    unsigned_policy : UnsignedCallPolicy
    """

    def __init__(
        self,
        client: NetworkClient,
        address: str,
        abi: ContractAbi,
        keys: Optional[KeyPair] = None,
        name: Optional[str] = None,
        *,
        unsigned_policy: UnsignedCallPolicy = UnsignedCallPolicy.ALLOW,
    ) -> None:
        if not isinstance(address, str) or not address:
            raise ValueError("address must be a non-empty string")
        self._client = client
        self._address = address
        self._abi = abi
        self._keys = keys
        self._name = name or abi.name
        self._unsigned_policy = UnsignedCallPolicy(unsigned_policy)
        self._messages = MessageBuilder(client)
        self._accounts = AccountStateFetcher(client)

    # ------------------------------------------------------------------ props

    @property
    def address(self) -> str:
        return self._address

    @property
    def abi(self) -> ContractAbi:
        return self._abi

    @property
    def keys(self) -> Optional[KeyPair]:
        return self._keys

    @property
    def name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"Contract(name={self._name!r}, address={self._address!r}, signed={self._keys is not None})"

    # ------------------------------------------------------------------ local

    async def run_local(
        self,
        function_name: str,
        args: Optional[Mapping[str, Any]] = None,
        *,
        result_type: Any = None,
        after_lt: Optional[str] = None,
    ) -> Any:
        """
        Execute `function_name` locally against the current account state and
        return its decoded outputs.

        Returns the mapping of declared output names to values; with
        `result_type`, the outputs validated into that shape instead. A single
        declared output validated into a non-mapping type (`int`, `str`, ...)
        is unwrapped first.

        Raises
        ------
        EncodingError  bad function name or arguments (before any I/O)
        NotFoundError  the contract has no on-chain state
        DecodeError    missing output, or output not matching `result_type`
        """
        # Validate first so a bad call never reaches the network.
        self._abi.check_call(function_name, args)

        account = await self._accounts.fetch_serialized_state(self._address, after_lt=after_lt)
        msg = await self._messages.build_call_message(
            self._address, self._abi, function_name, args, Signer.none()
        )
        try:
            raw = await self._client.run_tvm(msg.boc, account, self._abi)
        except NetworkError as e:
            if e.address is None:
                e.address = self._address
            raise
        decoded = self._abi.decode_output(function_name, raw)
        log.debug("run_local", contract=self._name, function=function_name, output=decoded)
        if result_type is None:
            return decoded
        return self._coerce(function_name, decoded, result_type)

    def _coerce(self, function_name: str, decoded: JsonDict, result_type: Any) -> Any:
        adapter = TypeAdapter(result_type)
        value: Any = decoded
        if len(decoded) == 1:
            try:
                return adapter.validate_python(next(iter(decoded.values())))
            except ValidationError:
                value = decoded
        try:
            return adapter.validate_python(value)
        except ValidationError as e:
            raise DecodeError(
                f"output does not match {getattr(result_type, '__name__', result_type)}: {e.errors()[0]['msg']}",
                function=function_name,
                address=self._address,
                data=decoded,
            ) from e

    # ------------------------------------------------------------------ submit

    def _signer(self, function_name: str) -> Signer:
        if self._keys is not None:
            return Signer.from_keys(self._keys)
        if self._unsigned_policy is UnsignedCallPolicy.REJECT:
            raise EncodingError(
                "contract has no keys and unsigned calls are rejected",
                function=function_name,
                address=self._address,
            )
        return Signer.none()

    async def call_with_result(self, function_name: str, args: Optional[Mapping[str, Any]] = None) -> CallResult:
        """
        Submit a call, wait for its transaction, and return it.

        Raises
        ------
        EncodingError  bad function/arguments, or unsigned call under REJECT
        NetworkError   submission or inclusion failure (no retry)
        DecodeError    the result carries no transaction id
        """
        signer = self._signer(function_name)
        params = self._messages.call_params(self._address, self._abi, function_name, args, signer)
        log.info("call_submit", contract=self._name, function=function_name, signed=signer.is_signed)
        try:
            tx = await self._client.process_message(params)
        except NetworkError as e:
            if e.address is None:
                e.address = self._address
            raise
        tx_id = tx.get("id") if isinstance(tx, Mapping) else None
        if not isinstance(tx_id, str) or not tx_id:
            raise DecodeError("call result has no transaction id", function=function_name, address=self._address, data=tx)
        lt = tx.get("lt")
        res = CallResult(transaction_id=tx_id, lt=None if lt is None else str(lt), transaction=dict(tx))
        log.info("call_included", contract=self._name, function=function_name, tx=tx_id, lt=res.lt)
        return res

    async def call(self, function_name: str, args: Optional[Mapping[str, Any]] = None) -> str:
        """Submit a call and return its transaction id once included."""
        return (await self.call_with_result(function_name, args)).transaction_id


__all__ = ["Contract", "CallResult", "UnsignedCallPolicy"]
