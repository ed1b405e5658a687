from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict, List, Mapping, Optional

import pytest

from tvm_deploy.abi import ContractAbi
from tvm_deploy.contracts import Contract
from tvm_deploy.keys import KeyPair, generate_keys
from tvm_deploy.net.base import MessageParams, ResultOfEncode
from tvm_deploy.resources import GIVER

GIVER_ADDRESS = "0:" + "ab" * 32
CODE_IMAGE = b"\xb5\xee\x9c\x72helloWorld-code"

UNINIT, ACTIVE, FROZEN, NONEXIST = 0, 1, 2, 3


def _b64(obj: Any) -> str:
    return base64.b64encode(json.dumps(obj, sort_keys=True).encode()).decode()


def _unb64(s: str) -> Any:
    return json.loads(base64.b64decode(s))


class FakeNetworkClient:
    """
    In-memory stand-in for a network client.

    - Addresses derive from sha256(code image, public key, workchain).
    - `sendTransaction` credits the destination (unless `funding_arrives` is False).
    - Deploying activates an uninitialized, funded account.
    - `touch` sets the contract's timestamp to the current fake time; every
      processed message advances that time by one and bumps the account lt.
    - `run_tvm` answers `timestamp` and `renderHelloWorld` from the state blob.
    """

    def __init__(self) -> None:
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.encoded: List[MessageParams] = []
        self.processed: List[MessageParams] = []
        self.queries: List[Dict[str, Any]] = []
        self.run_tvm_calls: List[str] = []
        self.info_responses: List[Optional[Dict[str, Any]]] = []
        self.fail_functions: Dict[str, Exception] = {}
        self.run_tvm_output: Optional[Any] = None
        self.override_run_tvm = False
        self.funding_arrives = True
        self.now = 1_700_000_000
        self._lt = 1000
        self._tx = 0
        self.closed = False

    # ---------- helpers ----------

    @staticmethod
    def derive(tvc: str, pubkey: Optional[str], workchain_id: int) -> str:
        h = hashlib.sha256(f"{tvc}|{pubkey}|{workchain_id}".encode()).hexdigest()
        return f"{workchain_id}:{h}"

    def _next_tx(self, address: str) -> Dict[str, Any]:
        self._tx += 1
        self._lt += 10
        self.now += 1
        if address in self.accounts:
            # account last_trans_lt ends past the transaction's own lt
            self.accounts[address]["lt"] = self._lt + 1
        return {"id": f"tx{self._tx:04d}", "lt": str(self._lt), "account_addr": address}

    def _address_of(self, params: MessageParams) -> str:
        if params.deploy_set is not None:
            ds = params.deploy_set
            return self.derive(ds.tvc, ds.initial_pubkey, ds.workchain_id)
        assert params.address is not None
        return params.address

    def _state_boc(self, address: str) -> str:
        acc = self.accounts[address]
        return _b64({"address": address, "timestamp": acc.get("timestamp", 0)})

    # ---------- NetworkClient ----------

    async def encode_message(self, params: MessageParams) -> ResultOfEncode:
        self.encoded.append(params)
        address = self._address_of(params)
        cs = params.call_set
        body = {
            "address": address,
            "function": cs.function_name if cs else None,
            "input": cs.input if cs else None,
            "signer": params.signer.kind.value,
        }
        return ResultOfEncode(message=_b64(body), address=address)

    async def process_message(self, params: MessageParams) -> Dict[str, Any]:
        self.processed.append(params)
        fn = params.call_set.function_name if params.call_set else None
        if fn in self.fail_functions:
            raise self.fail_functions[fn]
        address = self._address_of(params)

        if params.deploy_set is not None:
            acc = self.accounts.get(address)
            assert acc is not None and acc["acc_type"] == UNINIT and acc["balance"] > 0
            acc["acc_type"] = ACTIVE
            acc["timestamp"] = self.now
            return self._next_tx(address)

        inp = params.call_set.input if params.call_set else {}
        if fn == "sendTransaction" and self.funding_arrives:
            dest = self.accounts.setdefault(inp["dest"], {"acc_type": UNINIT, "balance": 0, "lt": 0})
            dest["balance"] += int(inp["value"])
        elif fn == "touch":
            self.accounts[address]["timestamp"] = self.now + 1
        elif fn == "sendValue":
            self.accounts[address]["balance"] -= int(inp["amount"])
        return self._next_tx(address)

    async def run_tvm(self, message: str, account: str, abi: ContractAbi) -> Optional[Dict[str, Any]]:
        self.run_tvm_calls.append(message)
        if self.override_run_tvm:
            return self.run_tvm_output
        msg = _unb64(message)
        state = _unb64(account)
        if msg["function"] == "timestamp":
            return {"timestamp": str(state["timestamp"])}
        if msg["function"] == "renderHelloWorld":
            return {"value0": "helloWorld"}
        return None

    async def query(self, query: str, variables: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        variables = dict(variables or {})
        self.queries.append({"query": query, "variables": variables})
        if self.info_responses:
            info = self.info_responses.pop(0)
        else:
            acc = self.accounts.get(variables["address"])
            info = None if acc is None else {"acc_type": acc["acc_type"], "balance": str(acc["balance"])}
        return {"blockchain": {"account": {"info": info}}}

    async def query_collection(
        self, collection: str, filter: Mapping[str, Any], result: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        self.queries.append({"collection": collection, "filter": dict(filter), "result": result, "limit": limit})
        address = filter["id"]["eq"]
        acc = self.accounts.get(address)
        if acc is None:
            return []
        if acc["acc_type"] != ACTIVE:
            return [{"id": address, "boc": None}]
        return [{"boc": self._state_boc(address)}]

    async def wait_for_collection(
        self, collection: str, filter: Mapping[str, Any], result: str, timeout_ms: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        self.queries.append({"collection": collection, "filter": dict(filter), "timeout": timeout_ms})
        address = filter["id"]["eq"]
        acc = self.accounts.get(address)
        if acc is None or acc["lt"] <= int(filter["last_trans_lt"]["gt"]):
            return None
        return {"boc": self._state_boc(address)}

    async def close(self) -> None:
        self.closed = True

    # ---------- test helpers ----------

    def add_active(self, address: str, *, timestamp: int = 0, balance: int = 10**9) -> None:
        self.accounts[address] = {"acc_type": ACTIVE, "balance": balance, "timestamp": timestamp, "lt": self._lt}


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def net() -> FakeNetworkClient:
    return FakeNetworkClient()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def wallet_keys() -> KeyPair:
    return generate_keys()


@pytest.fixture
def giver(net: FakeNetworkClient, wallet_keys: KeyPair) -> Contract:
    return Contract(net, GIVER_ADDRESS, GIVER, keys=wallet_keys, name="giver")
