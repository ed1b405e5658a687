"""
Account state reads.

`AccountStateFetcher` answers two questions about an address:

- what kind of account is it and what is its balance (`fetch_snapshot`), which
  drives the funding poll of the deployer;
- what is its full serialized state (`fetch_serialized_state`), the base64 BOC
  that local execution runs against.

Both go through the shared `NetworkClient`; nothing is cached.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import DecodeError, NetworkError, NotFoundError
from .logging import get_logger
from .net.base import NetworkClient

log = get_logger(__name__)

UINT64_MAX = (1 << 64) - 1

ACCOUNT_INFO_QUERY = """query($address: String!){
    blockchain {
      account(address: $address) {
        info {
          acc_type balance(format: DEC)
        }
      }
    }
}"""


class AccountType(str, Enum):
    NONEXISTENT = "nonexistent"
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    FROZEN = "frozen"

    @classmethod
    def from_code(cls, code: int) -> "AccountType":
        try:
            return _ACC_TYPE_CODES[code]
        except KeyError:
            raise ValueError(f"unknown acc_type {code}") from None


_ACC_TYPE_CODES = {
    0: AccountType.UNINITIALIZED,
    1: AccountType.ACTIVE,
    2: AccountType.FROZEN,
    3: AccountType.NONEXISTENT,
}


@dataclass(frozen=True)
class AccountSnapshot:
    account_type: AccountType
    balance: int

    @property
    def ready_to_deploy(self) -> bool:
        return self.account_type is AccountType.UNINITIALIZED and self.balance > 0


class _AccountInfo(BaseModel):
    """Wire shape of `blockchain.account.info`."""

    model_config = ConfigDict(extra="ignore")

    acc_type: int
    balance: int

    @field_validator("balance", mode="before")
    @classmethod
    def _parse_balance(cls, v: Any) -> int:
        if isinstance(v, bool):
            raise ValueError("balance must be a numeric string")
        if isinstance(v, int):
            n = v
        elif isinstance(v, str):
            s = v.strip()
            n = int(s, 16) if s.lower().startswith("0x") else int(s, 10)
        else:
            raise ValueError("balance must be a numeric string")
        if not 0 <= n <= UINT64_MAX:
            raise ValueError(f"balance {n} does not fit in uint64")
        return n


class AccountStateFetcher:
    """
    Reads account state through a shared network client.

    Parameters
    ----------
    client : NetworkClient
    wait_timeout_ms : server-side wait used by `fetch_serialized_state(after_lt=...)`.
    """

    def __init__(self, client: NetworkClient, *, wait_timeout_ms: int = 40_000) -> None:
        self._client = client
        self._wait_timeout_ms = int(wait_timeout_ms)

    async def fetch_snapshot(self, address: str) -> AccountSnapshot:
        """
        Query account type and balance.

        Raises
        ------
        NetworkError on transport failure, DecodeError when the response cannot
        be read as a snapshot.
        """
        try:
            data = await self._client.query(ACCOUNT_INFO_QUERY, {"address": address})
        except NetworkError as e:
            if e.address is None:
                e.address = address
            raise
        try:
            info = data["blockchain"]["account"]["info"]
        except (KeyError, TypeError) as e:
            raise DecodeError(f"unexpected account query response shape: {e}", address=address, data=data) from e

        if info is None:
            return AccountSnapshot(AccountType.NONEXISTENT, 0)
        try:
            parsed = _AccountInfo.model_validate(info)
            acc_type = AccountType.from_code(parsed.acc_type)
        except (ValidationError, ValueError) as e:
            raise DecodeError(f"cannot parse account info: {e}", address=address, data=info) from e
        log.debug("account_snapshot", address=address, acc_type=acc_type.value, balance=parsed.balance)
        return AccountSnapshot(acc_type, parsed.balance)

    async def fetch_balance(self, address: str) -> int:
        return (await self.fetch_snapshot(address)).balance

    async def fetch_serialized_state(self, address: str, *, after_lt: Optional[str] = None) -> str:
        """
        Return the account's full serialized state (base64 BOC).

        With `after_lt`, wait until the account has a transaction newer than
        that logical time, so a read following a `call` sees its effects.

        Raises
        ------
        NotFoundError when no account matches or the match has no state.
        """
        flt: Dict[str, Any] = {"id": {"eq": address}}
        if after_lt is not None:
            flt["last_trans_lt"] = {"gt": after_lt}
            row = await self._client.wait_for_collection("accounts", flt, "boc", self._wait_timeout_ms)
            rows = [row] if row else []
        else:
            rows = await self._client.query_collection("accounts", flt, "boc", 1)

        if not rows:
            raise NotFoundError(f"account with address {address} not found", address=address)
        boc = rows[0].get("boc") if isinstance(rows[0], dict) else None
        if not isinstance(boc, str) or not boc:
            raise NotFoundError(f"account with address {address} does not contain boc", address=address)
        return boc


__all__ = ["AccountType", "AccountSnapshot", "AccountStateFetcher", "ACCOUNT_INFO_QUERY", "UINT64_MAX"]
