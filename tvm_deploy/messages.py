"""
tvm_deploy.messages
===================

Build deploy and call messages for a contract.

`MessageBuilder` validates everything it can locally (function declared in
the ABI, arguments matching the declared inputs) and only then asks the
network client's encoder for the actual message. Two flavors per message:

- `*_params(...)`  -> MessageParams, for `process_message` (submit + wait)
- `build_*(...)`   -> EncodedMessage, the encoded BOC itself (local execution,
                      address computation)

Address derivation uses a deploy-only parameter set (code image + initial
public key, external signer) so the future address is known before anything
exists on-chain.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .abi import ContractAbi
from .errors import EncodingError
from .keys import KeyPair
from .net.base import (CallSet, DeploySet, FunctionHeader, MessageParams,
                       NetworkClient, Signer, b64encode)

__all__ = ["EncodedMessage", "MessageBuilder", "now_ms", "CONSTRUCTOR"]

CONSTRUCTOR = "constructor"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class EncodedMessage:
    payload: bytes
    address: Optional[str] = None

    @property
    def boc(self) -> str:
        return b64encode(self.payload)


class MessageBuilder:
    """
    Parameters
    ----------
    client : NetworkClient providing `encode_message`.
    clock : callable returning the current time in milliseconds (header time).
    """

    def __init__(self, client: NetworkClient, *, clock: Callable[[], int] = now_ms) -> None:
        self._client = client
        self._clock = clock

    # ------------------------------------------------------------------ params

    def deploy_set(self, code_image: bytes, initial_public_key: str, workchain_id: int = 0) -> DeploySet:
        if not isinstance(code_image, (bytes, bytearray)) or not code_image:
            raise EncodingError("code image must be non-empty bytes")
        return DeploySet(
            tvc=b64encode(bytes(code_image)),
            workchain_id=int(workchain_id),
            initial_pubkey=initial_public_key,
        )

    def deploy_params(
        self,
        code_image: bytes,
        abi: ContractAbi,
        keys: KeyPair,
        *,
        workchain_id: int = 0,
        args: Optional[Mapping[str, Any]] = None,
    ) -> MessageParams:
        """Deploy set + constructor call stamped with the current time, signed with `keys`."""
        ctor_input = abi.check_call(CONSTRUCTOR, args)
        return MessageParams(
            abi=abi,
            signer=Signer.from_keys(keys),
            deploy_set=self.deploy_set(code_image, keys.public, workchain_id),
            call_set=CallSet(
                function_name=CONSTRUCTOR,
                input=ctor_input,
                header=FunctionHeader(time=self._clock()),
            ),
        )

    def call_params(
        self,
        address: str,
        abi: ContractAbi,
        function_name: str,
        args: Optional[Mapping[str, Any]],
        signer: Signer,
    ) -> MessageParams:
        fn_input = abi.check_call(function_name, args)
        return MessageParams(
            abi=abi,
            signer=signer,
            address=address,
            call_set=CallSet(function_name=function_name, input=fn_input),
        )

    # ------------------------------------------------------------------ encode

    async def _encode(self, params: MessageParams) -> EncodedMessage:
        res = await self._client.encode_message(params)
        try:
            payload = base64.b64decode(res.message, validate=True)
        except (ValueError, TypeError) as e:
            fn = params.call_set.function_name if params.call_set else None
            raise EncodingError(f"encoder returned a non-base64 message: {e}", function=fn) from e
        return EncodedMessage(payload=payload, address=res.address)

    async def derive_deploy_address(
        self,
        code_image: bytes,
        initial_public_key: str,
        workchain_id: int = 0,
        *,
        abi: ContractAbi,
    ) -> str:
        """
        Compute the address a contract will have once deployed. Deterministic
        in (code image, public key, workchain id).
        """
        params = MessageParams(
            abi=abi,
            signer=Signer.external(initial_public_key),
            deploy_set=self.deploy_set(code_image, initial_public_key, workchain_id),
        )
        res = await self._client.encode_message(params)
        if not res.address:
            raise EncodingError("encoder returned no address for deploy set", function=CONSTRUCTOR)
        return res.address

    async def build_deploy_message(
        self,
        code_image: bytes,
        abi: ContractAbi,
        keys: KeyPair,
        *,
        workchain_id: int = 0,
    ) -> EncodedMessage:
        return await self._encode(self.deploy_params(code_image, abi, keys, workchain_id=workchain_id))

    async def build_call_message(
        self,
        address: str,
        abi: ContractAbi,
        function_name: str,
        args: Optional[Mapping[str, Any]],
        signer: Signer,
    ) -> EncodedMessage:
        return await self._encode(self.call_params(address, abi, function_name, args, signer))
