"""
tvm_deploy.net.sdk
==================

Full `NetworkClient` implementation for a live network.

- Message encoding, processing (send + wait for inclusion) and local TVM
  execution are delegated to the `tonclient` package (ton-client-py), which
  wraps the native TVM client library. It is an optional dependency:

      pip install "tvm-deploy[tvm]"

- Account queries go through `GraphQLClient` (httpx).

The `tonclient` import is lazy so the rest of the package (and its tests) work
without the native library present.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..abi import ContractAbi
from ..errors import ConfigError, EncodingError, NetworkError, TvmDeployError
from ..logging import get_logger
from .base import MessageParams, ResultOfEncode, SignerKind
from .graphql import GraphQLClient

log = get_logger(__name__)

JsonDict = Dict[str, Any]

# tonclient reports abi-module failures (encoding, signing input) with codes 3xx
ABI_ERROR_CODES = range(300, 400)


def sdk_error_code(e: BaseException) -> Optional[int]:
    """Client error code carried by a tonclient exception, if any."""
    code = getattr(getattr(e, "client_error", None), "code", None)
    return code if isinstance(code, int) and not isinstance(code, bool) else None


def wrap_sdk_error(
    e: BaseException, *, operation: str, function: Optional[str] = None, address: Optional[str] = None
) -> TvmDeployError:
    """
    Map a tonclient failure to EncodingError (abi-module codes) or NetworkError
    (everything else).
    """
    code = sdk_error_code(e)
    if code is not None and code in ABI_ERROR_CODES:
        return EncodingError(f"failed to encode message: {e}", function=function, address=address)
    return NetworkError(f"{operation} failed: {e}", operation=f"{operation}:{function}", address=address, code=code)


def _import_tonclient() -> Tuple[Any, Any]:
    """
    Import the tonclient modules we rely on.

    Returns
    -------
    (client_module, types_module)
    """
    try:
        from tonclient import client as tc_client
        from tonclient import types as tc_types
    except Exception as e:  # pragma: no cover - import-time environment specific
        raise ConfigError(
            "The 'tonclient' package is required to talk to a live network. "
            "Install it with: pip install 'tvm-deploy[tvm]'"
        ) from e
    return tc_client, tc_types


class SdkNetworkClient:  # pragma: no cover - needs the native client library
    """
    NetworkClient backed by `tonclient` for encoding/processing and by
    `GraphQLClient` for queries.
    """

    def __init__(self, endpoint: str, *, timeout_s: float = 30.0, graphql: Optional[GraphQLClient] = None) -> None:
        tc_client, tc_types = _import_tonclient()
        self._types = tc_types
        config = tc_types.ClientConfig()
        config.network.endpoints = [endpoint]
        self._sdk = tc_client.TonClient(config=config, is_async=True)
        self._graphql = graphql or GraphQLClient(f"{endpoint.rstrip('/')}/graphql", timeout_s=timeout_s)

    async def __aenter__(self) -> "SdkNetworkClient":
        await self._graphql.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    async def close(self) -> None:
        await self._graphql.close()
        self._sdk.destroy_context()

    # ---------- param translation ----------

    def _abi(self, abi: ContractAbi) -> Any:
        return self._types.Abi.Json(value=abi.to_json())

    def _signer(self, params: MessageParams) -> Any:
        t = self._types
        s = params.signer
        if s.kind is SignerKind.KEYS and s.keys is not None:
            return t.Signer.Keys(keys=t.KeyPair(public=s.keys.public, secret=s.keys.secret))
        if s.kind is SignerKind.EXTERNAL and s.public_key is not None:
            return t.Signer.External(public_key=s.public_key)
        return t.Signer.NoSigner()

    def _encode_params(self, params: MessageParams) -> Any:
        t = self._types
        deploy_set = None
        if params.deploy_set is not None:
            ds = params.deploy_set
            deploy_set = t.DeploySet(
                tvc=ds.tvc,
                workchain_id=ds.workchain_id,
                initial_pubkey=ds.initial_pubkey,
                initial_data=ds.initial_data,
            )
        call_set = None
        if params.call_set is not None:
            cs = params.call_set
            header = None
            if cs.header is not None:
                header = t.FunctionHeader(time=cs.header.time, expire=cs.header.expire, pubkey=cs.header.pubkey)
            call_set = t.CallSet(function_name=cs.function_name, header=header, input=cs.input or None)
        return t.ParamsOfEncodeMessage(
            abi=self._abi(params.abi),
            signer=self._signer(params),
            address=params.address,
            deploy_set=deploy_set,
            call_set=call_set,
        )

    # ---------- NetworkClient ----------

    async def encode_message(self, params: MessageParams) -> ResultOfEncode:
        try:
            res = await self._sdk.abi.encode_message(params=self._encode_params(params))
        except Exception as e:
            fn = params.call_set.function_name if params.call_set else None
            raise EncodingError(f"failed to encode message: {e}", function=fn, address=params.address) from e
        return ResultOfEncode(message=res.message, address=res.address)

    async def process_message(self, params: MessageParams) -> JsonDict:
        t = self._types
        pp = t.ParamsOfProcessMessage(message_encode_params=self._encode_params(params), send_events=False)
        fn = params.call_set.function_name if params.call_set else None
        log.debug("process_message", function=fn, address=params.address, deploy=params.deploy_set is not None)
        try:
            res = await self._sdk.processing.process_message(params=pp)
        except Exception as e:
            raise wrap_sdk_error(e, operation="process_message", function=fn, address=params.address) from e
        return dict(res.transaction or {})

    async def run_tvm(self, message: str, account: str, abi: ContractAbi) -> Optional[JsonDict]:
        t = self._types
        try:
            res = await self._sdk.tvm.run_tvm(
                params=t.ParamsOfRunTvm(message=message, account=account, abi=self._abi(abi))
            )
        except Exception as e:
            raise NetworkError(f"run_tvm failed: {e}", operation="run_tvm") from e
        decoded = getattr(res, "decoded", None)
        return getattr(decoded, "output", None) if decoded is not None else None

    async def query(self, query: str, variables: Optional[Mapping[str, Any]] = None) -> JsonDict:
        return await self._graphql.query(query, variables)

    async def query_collection(
        self, collection: str, filter: Mapping[str, Any], result: str, limit: Optional[int] = None
    ) -> List[JsonDict]:
        return await self._graphql.query_collection(collection, filter, result, limit)

    async def wait_for_collection(
        self, collection: str, filter: Mapping[str, Any], result: str, timeout_ms: Optional[int] = None
    ) -> Optional[JsonDict]:
        return await self._graphql.wait_for_collection(collection, filter, result, timeout_ms)


__all__ = ["SdkNetworkClient", "sdk_error_code", "wrap_sdk_error", "ABI_ERROR_CODES"]
