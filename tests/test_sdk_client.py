from __future__ import annotations

from types import SimpleNamespace

import pytest

from tvm_deploy.errors import EncodingError, NetworkError
from tvm_deploy.net.base import CallSet, MessageParams, Signer
from tvm_deploy.net.sdk import SdkNetworkClient, sdk_error_code, wrap_sdk_error
from tvm_deploy.resources import HELLO_WORLD

ADDRESS = "0:" + "cd" * 32


class ClientFailure(Exception):
    """Shaped like tonclient's TonException: carries `client_error`."""

    def __init__(self, code, message="boom"):
        super().__init__(f"{message} ({code})")
        self.client_error = SimpleNamespace(code=code, message=message)


def _client(exc: Exception) -> SdkNetworkClient:
    async def process_message(params):
        raise exc

    # skip __init__: it needs the native library
    c = object.__new__(SdkNetworkClient)
    c._types = SimpleNamespace(ParamsOfProcessMessage=lambda **kw: kw)
    c._encode_params = lambda params: {}
    c._sdk = SimpleNamespace(processing=SimpleNamespace(process_message=process_message))
    return c


def _touch() -> MessageParams:
    return MessageParams(abi=HELLO_WORLD, signer=Signer.none(), address=ADDRESS, call_set=CallSet("touch"))


@pytest.mark.asyncio
async def test_process_message_encoder_rejection():
    with pytest.raises(EncodingError) as ei:
        await _client(ClientFailure(305, "Encode run message failed")).process_message(_touch())
    assert ei.value.function == "touch"
    assert ei.value.address == ADDRESS
    assert "Encode run message failed" in str(ei.value)


@pytest.mark.asyncio
async def test_process_message_network_failure():
    with pytest.raises(NetworkError) as ei:
        await _client(ClientFailure(507, "Message expired")).process_message(_touch())
    assert ei.value.code == 507
    assert ei.value.operation == "process_message:touch"
    assert ei.value.address == ADDRESS


@pytest.mark.asyncio
async def test_process_message_plain_exception():
    with pytest.raises(NetworkError) as ei:
        await _client(RuntimeError("connection reset")).process_message(_touch())
    assert ei.value.code is None
    assert isinstance(ei.value.__cause__, RuntimeError)


@pytest.mark.parametrize(
    "code, expected",
    [(300, EncodingError), (304, EncodingError), (399, EncodingError), (400, NetworkError), (507, NetworkError), (1, NetworkError)],
)
def test_wrap_sdk_error_by_code(code, expected):
    err = wrap_sdk_error(ClientFailure(code), operation="process_message", function="constructor")
    assert type(err) is expected


def test_sdk_error_code():
    assert sdk_error_code(ClientFailure(312)) == 312
    assert sdk_error_code(ValueError("x")) is None
    assert sdk_error_code(ClientFailure("312")) is None
