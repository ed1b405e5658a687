from __future__ import annotations

import pytest
import structlog
from structlog.testing import capture_logs

from conftest import CODE_IMAGE, GIVER_ADDRESS, FakeNetworkClient
from tvm_deploy.contracts import Deployer, DeployPolicy, DeployState
from tvm_deploy.contracts.deployer import STATE_EVENTS
from tvm_deploy.errors import ConfigError, FundingTimeoutError, NetworkError, TvmDeployError
from tvm_deploy.keys import generate_keys
from tvm_deploy.messages import MessageBuilder
from tvm_deploy.resources import HELLO_WORLD


def _deployer(net, giver, sleeper, **kw) -> Deployer:
    return Deployer(net, giver, sleep=sleeper, **kw)


def _snapshot_queries(net: FakeNetworkClient):
    return [q for q in net.queries if "query" in q]


@pytest.mark.asyncio
async def test_deploy_happy_path(net, giver, sleeper, wallet_keys):
    keys = generate_keys()
    expected = await MessageBuilder(net).derive_deploy_address(CODE_IMAGE, keys.public, abi=HELLO_WORLD)
    progress = []
    d = _deployer(net, giver, sleeper, progress=progress.append)

    contract = await d.deploy(CODE_IMAGE, HELLO_WORLD, keys=keys, name="helloWorld")

    assert contract.address == expected == d.address
    assert contract.keys == keys
    assert contract.name == "helloWorld"
    assert d.state is DeployState.DEPLOYED
    # first observation already satisfied: no sleep at all
    assert sleeper.calls == []
    assert len(_snapshot_queries(net)) == 1

    funding, deploy = net.processed
    assert funding.address == GIVER_ADDRESS
    assert funding.call_set.function_name == "sendTransaction"
    assert funding.call_set.input == {"dest": expected, "value": 1_000_000_000, "bounce": False}
    assert funding.signer.keys == wallet_keys
    assert deploy.deploy_set is not None and deploy.deploy_set.initial_pubkey == keys.public
    assert deploy.call_set.function_name == "constructor"
    assert deploy.signer.keys == keys
    assert net.accounts[expected]["acc_type"] == 1

    assert progress == [
        f"Future address of helloWorld contract is: {expected}",
        f"Requested 1000000000 nanotokens for {expected}. Transaction id: tx0001",
        "Contract status: Uninit (ready to deploy), balance: 1000000000",
        f"Contract helloWorld deployed at {expected}",
    ]


@pytest.mark.asyncio
async def test_generates_keys_when_none_given(net, giver, sleeper):
    contract = await _deployer(net, giver, sleeper).deploy(CODE_IMAGE, HELLO_WORLD)
    assert contract.keys is not None
    assert contract.name == "helloWorld"


@pytest.mark.asyncio
async def test_waits_until_funds_arrive(net, giver, sleeper):
    net.info_responses = [None, {"acc_type": 0, "balance": "0"}]
    d = _deployer(net, giver, sleeper)
    await d.deploy(CODE_IMAGE, HELLO_WORLD)
    assert sleeper.calls == [2.0, 2.0]
    assert len(_snapshot_queries(net)) == 3
    assert d.state is DeployState.DEPLOYED


@pytest.mark.asyncio
async def test_funding_timeout(net, giver, sleeper):
    net.funding_arrives = False
    d = _deployer(net, giver, sleeper)
    with pytest.raises(FundingTimeoutError) as ei:
        await d.deploy(CODE_IMAGE, HELLO_WORLD)

    err = ei.value
    assert isinstance(err, TimeoutError) and isinstance(err, TvmDeployError)
    assert err.message == "deploy failed: requested funds never arrived"
    assert err.attempts == 30 and err.address == d.address
    assert len(_snapshot_queries(net)) == 30
    assert sleeper.calls == [2.0] * 30
    assert sum(sleeper.calls) == 60.0
    assert d.state is DeployState.FAILED
    # only the funding request was ever submitted
    assert [p.call_set.function_name for p in net.processed] == ["sendTransaction"]


@pytest.mark.asyncio
async def test_active_account_is_never_ready(net, giver, sleeper):
    net.info_responses = [{"acc_type": 1, "balance": "5"}] * 3
    d = _deployer(net, giver, sleeper, policy=DeployPolicy(poll_attempts=3, poll_interval_s=0.5))
    with pytest.raises(FundingTimeoutError):
        await d.deploy(CODE_IMAGE, HELLO_WORLD)
    assert sleeper.calls == [0.5, 0.5, 0.5]


@pytest.mark.asyncio
async def test_funding_failure_is_not_retried(net, giver, sleeper):
    net.fail_functions["sendTransaction"] = NetworkError("giver rejected", operation="process_message")
    d = _deployer(net, giver, sleeper)
    with pytest.raises(NetworkError) as ei:
        await d.deploy(CODE_IMAGE, HELLO_WORLD)
    assert ei.value.address == GIVER_ADDRESS
    assert len(net.processed) == 1
    assert _snapshot_queries(net) == []
    assert sleeper.calls == []
    assert d.state is DeployState.FAILED


@pytest.mark.asyncio
async def test_deploy_submission_failure(net, giver, sleeper):
    net.fail_functions["constructor"] = NetworkError("exit code 52", operation="process_message")
    d = _deployer(net, giver, sleeper)
    with pytest.raises(NetworkError):
        await d.deploy(CODE_IMAGE, HELLO_WORLD)
    assert d.state is DeployState.FAILED
    assert len(net.processed) == 2


@pytest.mark.asyncio
async def test_custom_policy_amount_and_workchain(net, giver, sleeper):
    d = _deployer(net, giver, sleeper, policy=DeployPolicy(funding_amount=5, workchain_id=-1))
    contract = await d.deploy(CODE_IMAGE, HELLO_WORLD)
    assert contract.address.startswith("-1:")
    assert net.processed[0].call_set.input["value"] == 5


@pytest.mark.asyncio
async def test_deploy_file(net, giver, sleeper, tmp_path):
    tvc = tmp_path / "helloWorld.tvc"
    tvc.write_bytes(CODE_IMAGE)
    contract = await _deployer(net, giver, sleeper).deploy_file(tvc, HELLO_WORLD)
    assert contract.name == "helloWorld"

    with pytest.raises(ConfigError):
        await _deployer(net, giver, sleeper).deploy_file(tmp_path / "absent.tvc", HELLO_WORLD)


@pytest.mark.parametrize(
    "kw", [{"funding_amount": 0}, {"poll_attempts": 0}, {"poll_interval_s": -1.0}]
)
def test_policy_validation(kw):
    with pytest.raises(ValueError):
        DeployPolicy(**kw)


def test_policy_defaults():
    p = DeployPolicy()
    assert (p.funding_amount, p.poll_attempts, p.poll_interval_s, p.workchain_id) == (1_000_000_000, 30, 2.0, 0)


@pytest.mark.asyncio
async def test_funded_state_reported_before_deploy(net, giver, sleeper):
    net.info_responses = [None, {"acc_type": 0, "balance": "700"}]
    progress = []
    d = _deployer(net, giver, sleeper, progress=progress.append)
    await d.deploy(CODE_IMAGE, HELLO_WORLD)

    ready = progress.index("Contract status: Uninit (ready to deploy), balance: 700")
    deployed = next(i for i, line in enumerate(progress) if line.startswith("Contract helloWorld deployed at"))
    assert ready < deployed


@pytest.mark.asyncio
async def test_no_funded_line_on_timeout(net, giver, sleeper):
    net.funding_arrives = False
    progress = []
    d = _deployer(net, giver, sleeper, policy=DeployPolicy(poll_attempts=2), progress=progress.append)
    with pytest.raises(FundingTimeoutError):
        await d.deploy(CODE_IMAGE, HELLO_WORLD)
    assert progress[1].endswith("Transaction id: tx0001")
    assert not any(line.startswith("Contract status:") for line in progress)


@pytest.mark.asyncio
async def test_state_events(net, giver, sleeper):
    with capture_logs() as logs:
        await _deployer(net, giver, sleeper).deploy(CODE_IMAGE, HELLO_WORLD)

    state_events = set(STATE_EVENTS.values())
    events = [e["event"] for e in logs if e["event"] in state_events]
    assert events == ["address_derived", "funding_requested", "funds_wait", "funds_confirmed", "deployed"]
    confirmed = next(e for e in logs if e["event"] == "funds_confirmed")
    assert confirmed["balance"] == 1_000_000_000
    assert any(e["event"] == "funds_poll" for e in logs)


@pytest.mark.asyncio
async def test_failure_event(net, giver, sleeper):
    net.fail_functions["constructor"] = NetworkError("exit code 52", operation="process_message")
    with capture_logs() as logs:
        with pytest.raises(NetworkError):
            await _deployer(net, giver, sleeper).deploy(CODE_IMAGE, HELLO_WORLD)
    assert [e["event"] for e in logs if e["event"] == "deploy_failed"] == ["deploy_failed"]
    assert "deployed" not in [e["event"] for e in logs]


@pytest.mark.asyncio
async def test_contract_name_bound_while_deploying(net, giver, sleeper):
    seen = []
    d = _deployer(net, giver, sleeper, progress=lambda _: seen.append(structlog.contextvars.get_contextvars()))
    await d.deploy(CODE_IMAGE, HELLO_WORLD, name="hello")

    assert seen and all(ctx.get("contract") == "hello" for ctx in seen)
    assert "contract" not in structlog.contextvars.get_contextvars()


@pytest.mark.asyncio
async def test_contract_name_unbound_after_failure(net, giver, sleeper):
    net.funding_arrives = False
    d = _deployer(net, giver, sleeper, policy=DeployPolicy(poll_attempts=1))
    with pytest.raises(FundingTimeoutError):
        await d.deploy(CODE_IMAGE, HELLO_WORLD)
    assert "contract" not in structlog.contextvars.get_contextvars()
