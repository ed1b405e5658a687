"""
tvm_deploy.cli.main
===================

`tvm-deploy`: command-line interface for deploying and poking at TVM
contracts.

Examples
--------
    $ tvm-deploy keygen ./hello.keys.json
    $ tvm-deploy address --code ./helloWorld.tvc --keys ./hello.keys.json
    $ tvm-deploy hello-world --code ./helloWorld.tvc --send-value 100000000
    $ tvm-deploy run 0:ab... timestamp --abi helloWorld
    $ tvm-deploy call 0:ab... touch --abi helloWorld --keys ./hello.keys.json

Configuration
-------------
Every setting comes from the environment or a `.env` file in the working
directory (see `tvm_deploy.config`). The most relevant:

- ENDPOINT        : `--endpoint` (default: the public testnet)
- WALLET_KEYS     : key file of the funding wallet
- WALLET_ADDRESS  : address of the funding wallet
- CONTRACT_CODE   : code image used by `hello-world` and `address`

Progress goes to stdout, structured logs to stderr. Any tvm-deploy error is
reported as `error: ...` on stderr with exit status 1.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import typer

from ..abi import ContractAbi
from ..accounts import AccountStateFetcher
from ..config import Settings, load_settings
from ..contracts import Contract, Deployer
from ..errors import ConfigError, EncodingError, TvmDeployError
from ..keys import KeyPair, generate_keys, load_keys, random_address, save_keys
from ..logging import get_logger, setup_logging
from ..messages import MessageBuilder
from ..net import NetworkClient, SdkNetworkClient
from ..resources import GIVER, HELLO_WORLD
from ..version import version_info

T = TypeVar("T")

log = get_logger(__name__)

app = typer.Typer(
    name="tvm-deploy",
    help="Deploy TVM contracts, run getters locally and submit calls.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main", "make_network_client"]

BUNDLED_ABIS: Dict[str, ContractAbi] = {"giver": GIVER, "helloWorld": HELLO_WORLD}


@dataclass
class Ctx:
    settings: Settings


def make_network_client(settings: Settings) -> NetworkClient:
    """Network client used by every command."""
    return SdkNetworkClient(settings.endpoint, timeout_s=settings.request_timeout_s)


def _fail(e: TvmDeployError) -> typer.Exit:
    typer.echo(f"error: {e}", err=True)
    return typer.Exit(code=1)


def _run(settings: Settings, fn: Callable[[NetworkClient], Awaitable[T]]) -> T:
    """Run `fn` with a fresh network client on a new event loop."""

    async def _go() -> T:
        net = make_network_client(settings)
        try:
            return await fn(net)
        finally:
            close = getattr(net, "close", None)
            if close is not None:
                await close()

    try:
        return asyncio.run(_go())
    except TvmDeployError as e:
        log.debug("command_failed", error=str(e), exc_info=True)
        raise _fail(e) from e


def _settings(ctx: typer.Context) -> Settings:
    c: Ctx = ctx.obj
    return c.settings


def _resolve_abi(value: str) -> ContractAbi:
    if value in BUNDLED_ABIS:
        return BUNDLED_ABIS[value]
    return ContractAbi.from_path(value)


def _parse_args(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise EncodingError(f"--args is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise EncodingError("--args must be a JSON object")
    return parsed


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


@app.callback()
def _root(
    ctx: typer.Context,
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help="Network endpoint URL."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
) -> None:
    """
    Load settings (env, .env, flags) and configure logging for this process.
    """
    try:
        settings = load_settings(endpoint=endpoint, log_level=log_level)
    except ConfigError as e:
        raise _fail(e) from e
    setup_logging(level=settings.log_level.upper(), log_format=settings.log_format)
    ctx.obj = Ctx(settings=settings)


@app.command("version")
def version() -> None:
    """Print the tvm-deploy version."""
    typer.echo(f"tvm-deploy {version_info()}")


@app.command("keygen")
def keygen(
    path: Path = typer.Argument(..., help="Where to write the key file."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Generate a fresh ed25519 keypair and write it as a key file."""
    if path.exists() and not force:
        raise _fail(ConfigError("key file already exists (use --force to overwrite)", path=str(path)))
    try:
        save_keys(generate_keys(), path)
    except ConfigError as e:
        raise _fail(e) from e
    typer.echo(f"Keys written to {path}")
    typer.echo(f"public: {load_keys(path).public}")


@app.command("address")
def address(
    ctx: typer.Context,
    code: Optional[Path] = typer.Option(None, "--code", help="Code image (.tvc). Defaults to CONTRACT_CODE."),
    keys: Path = typer.Option(..., "--keys", help="Key file whose public key goes into the initial state."),
    abi: str = typer.Option("helloWorld", "--abi", help="ABI file or bundled name (giver, helloWorld)."),
) -> None:
    """Print the address a code image will be deployed to with the given keys."""
    settings = _settings(ctx)

    async def _go(net: NetworkClient) -> str:
        code_path = Path(code or settings.require("contract_code"))
        try:
            image = code_path.read_bytes()
        except OSError as e:
            raise ConfigError(f"cannot read contract code: {e}", path=str(code_path)) from e
        kp = load_keys(keys)
        return await MessageBuilder(net).derive_deploy_address(
            image, kp.public, settings.workchain_id, abi=_resolve_abi(abi)
        )

    typer.echo(_run(settings, _go))


@app.command("hello-world")
def hello_world(
    ctx: typer.Context,
    code: Optional[Path] = typer.Option(None, "--code", help="helloWorld code image. Defaults to CONTRACT_CODE."),
    keys: Optional[Path] = typer.Option(None, "--keys", help="Keys for the new contract (generated if omitted)."),
    send_value: Optional[int] = typer.Option(
        None, "--send-value", min=1, help="Afterwards, send this many nanotokens to a random address."
    ),
) -> None:
    """
    Deploy helloWorld, read its timestamp, touch it, and read the timestamp again.
    """
    settings = _settings(ctx)

    async def _go(net: NetworkClient) -> None:
        wallet_keys = load_keys(settings.require("wallet_keys"))
        wallet = Contract(net, settings.require("wallet_address"), GIVER, keys=wallet_keys, name="wallet")
        contract_keys: Optional[KeyPair] = load_keys(keys) if keys is not None else None

        deployer = Deployer(
            net,
            wallet,
            policy=settings.deploy_policy(),
            progress=typer.echo,
            unsigned_policy=settings.unsigned_call_policy(),
        )
        hello = await deployer.deploy_file(
            code or settings.require("contract_code"), HELLO_WORLD, keys=contract_keys, name="helloWorld"
        )

        balance = await AccountStateFetcher(net).fetch_balance(hello.address)
        typer.echo(f"helloWorld balance is {balance}")

        t1 = await hello.run_local("timestamp", result_type=int)
        typer.echo(f"Timestamp result[1]: {t1}")

        typer.echo("Updating timestamp...")
        res = await hello.call_with_result("touch")
        typer.echo(f"Success. TransactionId is: {res.transaction_id}")

        t2 = await hello.run_local("timestamp", result_type=int, after_lt=res.lt)
        typer.echo(f"Timestamp result[2]: {t2}")

        if send_value:
            dest = random_address(settings.workchain_id)
            typer.echo(f"Sending {send_value} nanotokens to {dest}")
            tx_id = await hello.call("sendValue", {"dest": dest, "amount": send_value, "bounce": False})
            typer.echo(f"Success. TransactionId is: {tx_id}")

    _run(settings, _go)


@app.command("run")
def run(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Contract address (<wc>:<64 hex>)."),
    function: str = typer.Argument(..., help="Getter to execute locally."),
    abi: str = typer.Option(..., "--abi", help="ABI file or bundled name (giver, helloWorld)."),
    args: Optional[str] = typer.Option(None, "--args", help="Arguments as a JSON object."),
) -> None:
    """Run a function locally against the contract's current state and print its outputs."""
    settings = _settings(ctx)

    async def _go(net: NetworkClient) -> Any:
        contract = Contract(net, address, _resolve_abi(abi))
        return await contract.run_local(function, _parse_args(args))

    _print_json(_run(settings, _go))


@app.command("call")
def call(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Contract address (<wc>:<64 hex>)."),
    function: str = typer.Argument(..., help="Function to call on-chain."),
    abi: str = typer.Option(..., "--abi", help="ABI file or bundled name (giver, helloWorld)."),
    args: Optional[str] = typer.Option(None, "--args", help="Arguments as a JSON object."),
    keys: Optional[Path] = typer.Option(None, "--keys", help="Key file to sign with (unsigned if omitted)."),
) -> None:
    """Submit a call, wait for its transaction and print the transaction id."""
    settings = _settings(ctx)

    async def _go(net: NetworkClient) -> str:
        contract = Contract(
            net,
            address,
            _resolve_abi(abi),
            keys=load_keys(keys) if keys is not None else None,
            unsigned_policy=settings.unsigned_call_policy(),
        )
        return await contract.call(function, _parse_args(args))

    typer.echo(_run(settings, _go))


def main() -> None:  # pragma: no cover - thin wrapper
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
