"""polytrade - sign orders and on-chain calls for the Polymarket exchange.

Usage:
    polytrade wallet create
    polytrade clob create-order --token 1234 --side buy --price 0.55 --size 10
    polytrade clob create-order --token 1234 --side buy --price 0.55 --size 10 --live
    polytrade approve set --live
    polytrade ctf split --condition 0x... --amount 10
"""

import dataclasses
import json
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

import pydantic
import typer
from rich.console import Console
from rich.table import Table

from polytrade.auth import AuthManager, EffectiveIdentity
from polytrade.client import ClobClient
from polytrade.config import (
    ChainConfig,
    Settings,
    get_settings,
    load_config,
    resolve_key,
)
from polytrade.ctf import (
    ContractCall,
    OnChainTxBuilder,
    collection_id,
    condition_id,
    position_id,
)
from polytrade.exceptions import PolytradeError, ValidationError
from polytrade.keystore import create_wallet, import_wallet, reset_wallet, wallet_info
from polytrade.models import BatchItemResult, MarketOrderRequest, OrderRequest, SignedOrder
from polytrade.orders import OrderBuilder
from polytrade.rpc import RpcClient, route_calls, send_calls
from polytrade.signing.typed_data import TypedDataSigner
from polytrade.utils.logging import get_logger, setup_logging
from polytrade.utils.parsing import (
    parse_address,
    parse_bytes32,
    parse_int_csv,
    parse_usdc_amount,
    parse_usdc_amounts,
)

app = typer.Typer(
    name="polytrade",
    help="Sign orders and on-chain calls for the Polymarket exchange",
    add_completion=False,
    no_args_is_help=True,
)
wallet_app = typer.Typer(help="Create, import, show or reset the local wallet", no_args_is_help=True)
clob_app = typer.Typer(help="Build, sign and submit exchange orders", no_args_is_help=True)
approve_app = typer.Typer(help="Token approvals for the exchange contracts", no_args_is_help=True)
ctf_app = typer.Typer(help="Conditional token split, merge, redeem and ids", no_args_is_help=True)
app.add_typer(wallet_app, name="wallet")
app.add_typer(clob_app, name="clob")
app.add_typer(approve_app, name="approve")
app.add_typer(ctf_app, name="ctf")

console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


@dataclass
class InvocationContext:
    """Everything one command needs, resolved from flags and environment."""

    settings: Settings
    output: OutputFormat = OutputFormat.TABLE
    private_key: str | None = None
    signature_type: str | None = None
    safe_address: str | None = None

    def unlocked_settings(self) -> Settings:
        """Settings with a keystore password when the keystore is the key source."""
        s = self.settings
        if s.password or not s.keystore_path.exists():
            return s
        candidate, _ = resolve_key(self.private_key, s, load_config(s))
        if candidate is None:
            password = typer.prompt("Keystore password", hide_input=True)
            self.settings = dataclasses.replace(s, password=password)
        return self.settings

    def auth(self, unlock: bool = False) -> AuthManager:
        settings = self.unlocked_settings() if unlock else self.settings
        return AuthManager(settings, load_config(settings))

    def chain(self) -> ChainConfig:
        return self.auth().chain

    def identity(self) -> EffectiveIdentity:
        return self.auth(unlock=True).resolve(
            self.private_key, self.signature_type, self.safe_address
        )

    def clob(self, identity: EffectiveIdentity | None = None) -> ClobClient:
        chain_id = identity.chain.chain_id if identity else self.chain().chain_id
        return ClobClient(
            self.settings.clob_url,
            chain_id,
            signer=TypedDataSigner(identity.key) if identity else None,
            creds=self.auth().stored_credentials(),
            timeout=self.settings.request_timeout,
        )

    def rpc(self) -> RpcClient:
        return RpcClient(self.settings.rpc_url, timeout=self.settings.request_timeout)


def _ictx(ctx: typer.Context) -> InvocationContext:
    return ctx.obj


@app.callback()
def main(
    ctx: typer.Context,
    private_key: str | None = typer.Option(
        None, "--private-key", help="Private key (overrides env and config file)"
    ),
    signature_type: str | None = typer.Option(
        None, "--signature-type", help="eoa, proxy or gnosis-safe (default: proxy)"
    ),
    safe_address: str | None = typer.Option(
        None, "--safe-address", help="Gnosis Safe address for gnosis-safe signing"
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--output", "-o", help="Output format"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
    log_json: bool = typer.Option(False, "--log-json", help="Log as JSON to stderr"),
) -> None:
    """Polymarket order signing and on-chain tooling."""
    try:
        settings = get_settings()
    except PolytradeError as e:
        _fail(output, e)
    setup_logging(log_level or settings.log_level, log_json or settings.log_json)
    ctx.obj = InvocationContext(
        settings=settings,
        output=output,
        private_key=private_key,
        signature_type=signature_type,
        safe_address=safe_address,
    )


@contextmanager
def handle_errors(ictx: InvocationContext) -> Iterator[None]:
    """Render polytrade errors and exit with code 1."""
    try:
        yield
    except pydantic.ValidationError as e:
        _fail(ictx.output, ValidationError("Invalid input", {"errors": _pydantic_errors(e)}))
    except PolytradeError as e:
        _fail(ictx.output, e)


def _pydantic_errors(error: pydantic.ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def _fail(output: OutputFormat, error: PolytradeError) -> None:
    logger.error(f"{error.kind}: {error}")
    if output is OutputFormat.JSON:
        typer.echo(json.dumps(error.to_dict(), indent=2))
    else:
        err_console.print(f"[red]{error.kind}: {error}[/red]")
    raise typer.Exit(code=1)


def emit(ictx: InvocationContext, data: Any, title: str | None = None) -> None:
    """Print ``data`` (a dict or list of dicts) as JSON or a rich table."""
    if ictx.output is OutputFormat.JSON:
        typer.echo(json.dumps(data, indent=2, default=str))
        return

    if isinstance(data, dict):
        table = Table(title=title, show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", overflow="fold")
        for key, value in data.items():
            table.add_row(str(key), _cell(value))
    else:
        rows = list(data)
        table = Table(title=title)
        columns = list(rows[0].keys()) if rows else []
        for column in columns:
            table.add_column(column, overflow="fold")
        for row in rows:
            table.add_row(*(_cell(row.get(c)) for c in columns))
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _signed_order_view(signed: SignedOrder) -> dict[str, Any]:
    order = signed.order
    return {
        "order_hash": signed.order_hash,
        "price": str(order.price),
        "size": str(order.size),
        "order_type": order.order_type.value,
        "neg_risk": order.neg_risk,
        **signed.to_wire(),
    }


def _confirm(prompt: str, yes: bool) -> None:
    if not yes and not typer.confirm(prompt):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(code=0)


def _password(ictx: InvocationContext, confirm: bool) -> str:
    if ictx.settings.password:
        return ictx.settings.password
    return typer.prompt("Keystore password", hide_input=True, confirmation_prompt=confirm)


# wallet


@wallet_app.command("create")
def wallet_create(
    ctx: typer.Context,
    signature_type: str = typer.Option("proxy", "--signature-type", help="eoa, proxy or gnosis-safe"),
    safe_address: str | None = typer.Option(None, "--safe-address"),
    encrypt: bool = typer.Option(False, "--encrypt", help="Store the key in a password-encrypted keystore"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing wallet"),
) -> None:
    """Generate a new random wallet and store it."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        password = _password(ictx, confirm=True) if encrypt else None
        info = create_wallet(
            ictx.settings,
            signature_type=signature_type,
            safe_address=safe_address,
            password=password,
            force=force,
        )
        emit(ictx, info.to_dict(), title="Wallet created")


@wallet_app.command("import")
def wallet_import(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="0x-prefixed private key"),
    signature_type: str = typer.Option("proxy", "--signature-type", help="eoa, proxy or gnosis-safe"),
    safe_address: str | None = typer.Option(None, "--safe-address"),
    encrypt: bool = typer.Option(False, "--encrypt", help="Store the key in a password-encrypted keystore"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing wallet"),
) -> None:
    """Store an existing private key."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        password = _password(ictx, confirm=True) if encrypt else None
        info = import_wallet(
            ictx.settings,
            key,
            signature_type=signature_type,
            safe_address=safe_address,
            password=password,
            force=force,
        )
        emit(ictx, info.to_dict(), title="Wallet imported")


@wallet_app.command("show")
def wallet_show(ctx: typer.Context) -> None:
    """Show the address, proxy address and where the key comes from."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        info = wallet_info(
            ictx.unlocked_settings(), ictx.private_key, ictx.signature_type, ictx.safe_address
        )
        view = info.to_dict()
        view["key_source"] = info.key_source.label
        emit(ictx, view, title="Wallet")


@wallet_app.command("reset")
def wallet_reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete the stored key and wallet settings."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        _confirm("Delete the stored wallet? This cannot be undone", yes)
        removed = reset_wallet(ictx.settings)
        emit(ictx, {"removed": [str(p) for p in removed]}, title="Wallet reset")


# clob


def _ensure_creds(client: ClobClient) -> None:
    if client.creds is None:
        client.set_api_creds(client.create_or_derive_api_creds())


def _submit(
    ictx: InvocationContext,
    signed: SignedOrder,
    client: ClobClient,
    dry_run: bool,
    yes: bool,
) -> None:
    emit(ictx, _signed_order_view(signed), title="Signed order")
    if dry_run:
        if ictx.output is OutputFormat.TABLE:
            console.print("[cyan]DRY RUN - order signed but not submitted (use --live)[/cyan]")
        return
    _confirm("Submit this order?", yes)
    _ensure_creds(client)
    response = client.post_order(signed)
    emit(ictx, response.model_dump(exclude={"raw_response"}), title="Order response")
    if not response.accepted:
        raise typer.Exit(code=1)


@clob_app.command("create-order")
def clob_create_order(
    ctx: typer.Context,
    token: str = typer.Option(..., "--token", "-t", help="Outcome token id"),
    side: str = typer.Option(..., "--side", "-s", help="buy or sell"),
    price: str = typer.Option(..., "--price", "-p", help="Limit price between 0 and 1"),
    size: str = typer.Option(..., "--size", "-z", help="Order size in shares"),
    order_type: str = typer.Option("GTC", "--order-type", help="GTC or GTD"),
    expiration: int = typer.Option(0, "--expiration", help="Unix seconds, GTD only"),
    nonce: int = typer.Option(0, "--nonce"),
    dry_run: bool = typer.Option(True, "--dry-run/--live", help="Dry run mode (default: true)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation for live orders"),
) -> None:
    """Build and sign a limit order; submit it with --live."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        request = OrderRequest(
            token_id=token,
            side=side,
            price=price,
            size=size,
            order_type=order_type,
            expiration=expiration,
            nonce=nonce,
        )
        with ictx.identity() as identity:
            client = ictx.clob(identity)
            signed = OrderBuilder(identity, client).create_order(request)
            _submit(ictx, signed, client, dry_run, yes)


@clob_app.command("market-order")
def clob_market_order(
    ctx: typer.Context,
    token: str = typer.Option(..., "--token", "-t", help="Outcome token id"),
    side: str = typer.Option(..., "--side", "-s", help="buy or sell"),
    amount: str = typer.Option(..., "--amount", "-a", help="USDC to spend (buy) or shares to sell (sell)"),
    price: str | None = typer.Option(None, "--price", "-p", help="Worst acceptable price; default from the book"),
    order_type: str = typer.Option("FOK", "--order-type", help="FOK or FAK"),
    nonce: int = typer.Option(0, "--nonce"),
    dry_run: bool = typer.Option(True, "--dry-run/--live", help="Dry run mode (default: true)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation for live orders"),
) -> None:
    """Build and sign a market order; submit it with --live."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        request = MarketOrderRequest(
            token_id=token,
            side=side,
            amount=amount,
            price=price,
            order_type=order_type,
            nonce=nonce,
        )
        with ictx.identity() as identity:
            client = ictx.clob(identity)
            signed = OrderBuilder(identity, client).create_market_order(request)
            _submit(ictx, signed, client, dry_run, yes)


def _load_order_requests(
    path: Path,
) -> tuple[list[tuple[int, OrderRequest | MarketOrderRequest]], list[BatchItemResult]]:
    """Parse the orders file; invalid entries become failed rows at their index."""
    try:
        entries = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        raise ValidationError("Cannot read orders file", {"path": path, "reason": str(e)}) from e
    if not isinstance(entries, list):
        raise ValidationError("Orders file must hold a JSON list", {"path": path})
    requests = []
    rejected = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            error = ValidationError("Order entry must be a JSON object", {"entry": entry})
            rejected.append(BatchItemResult(index=index, ok=False, error=error.to_dict()))
            continue
        model = MarketOrderRequest if "amount" in entry else OrderRequest
        try:
            requests.append((index, model(**entry)))
        except pydantic.ValidationError as e:
            logger.warning(f"Order entry {index} rejected: {_pydantic_errors(e)}")
            error = ValidationError("Invalid input", {"errors": _pydantic_errors(e)})
            rejected.append(BatchItemResult(index=index, ok=False, error=error.to_dict()))
    return requests, rejected


def _batch_view(results) -> list[dict[str, Any]]:
    rows = []
    for result in results:
        value = result.value
        if isinstance(value, SignedOrder):
            detail = value.order_hash
        elif value is not None:
            detail = value.order_id if hasattr(value, "order_id") else str(value)
        else:
            detail = (result.error or {}).get("message")
        rows.append({
            "index": result.index,
            "ok": result.ok,
            "detail": detail,
            "error": (result.error or {}).get("error"),
        })
    return rows


@clob_app.command("post-orders")
def clob_post_orders(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON list of order requests"),
    workers: int = typer.Option(4, "--workers", help="Concurrent submissions"),
    dry_run: bool = typer.Option(True, "--dry-run/--live", help="Dry run mode (default: true)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation for live orders"),
) -> None:
    """
    Sign and submit several orders; each succeeds or fails on its own.

    Entries with an ``amount`` are market orders, the rest limit orders.
    """
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        requests, rejected = _load_order_requests(file)
        with ictx.identity() as identity:
            client = ictx.clob(identity)
            built = OrderBuilder(identity, client).create_orders(r for _, r in requests)
            built = [
                item.model_copy(update={"index": requests[item.index][0]}) for item in built
            ]
            built = sorted(built + rejected, key=lambda item: item.index)
            signed = [r.value for r in built if r.ok]
            if dry_run or not signed:
                emit(ictx, _batch_view(built), title="Signed orders")
                if not all(r.ok for r in built):
                    raise typer.Exit(code=1)
                return

            _confirm(f"Submit {len(signed)} orders?", yes)
            _ensure_creds(client)
            posted = iter(client.post_orders(signed, max_workers=workers))
            results = []
            for item in built:
                if item.ok:
                    result = next(posted)
                    results.append(result.model_copy(update={"index": item.index}))
                else:
                    results.append(item)
            emit(ictx, _batch_view(results), title="Posted orders")
            if not all(r.ok and getattr(r.value, "accepted", True) for r in results):
                raise typer.Exit(code=1)


@clob_app.command("cancel-order")
def clob_cancel_order(
    ctx: typer.Context,
    order_id: str = typer.Argument(..., help="Order id to cancel"),
) -> None:
    """Cancel one open order."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        with ictx.identity() as identity:
            client = ictx.clob(identity)
            _ensure_creds(client)
            response = client.cancel_order(order_id)
            emit(ictx, response.model_dump(exclude={"raw_response"}), title="Cancel")


@clob_app.command("cancel-orders")
def clob_cancel_orders(
    ctx: typer.Context,
    order_ids: str = typer.Argument(..., help="Comma-separated order ids"),
    workers: int = typer.Option(4, "--workers", help="Concurrent cancellations"),
) -> None:
    """Cancel several orders; each is reported on its own."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        ids = [i.strip() for i in order_ids.split(",") if i.strip()]
        if not ids:
            raise ValidationError("No order ids given")
        with ictx.identity() as identity:
            client = ictx.clob(identity)
            _ensure_creds(client)
            results = client.cancel_orders(ids, max_workers=workers)
            emit(ictx, _batch_view(results), title="Cancel")


@clob_app.command("api-key")
def clob_api_key(
    ctx: typer.Context,
    nonce: int = typer.Option(0, "--nonce"),
    show_secret: bool = typer.Option(False, "--show-secret", help="Print the secret and passphrase"),
) -> None:
    """Create API credentials, or derive the existing ones for this key."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        with ictx.identity() as identity:
            creds = ictx.clob(identity).create_or_derive_api_creds(nonce)
        emit(
            ictx,
            {
                "api_key": creds.api_key,
                "secret": creds.secret if show_secret else "***",
                "passphrase": creds.passphrase if show_secret else "***",
            },
            title="API credentials",
        )


# approve / ctf


def _calls_view(calls: list[ContractCall]) -> list[dict[str, Any]]:
    return [call.to_dict() for call in calls]


def _run_calls(
    ictx: InvocationContext,
    calls: list[ContractCall],
    title: str,
    dry_run: bool,
    yes: bool,
) -> None:
    auth = ictx.auth()
    builder = OnChainTxBuilder(auth.chain)
    routed = route_calls(auth.signature_type(ictx.signature_type), builder, calls)
    emit(ictx, _calls_view(routed), title=title)
    if dry_run:
        if ictx.output is OutputFormat.TABLE:
            console.print("[cyan]DRY RUN - nothing sent (use --live)[/cyan]")
        return
    _confirm(f"Send {len(routed)} transaction(s)?", yes)
    with ictx.identity() as identity:
        results = send_calls(ictx.rpc(), identity, builder, calls)
    emit(ictx, [r.to_dict() for r in results], title="Transactions")


@approve_app.command("list")
def approve_list(ctx: typer.Context) -> None:
    """List the approval calls trading requires."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        emit(ictx, _calls_view(OnChainTxBuilder(ictx.chain()).approval_calls()), title="Approvals")


@approve_app.command("set")
def approve_set(
    ctx: typer.Context,
    dry_run: bool = typer.Option(True, "--dry-run/--live", help="Dry run mode (default: true)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Send all six approvals, each as its own transaction."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        calls = OnChainTxBuilder(ictx.chain()).approval_calls()
        _run_calls(ictx, calls, "Approval transactions", dry_run, yes)


def _optional_bytes32(value: str | None, name: str) -> bytes | None:
    return parse_bytes32(value, name) if value else None


def _optional_address(value: str | None, name: str) -> str | None:
    return parse_address(value, name) if value else None


@ctf_app.command("split")
def ctf_split(
    ctx: typer.Context,
    condition: str = typer.Option(..., "--condition", help="Condition id (0x 32-byte hex)"),
    amount: str = typer.Option(..., "--amount", help="USDC amount, e.g. 10"),
    collateral: str | None = typer.Option(None, "--collateral", help="Collateral token (default USDC)"),
    partition: str | None = typer.Option(None, "--partition", help="Index sets, e.g. 1,2"),
    parent_collection: str | None = typer.Option(None, "--parent-collection"),
    dry_run: bool = typer.Option(True, "--dry-run/--live", help="Dry run mode (default: true)"),
    yes: bool = typer.Option(False, "--yes", "-y"),
) -> None:
    """Split collateral into outcome tokens."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        call = OnChainTxBuilder(ictx.chain()).split_position(
            parse_bytes32(condition, "condition"),
            parse_usdc_amount(amount),
            partition=parse_int_csv(partition) if partition else None,
            collateral=_optional_address(collateral, "collateral"),
            parent_collection_id=_optional_bytes32(parent_collection, "parent_collection"),
        )
        _run_calls(ictx, [call], "Split", dry_run, yes)


@ctf_app.command("merge")
def ctf_merge(
    ctx: typer.Context,
    condition: str = typer.Option(..., "--condition", help="Condition id (0x 32-byte hex)"),
    amount: str = typer.Option(..., "--amount", help="USDC amount, e.g. 10"),
    collateral: str | None = typer.Option(None, "--collateral", help="Collateral token (default USDC)"),
    partition: str | None = typer.Option(None, "--partition", help="Index sets, e.g. 1,2"),
    parent_collection: str | None = typer.Option(None, "--parent-collection"),
    dry_run: bool = typer.Option(True, "--dry-run/--live", help="Dry run mode (default: true)"),
    yes: bool = typer.Option(False, "--yes", "-y"),
) -> None:
    """Merge outcome tokens back into collateral."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        call = OnChainTxBuilder(ictx.chain()).merge_positions(
            parse_bytes32(condition, "condition"),
            parse_usdc_amount(amount),
            partition=parse_int_csv(partition) if partition else None,
            collateral=_optional_address(collateral, "collateral"),
            parent_collection_id=_optional_bytes32(parent_collection, "parent_collection"),
        )
        _run_calls(ictx, [call], "Merge", dry_run, yes)


@ctf_app.command("redeem")
def ctf_redeem(
    ctx: typer.Context,
    condition: str = typer.Option(..., "--condition", help="Condition id (0x 32-byte hex)"),
    collateral: str | None = typer.Option(None, "--collateral", help="Collateral token (default USDC)"),
    index_sets: str | None = typer.Option(None, "--index-sets", help="Index sets, e.g. 1,2 or 1"),
    parent_collection: str | None = typer.Option(None, "--parent-collection"),
    dry_run: bool = typer.Option(True, "--dry-run/--live", help="Dry run mode (default: true)"),
    yes: bool = typer.Option(False, "--yes", "-y"),
) -> None:
    """Redeem winning tokens after resolution."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        call = OnChainTxBuilder(ictx.chain()).redeem_positions(
            parse_bytes32(condition, "condition"),
            index_sets=parse_int_csv(index_sets) if index_sets else None,
            collateral=_optional_address(collateral, "collateral"),
            parent_collection_id=_optional_bytes32(parent_collection, "parent_collection"),
        )
        _run_calls(ictx, [call], "Redeem", dry_run, yes)


@ctf_app.command("redeem-neg-risk")
def ctf_redeem_neg_risk(
    ctx: typer.Context,
    condition: str = typer.Option(..., "--condition", help="Condition id (0x 32-byte hex)"),
    amounts: str = typer.Option(..., "--amounts", help="USDC per outcome, e.g. 10,0"),
    outcomes: int = typer.Option(2, "--outcomes", help="Number of outcomes"),
    dry_run: bool = typer.Option(True, "--dry-run/--live", help="Dry run mode (default: true)"),
    yes: bool = typer.Option(False, "--yes", "-y"),
) -> None:
    """Redeem through the neg-risk adapter."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        call = OnChainTxBuilder(ictx.chain()).redeem_neg_risk(
            parse_bytes32(condition, "condition"),
            parse_usdc_amounts(amounts),
            outcome_count=outcomes,
        )
        _run_calls(ictx, [call], "Redeem neg-risk", dry_run, yes)


@ctf_app.command("condition-id")
def ctf_condition_id(
    ctx: typer.Context,
    oracle: str = typer.Option(..., "--oracle", help="Oracle address"),
    question: str = typer.Option(..., "--question", help="Question id (0x 32-byte hex)"),
    outcomes: int = typer.Option(..., "--outcomes", help="Outcome count, e.g. 2"),
) -> None:
    """Compute a condition id offline."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        cid = condition_id(
            parse_address(oracle, "oracle"), parse_bytes32(question, "question"), outcomes
        )
        emit(ictx, {"condition_id": "0x" + cid.hex()}, title="Condition id")


@ctf_app.command("collection-id")
def ctf_collection_id(
    ctx: typer.Context,
    condition: str = typer.Option(..., "--condition", help="Condition id (0x 32-byte hex)"),
    index_set: int = typer.Option(..., "--index-set", help="e.g. 1 for YES, 2 for NO"),
    parent_collection: str | None = typer.Option(None, "--parent-collection"),
) -> None:
    """Compute a collection id offline."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        cid = collection_id(
            parse_bytes32(condition, "condition"),
            index_set,
            _optional_bytes32(parent_collection, "parent_collection"),
        )
        emit(ictx, {"collection_id": "0x" + cid.hex()}, title="Collection id")


@ctf_app.command("position-id")
def ctf_position_id(
    ctx: typer.Context,
    collection: str = typer.Option(..., "--collection", help="Collection id (0x 32-byte hex)"),
    collateral: str | None = typer.Option(None, "--collateral", help="Collateral token (default USDC)"),
) -> None:
    """Compute a position (ERC-1155 token) id offline."""
    ictx = _ictx(ctx)
    with handle_errors(ictx):
        token = _optional_address(collateral, "collateral") or ictx.chain().collateral
        pid = position_id(token, parse_bytes32(collection, "collection"))
        emit(ictx, {"position_id": str(pid)}, title="Position id")


if __name__ == "__main__":
    app()
