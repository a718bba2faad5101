"""CLI entry point for the batch submitter."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from dotenv import load_dotenv

from batch_submitter.chain.signer import Web3Signer
from batch_submitter.config import ConfigError, load_config, require_signer_key
from batch_submitter.models.config import SubmitterConfig
from batch_submitter.orchestrator.nonce import NonceReconciler, NonceReconciliationError
from batch_submitter.service import build_waiter, run_service

log = logging.getLogger("batch_submitter.cli")


def _load(ctx: click.Context, need_key: bool = False) -> SubmitterConfig:
    """Load config or exit with status 1."""
    try:
        cfg = load_config(ctx.obj["config_path"])
        if need_key:
            require_signer_key(cfg)
    except ConfigError as exc:
        log.error("%s", exc)
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    return cfg


def _mask(value: str) -> str:
    return "***configured***" if value else "(not set)"


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("--env-file", default=None, help="Path to a .env file (default: ./.env)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, env_file: str | None, verbose: bool) -> None:
    """batch-submitter - submits rollup tx and state batches to L1."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    load_dotenv(env_file)

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Service ────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the batch submitter loops."""
    cfg = _load(ctx, need_key=True)

    try:
        if not ctx.obj["verbose"]:
            logging.getLogger().setLevel(cfg.log_level.upper())
        asyncio.run(run_service(cfg))
    except ConfigError as exc:
        log.error("%s", exc)
        sys.exit(1)
    except NonceReconciliationError as exc:
        log.error("Cannot clear transactions: %s", exc)
        sys.exit(1)
    except Exception as exc:
        log.error("Fatal startup error: %s", exc, exc_info=True)
        sys.exit(1)


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the resolved configuration."""
    cfg = _load(ctx)
    click.echo(f"L1 RPC:            {cfg.l1_rpc_url}")
    click.echo(f"L2 RPC:            {cfg.l2_rpc_url}")
    click.echo(f"Address manager:   {cfg.address_manager_address}")
    click.echo(f"Tx batches:        {'on' if cfg.run_tx_batch_submitter else 'off'}")
    click.echo(f"State batches:     {'on' if cfg.run_state_batch_submitter else 'off'}")
    click.echo(f"Poll interval:     {cfg.poll_interval:g}s")
    click.echo(f"Confirmations:     {cfg.num_confirmations}")
    click.echo(f"Resubmit timeout:  {cfg.resubmission_timeout:g}s")
    click.echo(f"Clear pending txs: {cfg.clear_pending_txs}")
    click.echo(f"Factory:           {cfg.submitter_factory or '(not set)'}")
    click.echo(f"Private key:       {_mask(cfg.sequencer_private_key)}")
    click.echo(f"Mnemonic:          {_mask(cfg.mnemonic)}")


@cli.command()
@click.pass_context
def nonces(ctx: click.Context) -> None:
    """Show the sequencer's latest and pending transaction counts."""
    cfg = _load(ctx, need_key=True)

    async def _nonces():
        signer = Web3Signer.from_config(cfg)
        window = await NonceReconciler(
            signer, build_waiter(cfg), cfg.num_confirmations,
        ).read_window()
        click.echo(f"Address:  {signer.address}")
        click.echo(f"Latest:   {window.latest}")
        click.echo(f"Pending:  {window.pending}")
        click.echo(f"Gap:      {window.gap}")
        if window.gap:
            click.echo(f"Stuck:    {window.stuck_nonces.start}..{window.stuck_nonces.stop - 1}")

    asyncio.run(_nonces())


@cli.command("clear-pending")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def clear_pending(ctx: click.Context, yes: bool) -> None:
    """Replace every stuck transaction with a zero-value self-transfer."""
    cfg = _load(ctx, need_key=True)

    async def _clear():
        signer = Web3Signer.from_config(cfg)
        reconciler = NonceReconciler(signer, build_waiter(cfg), cfg.num_confirmations)
        window = await reconciler.read_window()
        if not window.gap:
            click.echo("No pending transactions.")
            return

        click.echo(f"{window.gap} stuck transaction(s) for {signer.address}")
        if not yes:
            click.confirm("Send zero-value self-transfers to clear them?", abort=True)

        receipts = await reconciler.reconcile()
        for receipt in receipts:
            click.echo(f"  {receipt.tx_hash} (block {receipt.block_number})")
        click.echo(f"Cleared {len(receipts)} transaction(s).")

    try:
        asyncio.run(_clear())
    except NonceReconciliationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
