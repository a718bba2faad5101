"""Process driver - wires the signer, reconciler and submission loops together."""

from __future__ import annotations

import asyncio
import importlib
import logging
import signal
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Mapping

from batch_submitter.chain.confirmation import ResubmittingConfirmationWaiter
from batch_submitter.chain.l2 import L2RpcClient
from batch_submitter.chain.signer import Web3Signer
from batch_submitter.config import ConfigError, require_signer_key
from batch_submitter.interfaces.signer import Signer
from batch_submitter.interfaces.submitter import BatchSubmitter, SubmitterFactory
from batch_submitter.interfaces.waiter import ConfirmationWaiter
from batch_submitter.models.config import SubmitterConfig
from batch_submitter.models.records import SubmitterBinding, SubmitterRole
from batch_submitter.orchestrator.nonce import NonceReconciler
from batch_submitter.orchestrator.supervisor import LoopSupervisor

log = logging.getLogger(__name__)

WEI_PER_ETHER = 10**18


@dataclass(frozen=True)
class SubmitterContext:
    """Everything a submitter factory needs to build its submitters."""

    config: SubmitterConfig
    signer: Signer
    waiter: ConfirmationWaiter
    chain_id: int

    def logger_for(self, role: SubmitterRole) -> logging.Logger:
        return logging.getLogger(f"batch_submitter.submitter.{role.value}")


def load_submitter_factory(ref: str) -> SubmitterFactory:
    """Resolve a "package.module:callable" reference."""
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Submitter factory must look like 'module:callable', got {ref!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import submitter factory module {module_name!r}: {exc}") from exc
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"{ref!r} is not a callable submitter factory")
    return factory


def build_bindings(
    cfg: SubmitterConfig,
    submitters: Mapping[SubmitterRole, BatchSubmitter],
) -> list[SubmitterBinding]:
    """Pair each role with its submitter and the role's enable flag."""
    enabled = {
        SubmitterRole.TX_BATCH: cfg.run_tx_batch_submitter,
        SubmitterRole.STATE_BATCH: cfg.run_state_batch_submitter,
    }
    bindings = []
    for role, is_enabled in enabled.items():
        submitter = submitters.get(role)
        if submitter is None:
            if is_enabled:
                raise ConfigError(f"Submitter factory did not provide a {role.value} submitter")
            continue
        bindings.append(SubmitterBinding(role=role, submitter=submitter, enabled=is_enabled))
    return bindings


def build_waiter(cfg: SubmitterConfig) -> ResubmittingConfirmationWaiter:
    return ResubmittingConfirmationWaiter(
        fee_bump=cfg.gas_price_bump,
        max_gas_price=cfg.max_gas_price_wei,
        max_resubmissions=cfg.max_resubmissions,
    )


class BatchSubmitterService:
    """Runs startup nonce reconciliation, then the submission loops.

    The loops never end on their own; stop() (wired to SIGINT/SIGTERM) is
    the only way out short of killing the process.
    """

    def __init__(
        self,
        cfg: SubmitterConfig,
        signer: Signer,
        bindings: Iterable[SubmitterBinding],
        waiter: ConfirmationWaiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._cfg = cfg
        self.signer = signer
        self.waiter = waiter or build_waiter(cfg)
        self.reconciler = NonceReconciler(self.signer, self.waiter, cfg.num_confirmations)
        self.supervisor = LoopSupervisor(bindings, cfg.poll_config(), sleep=sleep)

    async def start(self) -> None:
        """Reconcile nonces (if enabled), then run the loops until stopped."""
        log.info("Starting batch submitter...")
        log.info("  Sequencer address: %s", self.signer.address)
        log.info("  L1 RPC: %s", self._cfg.l1_rpc_url)
        log.info("  Tx batches: %s", "on" if self._cfg.run_tx_batch_submitter else "off")
        log.info("  State batches: %s", "on" if self._cfg.run_state_batch_submitter else "off")
        log.info(
            "  Poll: %.3fs, confirmations: %d, resubmission timeout: %.0fs",
            self._cfg.poll_interval,
            self._cfg.num_confirmations,
            self._cfg.resubmission_timeout,
        )

        await self.check_balance()

        if self._cfg.clear_pending_txs:
            await self.reconciler.reconcile()

        self.supervisor.start()
        await self.supervisor.wait()

    async def stop(self) -> None:
        log.info("Stop requested")
        await self.supervisor.stop()

    async def check_balance(self) -> bool:
        """Log an error if the sequencer balance is below the safe minimum."""
        balance = await self.signer.get_balance()
        minimum = int(self._cfg.safe_minimum_ether_balance * WEI_PER_ETHER)
        if balance < minimum:
            log.error(
                "Sequencer balance %.6f ETH is below the safe minimum of %s ETH",
                balance / WEI_PER_ETHER, self._cfg.safe_minimum_ether_balance,
            )
            return False
        log.info("  Balance: %.6f ETH", balance / WEI_PER_ETHER)
        return True


async def build_service(cfg: SubmitterConfig) -> BatchSubmitterService:
    """Build the signer, read the L2 chain id and construct the submitters."""
    require_signer_key(cfg)
    if not cfg.submitter_factory:
        raise ConfigError("No submitter factory configured (BATCH_SUBMITTER_FACTORY)")

    signer = Web3Signer.from_config(cfg)
    log.info("Using sequencer address: %s", signer.address)

    chain_id = await L2RpcClient(cfg.l2_rpc_url).chain_id()
    log.info("L2 chain id: %d", chain_id)

    waiter = build_waiter(cfg)
    factory = load_submitter_factory(cfg.submitter_factory)
    submitters = factory(SubmitterContext(
        config=cfg, signer=signer, waiter=waiter, chain_id=chain_id,
    ))
    return BatchSubmitterService(cfg, signer, build_bindings(cfg, submitters), waiter=waiter)


async def run_service(cfg: SubmitterConfig) -> None:
    """Entry point for running the batch submitter."""
    service = await build_service(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(service.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await service.start()
