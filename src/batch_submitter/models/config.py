"""Configuration models for the batch submitter."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_HD_PATH = "m/44'/60'/0'/0/0"


@dataclass(frozen=True)
class PollConfig:
    """Timing shared by both submission loops."""

    poll_interval: float  # seconds between submit_next_batch() calls
    num_confirmations: int
    resubmission_timeout: float  # seconds before a stalled tx is replaced


@dataclass(frozen=True)
class SubmitterConfig:
    """Complete, validated process configuration. Built once at startup."""

    # L1 / L2 endpoints
    l1_rpc_url: str
    l2_rpc_url: str

    # Batch sizing (consumed by the submitters)
    min_tx_size: int
    max_tx_size: int
    max_batch_size: int
    max_batch_submission_time: float  # seconds

    # Scheduling
    poll_interval: float  # seconds
    num_confirmations: int
    resubmission_timeout: float  # seconds
    finality_confirmations: int

    # Roles
    run_tx_batch_submitter: bool
    run_state_batch_submitter: bool

    safe_minimum_ether_balance: float
    clear_pending_txs: bool
    address_manager_address: str

    # Signer
    sequencer_private_key: str = ""
    mnemonic: str = ""
    hd_path: str = DEFAULT_HD_PATH

    # Submitter extras
    fraud_submission_address: str = "no fraud"
    disable_queue_batch_append: bool = False
    submitter_factory: str = ""  # "package.module:callable"

    # Resubmission
    gas_price_bump: float = 1.125
    max_gas_price_gwei: float | None = None
    max_resubmissions: int | None = None

    log_level: str = "info"

    def poll_config(self) -> PollConfig:
        return PollConfig(
            poll_interval=self.poll_interval,
            num_confirmations=self.num_confirmations,
            resubmission_timeout=self.resubmission_timeout,
        )

    @property
    def max_gas_price_wei(self) -> int | None:
        if self.max_gas_price_gwei is None:
            return None
        return int(self.max_gas_price_gwei * 10**9)
