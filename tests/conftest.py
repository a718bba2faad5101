"""Shared fixtures for batch_submitter tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from batch_submitter.models.config import PollConfig, SubmitterConfig

from tests.mocks import MockBatchSubmitter

# Well-known anvil/hardhat development key #0. Never holds real funds.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

L1_RPC_URL = "http://127.0.0.1:8545"
ADDRESS_MANAGER = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def pytest_configure(config):
    """Add chain info to the report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["L1 RPC"] = L1_RPC_URL
    meta["Sequencer Account"] = TEST_ADDRESS


# The historical environment contract, with values that make a valid config.
BASE_ENV = {
    "L1_NODE_WEB3_URL": L1_RPC_URL,
    "L2_NODE_WEB3_URL": "http://127.0.0.1:8546",
    "MIN_TX_SIZE": "1000",
    "MAX_TX_SIZE": "90000",
    "MAX_BATCH_SIZE": "50",
    "MAX_BATCH_SUBMISSION_TIME": "60",
    "POLL_INTERVAL": "15000",
    "NUM_CONFIRMATIONS": "0",
    "RESUBMISSION_TIMEOUT": "300",
    "FINALITY_CONFIRMATIONS": "0",
    "RUN_TX_BATCH_SUBMITTER": "true",
    "RUN_STATE_BATCH_SUBMITTER": "true",
    "SAFE_MINIMUM_ETHER_BALANCE": "0.5",
    "CLEAR_PENDING_TXS": "false",
    "ADDRESS_MANAGER_ADDRESS": ADDRESS_MANAGER,
}


def make_env(**overrides: str) -> dict[str, str]:
    env = dict(BASE_ENV)
    env.update(overrides)
    return env


def make_test_config(**overrides) -> SubmitterConfig:
    """Build a SubmitterConfig suitable for testing."""
    defaults = dict(
        l1_rpc_url=L1_RPC_URL,
        l2_rpc_url="http://127.0.0.1:8546",
        min_tx_size=1000,
        max_tx_size=90000,
        max_batch_size=50,
        max_batch_submission_time=60.0,
        poll_interval=0.0,
        num_confirmations=1,
        resubmission_timeout=300.0,
        finality_confirmations=0,
        run_tx_batch_submitter=True,
        run_state_batch_submitter=True,
        safe_minimum_ether_balance=0.5,
        clear_pending_txs=False,
        address_manager_address=ADDRESS_MANAGER,
        sequencer_private_key=TEST_PRIVATE_KEY,
    )
    defaults.update(overrides)
    return SubmitterConfig(**defaults)


@pytest.fixture
def poll_config():
    return PollConfig(poll_interval=0.0, num_confirmations=1, resubmission_timeout=300.0)


@pytest.fixture
def events():
    """Shared ordered log of send/confirm/submit events."""
    return []


@pytest.fixture
def tx_submitter(events):
    return MockBatchSubmitter(events=events, name="tx")


@pytest.fixture
def state_submitter(events):
    return MockBatchSubmitter(events=events, name="state")
