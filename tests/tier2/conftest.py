"""Tier 2 fixtures: real anvil node on 127.0.0.1:8545."""

from __future__ import annotations

import httpx
import pytest
from web3 import AsyncWeb3

from batch_submitter.chain.signer import Web3Signer, account_from_config

from tests.conftest import L1_RPC_URL, make_test_config


def _rpc(method: str, params: list | None = None):
    r = httpx.post(
        L1_RPC_URL,
        json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params or []},
        timeout=3,
    )
    r.raise_for_status()
    return r.json().get("result")


@pytest.fixture(scope="session")
def anvil_available():
    """Check if a local anvil node is running. Skip tier2 tests if not."""
    try:
        version = _rpc("web3_clientVersion")
    except (httpx.ConnectError, httpx.TimeoutException, httpx.HTTPStatusError):
        pytest.skip(f"anvil not available at {L1_RPC_URL}")
    if not version or "anvil" not in str(version).lower():
        pytest.skip(f"node at {L1_RPC_URL} is not anvil ({version})")
    return True


@pytest.fixture
def anvil_config(anvil_available):
    return make_test_config(l1_rpc_url=L1_RPC_URL, num_confirmations=1)


@pytest.fixture
def real_signer(anvil_config):
    """Web3Signer on anvil using the dev account #0."""
    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(anvil_config.l1_rpc_url))
    return Web3Signer(w3, account_from_config(anvil_config))


@pytest.fixture
def automine_off(anvil_available):
    """Disable automine for the test; stuck txs are dropped afterwards."""
    _rpc("evm_setAutomine", [False])
    yield
    _rpc("evm_setAutomine", [True])
    _rpc("evm_mine")
