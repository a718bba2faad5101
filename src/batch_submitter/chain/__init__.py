"""Base-chain and L2 integration components."""

from batch_submitter.chain.confirmation import (
    BroadcastError,
    ConfirmationTimeout,
    NonceConsumedError,
    ResubmittingConfirmationWaiter,
)
from batch_submitter.chain.l2 import L2RpcClient, L2RpcError
from batch_submitter.chain.signer import Web3Signer

__all__ = [
    "BroadcastError", "ConfirmationTimeout", "NonceConsumedError",
    "ResubmittingConfirmationWaiter",
    "L2RpcClient", "L2RpcError",
    "Web3Signer",
]
