"""Sequencer signer - local eth-account key on an L1 JSON-RPC endpoint."""

from __future__ import annotations

import logging

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from batch_submitter.models.config import SubmitterConfig
from batch_submitter.models.records import Receipt, TxAttempt

log = logging.getLogger(__name__)

SELF_TRANSFER_GAS = 21_000


def account_from_config(cfg: SubmitterConfig) -> LocalAccount:
    """Derive the sequencer account from the private key or the mnemonic."""
    if cfg.sequencer_private_key:
        return Account.from_key(cfg.sequencer_private_key)
    if cfg.mnemonic:
        Account.enable_unaudited_hdwallet_features()
        return Account.from_mnemonic(cfg.mnemonic, account_path=cfg.hd_path)
    raise ValueError("Must pass one of SEQUENCER_PRIVATE_KEY or MNEMONIC")


class Web3Signer:
    """Signs locally and broadcasts raw transactions through AsyncWeb3."""

    def __init__(self, w3: AsyncWeb3, account: LocalAccount) -> None:
        self._w3 = w3
        self._account = account
        self._address = AsyncWeb3.to_checksum_address(account.address)
        self._chain_id: int | None = None

    @classmethod
    def from_config(cls, cfg: SubmitterConfig) -> Web3Signer:
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(cfg.l1_rpc_url))
        return cls(w3, account_from_config(cfg))

    @property
    def address(self) -> str:
        return self._address

    async def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self._w3.eth.chain_id
        return self._chain_id

    async def get_transaction_count(self, block_identifier: str = "latest") -> int:
        return await self._w3.eth.get_transaction_count(self._address, block_identifier)

    async def send_transaction(self, tx: dict) -> TxAttempt:
        params = await self._populate(tx)
        signed = self._account.sign_transaction(params)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        hex_hash = AsyncWeb3.to_hex(tx_hash)
        log.debug("Broadcast %s (nonce %d)", hex_hash, params["nonce"])
        return TxAttempt(tx_hash=hex_hash, nonce=params["nonce"], params=params)

    async def get_receipt(self, tx_hash: str) -> Receipt | None:
        try:
            raw = await self._w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        if raw is None or raw.get("blockNumber") is None:
            return None
        return Receipt(
            tx_hash=AsyncWeb3.to_hex(raw["transactionHash"]),
            block_number=raw["blockNumber"],
            status=raw.get("status", 1),
            gas_used=raw.get("gasUsed"),
        )

    async def get_block_number(self) -> int:
        return await self._w3.eth.block_number

    async def get_balance(self) -> int:
        return await self._w3.eth.get_balance(self._address)

    async def _populate(self, tx: dict) -> dict:
        """Fill in the fields needed to sign: chain id, nonce, gas and fee."""
        params = dict(tx)
        params.setdefault("from", self._address)
        params.setdefault("value", 0)
        if "to" in params:
            params["to"] = AsyncWeb3.to_checksum_address(params["to"])
        if "chainId" not in params:
            params["chainId"] = await self.chain_id()
        if params.get("nonce") is None:
            params["nonce"] = await self.get_transaction_count("pending")
        if "gas" not in params:
            params["gas"] = await self._w3.eth.estimate_gas(params)
        if "gasPrice" not in params and "maxFeePerGas" not in params:
            params["gasPrice"] = await self._w3.eth.gas_price
        return params
