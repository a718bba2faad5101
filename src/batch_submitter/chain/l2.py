"""L2 node JSON-RPC client over httpx."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

log = logging.getLogger(__name__)


class L2RpcError(Exception):
    """The L2 node returned an error or an unusable response."""


class L2RpcClient:
    """Minimal JSON-RPC 2.0 client for the L2 node.

    Only the calls the process driver needs live here; submitters are free
    to use a full provider of their own.
    """

    def __init__(self, rpc_url: str, timeout: float = 10.0) -> None:
        self._url = rpc_url
        self._timeout = timeout
        self._ids = itertools.count(1)

    async def call(self, method: str, params: list | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        log.debug("L2 %s -> %s", method, self._url)
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=5)) as client:
                resp = await client.post(self._url, json=payload)
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise L2RpcError(f"{method}: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise L2RpcError(f"{method}: {exc}") from exc
        except ValueError as exc:
            raise L2RpcError(f"{method}: invalid JSON response") from exc

        if "error" in body and body["error"]:
            err = body["error"]
            raise L2RpcError(f"{method}: {err.get('message', err)} (code {err.get('code')})")
        if "result" not in body:
            raise L2RpcError(f"{method}: response has no result")
        return body["result"]

    async def chain_id(self) -> int:
        result = await self.call("eth_chainId")
        try:
            return int(result, 16) if isinstance(result, str) else int(result)
        except (TypeError, ValueError) as exc:
            raise L2RpcError(f"eth_chainId: unexpected result {result!r}") from exc
