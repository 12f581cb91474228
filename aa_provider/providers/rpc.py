"""
Execution-layer JSON-RPC provider.

Covers the handful of standard methods the UserOperation pipeline needs:
account code, fee-market data, logs, receipts and read-only calls, plus
a polling log subscription built on ``eth_newFilter``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .base import JsonRpcProvider, RpcError
from ..config import settings
from ..core.execution.userop import FeeData

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_FEE_WEI = 1_000_000_000  # 1 gwei

LogCallback = Callable[[Dict[str, Any]], Awaitable[None]]
ErrorCallback = Callable[[BaseException], None]


class LogSubscription:
    """
    Delivers logs matching a filter to a callback until cancelled.

    Polls ``eth_getFilterChanges`` on an installed filter; the filter is
    uninstalled when the subscription stops for any reason.
    """

    def __init__(
        self,
        rpc: "ExecutionRpcProvider",
        log_filter: Dict[str, Any],
        callback: LogCallback,
        *,
        poll_interval: float,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._rpc = rpc
        self._filter = log_filter
        self._callback = callback
        self._on_error = on_error
        self._poll_interval = poll_interval
        self._task: Optional[asyncio.Task] = None
        self._installed = asyncio.Event()
        self.filter_id: Optional[str] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "LogSubscription":
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        return self

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_installed(self) -> None:
        """
        Return once the filter is installed on the node.

        Logs from blocks mined after this point are delivered. Returns early
        if the subscription stopped without installing its filter.
        """
        if self._installed.is_set() or self._task is None:
            return
        installed = asyncio.ensure_future(self._installed.wait())
        try:
            await asyncio.wait({installed, self._task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            installed.cancel()

    async def _run(self) -> None:
        try:
            self.filter_id = await self._rpc.send("eth_newFilter", [self._filter])
            self._installed.set()
            while True:
                await asyncio.sleep(self._poll_interval)
                changes = await self._rpc.send("eth_getFilterChanges", [self.filter_id])
                for log in changes or []:
                    await self._callback(log)
        except (RpcError, httpx.HTTPError) as exc:
            logger.warning(f"Log subscription failed: {exc}")
            if self._on_error is not None:
                self._on_error(exc)
        except Exception as exc:
            logger.exception(f"Log subscription callback failed: {exc}")
            if self._on_error is not None:
                self._on_error(exc)
        finally:
            if self.filter_id is not None:
                await self._uninstall()

    async def _uninstall(self) -> None:
        try:
            await self._rpc.send("eth_uninstallFilter", [self.filter_id])
        except (RpcError, httpx.HTTPError) as exc:
            logger.warning(f"Failed to uninstall log filter {self.filter_id}: {exc}")


class ExecutionRpcProvider(JsonRpcProvider):
    name = "rpc"

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> None:
        super().__init__(
            rpc_url if rpc_url is not None else settings.erc4337_rpc_url,
            client=client,
            timeout_s=timeout_s if timeout_s is not None else settings.erc4337_request_timeout_seconds,
        )
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.erc4337_log_poll_interval_seconds
        )

    async def get_code(self, address: str, block: str = "latest") -> str:
        return await self._rpc_call("eth_getCode", [address, block]) or "0x"

    async def get_block_number(self) -> int:
        return int(await self._rpc_call("eth_blockNumber", []), 16)

    async def call(self, tx: Dict[str, Any], block: str = "latest") -> str:
        return await self._rpc_call("eth_call", [tx, block])

    async def get_fee_data(self) -> FeeData:
        """
        Current fee-market suggestion.

        maxPriorityFeePerGas is the median reward of the latest block (1 gwei
        when unavailable); maxFeePerGas leaves room for the base fee to double.
        """
        gas_price = int(await self._rpc_call("eth_gasPrice", []), 16)

        fee_history = await self._rpc_call("eth_feeHistory", [1, "latest", [50]])
        base_fees = (fee_history or {}).get("baseFeePerGas") or []
        if not base_fees:
            return FeeData(gas_price=gas_price)

        base_fee = int(base_fees[-1], 16)
        rewards = fee_history.get("reward") or []
        if rewards and rewards[0]:
            priority_fee = int(rewards[0][0], 16)
        else:
            priority_fee = DEFAULT_PRIORITY_FEE_WEI

        return FeeData(
            gas_price=gas_price,
            max_fee_per_gas=base_fee * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    async def get_logs(self, log_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self._rpc_call("eth_getLogs", [log_filter]) or []

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self._rpc_call("eth_getTransactionReceipt", [tx_hash])

    def subscribe_logs(
        self,
        log_filter: Dict[str, Any],
        callback: LogCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> LogSubscription:
        """Start delivering future logs matching ``log_filter`` to ``callback``."""
        return LogSubscription(
            self,
            log_filter,
            callback,
            poll_interval=self.poll_interval,
            on_error=on_error,
        ).start()
