"""
Settlement tracking for submitted UserOperations.

The bundler only hands back a UserOperation hash. Settlement is observed
on the execution layer as an EntryPoint ``UserOperationEvent`` indexed by
that hash. Three producers race to decide the outcome of one tracked
operation:

- a live log subscription, installed first,
- a one-off historical ``eth_getLogs`` query run once the filter is live
  (settlement may already have happened before tracking began),
- a timeout timer.

The two log sources overlap, so one event may be reported twice; only the
first matching observation is used. The first terminal outcome wins;
every later producer finds the tracker no longer ``WAITING`` and does
nothing. Reaching a terminal state releases the timer, the historical
query task and the log subscription.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from eth_abi.exceptions import DecodingError

from ...config import settings
from ..errors import ExecutionFailureError, SettlementTimeoutError
from .events import (
    UserOperationEvent,
    decode_revert_reason_event,
    decode_user_operation_event,
    revert_reason_filter,
    same_hash,
    user_operation_event_filter,
)
from .userop import UserOpReceipt, from_rpc_quantity

if TYPE_CHECKING:
    from ...providers.rpc import ExecutionRpcProvider, LogSubscription

logger = logging.getLogger(__name__)

SETTLE_OPERATION = "provider.waitForUserOperation"
GENERIC_REVERT_REASON = "UserOperation execution reverted"


class SettlementState(str, Enum):
    """Settlement tracker lifecycle."""
    IDLE = "idle"            # Created, not started
    WAITING = "waiting"      # Timer armed, looking for the event
    RESOLVED = "resolved"    # Settled successfully
    FAILED = "failed"        # Settled with a revert, or tracking failed
    TIMED_OUT = "timed_out"  # No event within the timeout


TERMINAL_STATES = {SettlementState.RESOLVED, SettlementState.FAILED, SettlementState.TIMED_OUT}


class SettlementTracker:
    """
    Waits for one UserOperation to settle.

    Usage:
        tracker = SettlementTracker(rpc, user_op_hash, sender, entry_point).start()
        receipt = await tracker.result()

    ``result()`` raises ``ExecutionFailureError`` when the operation settled
    but reverted and ``SettlementTimeoutError`` when nothing was observed in
    time. A caller that stops awaiting does not cancel the tracker; it still
    releases its resources when it reaches a terminal state.
    """

    def __init__(
        self,
        rpc: "ExecutionRpcProvider",
        user_op_hash: str,
        sender: str,
        entry_point: str,
        nonce: Optional[int] = None,
        timeout: Optional[float] = None,
        lookback_blocks: Optional[int] = None,
    ) -> None:
        self.rpc = rpc
        self.user_op_hash = user_op_hash
        self.sender = sender
        self.entry_point = entry_point
        self.nonce = nonce
        self.timeout = timeout if timeout is not None else settings.erc4337_settlement_timeout_seconds
        self.lookback_blocks = (
            lookback_blocks if lookback_blocks is not None else settings.erc4337_settlement_lookback_blocks
        )

        self.state = SettlementState.IDLE
        self.receipt: Optional[UserOpReceipt] = None
        self.error: Optional[BaseException] = None

        self._future: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._query_task: Optional[asyncio.Task] = None
        self._subscription: Optional["LogSubscription"] = None
        self._observed = False

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def subscription(self) -> Optional["LogSubscription"]:
        return self._subscription

    def start(self) -> "SettlementTracker":
        if self.state is not SettlementState.IDLE:
            return self

        loop = asyncio.get_running_loop()
        self._future = loop.create_future()
        self._future.add_done_callback(_mark_retrieved)
        self.state = SettlementState.WAITING
        self._timer = loop.call_later(self.timeout, self._expire)
        self._query_task = asyncio.create_task(self._run())
        logger.debug(f"Tracking UserOperation {self.user_op_hash} (timeout={self.timeout}s)")
        return self

    async def result(self) -> UserOpReceipt:
        if self._future is None:
            self.start()
        # Shielded so a cancelled waiter leaves the tracker running to its own end
        return await asyncio.shield(self._future)

    def __await__(self):
        return self.result().__await__()

    async def _run(self) -> None:
        try:
            # Filter is live before the historical query so the two windows overlap
            self._subscription = self.rpc.subscribe_logs(
                user_operation_event_filter(self.entry_point, self.user_op_hash),
                self._on_log,
                on_error=self._on_error,
            )
            await self._subscription.wait_installed()
            if self.state is not SettlementState.WAITING:
                return

            from_block = None
            if self.lookback_blocks:
                latest = await self.rpc.get_block_number()
                from_block = max(0, latest - self.lookback_blocks)

            logs = await self.rpc.get_logs(
                user_operation_event_filter(self.entry_point, self.user_op_hash, from_block=from_block)
            )
            for log in logs:
                await self._on_log(log)
                if self.state is not SettlementState.WAITING:
                    return
        except Exception as exc:
            self._on_error(exc)

    async def _on_log(self, log: Dict[str, Any]) -> None:
        if self.state is not SettlementState.WAITING or self._observed:
            return

        try:
            event = decode_user_operation_event(log)
        except (DecodingError, ValueError) as exc:
            logger.warning(f"Ignoring undecodable EntryPoint log for {self.user_op_hash}: {exc}")
            return
        if event is None or not same_hash(event.user_op_hash, self.user_op_hash):
            logger.debug(f"Ignoring EntryPoint log not matching {self.user_op_hash}")
            return

        # Commit to the first matching observation
        self._observed = True
        if self.nonce is not None and event.nonce != self.nonce:
            logger.warning(
                f"UserOperation {self.user_op_hash} settled with nonce {event.nonce}, expected {self.nonce}"
            )

        receipt = None
        if event.transaction_hash:
            receipt = await self.rpc.get_transaction_receipt(event.transaction_hash)
        if self.state is not SettlementState.WAITING:
            return

        if event.success:
            self._finish(SettlementState.RESOLVED, result=self._build_receipt(event, receipt))
            return

        reason = await self._find_revert_reason(event, receipt)
        if self.state is not SettlementState.WAITING:
            return
        self._finish(
            SettlementState.FAILED,
            error=ExecutionFailureError(
                self.user_op_hash,
                reason or GENERIC_REVERT_REASON,
                transaction_hash=event.transaction_hash,
                receipt=receipt,
                operation=SETTLE_OPERATION,
            ),
        )

    async def _find_revert_reason(
        self,
        event: UserOperationEvent,
        receipt: Optional[Dict[str, Any]],
    ) -> Optional[str]:
        block_number = from_rpc_quantity((receipt or {}).get("blockNumber"))
        if block_number is None:
            block_number = event.block_number
        if block_number is None:
            return None

        logs = await self.rpc.get_logs(
            revert_reason_filter(self.entry_point, self.user_op_hash, self.sender, block_number)
        )
        for log in logs:
            try:
                revert = decode_revert_reason_event(log)
            except (DecodingError, ValueError):
                continue
            if revert is not None and same_hash(revert.user_op_hash, self.user_op_hash):
                return revert.message
        return None

    def _build_receipt(
        self,
        event: UserOperationEvent,
        receipt: Optional[Dict[str, Any]],
    ) -> UserOpReceipt:
        receipt = receipt or {}
        return UserOpReceipt(
            user_op_hash=self.user_op_hash,
            success=event.success,
            sender=event.sender,
            nonce=event.nonce,
            entry_point=self.entry_point,
            transaction_hash=event.transaction_hash,
            block_number=from_rpc_quantity(receipt.get("blockNumber")) or event.block_number,
            block_hash=receipt.get("blockHash") or event.block_hash,
            gas_used=from_rpc_quantity(receipt.get("gasUsed")),
            actual_gas_cost=event.actual_gas_cost,
            actual_gas_used=event.actual_gas_used,
            receipt=receipt or None,
        )

    def _expire(self) -> None:
        self._finish(
            SettlementState.TIMED_OUT,
            error=SettlementTimeoutError(self.user_op_hash, self.timeout, operation=SETTLE_OPERATION),
        )

    def _on_error(self, exc: BaseException) -> None:
        self._finish(SettlementState.FAILED, error=exc)

    def _finish(
        self,
        state: SettlementState,
        result: Optional[UserOpReceipt] = None,
        error: Optional[BaseException] = None,
    ) -> bool:
        """Single-assignment transition out of WAITING. Returns False if already terminal."""
        if self.state is not SettlementState.WAITING:
            return False

        self.state = state
        self.receipt = result
        self.error = error
        self._detach()

        if error is not None:
            logger.warning(f"UserOperation {self.user_op_hash} {state.value}: {error}")
            self._future.set_exception(error)
        else:
            logger.info(
                f"UserOperation settled: hash={self.user_op_hash}, tx={result.transaction_hash}, "
                f"block={result.block_number}"
            )
            self._future.set_result(result)
        return True

    def _detach(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._subscription is not None:
            self._subscription.cancel()

        task = self._query_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()


def _mark_retrieved(future: asyncio.Future) -> None:
    # Outcome may be consumed by nobody if the caller dropped interest
    if not future.cancelled():
        future.exception()
