"""
Signing and dispatch of UserOperations to the bundler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional

from ..errors import AlreadySignedError, InvalidRequestError, NotSignedError, PipelineStage
from .delegate import WalletDelegate
from .entry_points import EntryPointRegistry, select_entry_point
from .settlement import SettlementTracker
from .userop import UserOperation, UserOpReceipt

if TYPE_CHECKING:
    from ...providers.bundler import BundlerProvider
    from ...providers.rpc import ExecutionRpcProvider

logger = logging.getLogger(__name__)

SIGN_OPERATION = "signer.signUserOperation"
SEND_OPERATION = "signer.sendUserOperation"


@dataclass
class PendingUserOperation:
    """
    A UserOperation accepted by the bundler but not yet settled.

    ``user_op_hash`` is the bundler's identifier for the operation. It is not
    an execution-layer transaction hash; that only becomes known once the
    operation settles and is reported on the receipt.
    """
    user_op_hash: str
    sender: str
    nonce: int
    entry_point: str
    user_operation: UserOperation
    rpc: "ExecutionRpcProvider" = field(repr=False)
    timeout: Optional[float] = None
    on_settled: List[Callable[[UserOpReceipt], None]] = field(default_factory=list, repr=False)

    def track(self, timeout: Optional[float] = None) -> SettlementTracker:
        """Start a fresh settlement tracking attempt for this operation."""
        return SettlementTracker(
            self.rpc,
            user_op_hash=self.user_op_hash,
            sender=self.sender,
            entry_point=self.entry_point,
            nonce=self.nonce,
            timeout=timeout if timeout is not None else self.timeout,
        ).start()

    async def wait(self, timeout: Optional[float] = None) -> UserOpReceipt:
        receipt = await self.track(timeout).result()
        for callback in self.on_settled:
            callback(receipt)
        return receipt


class Submitter:
    """Signs a populated UserOperation exactly once and hands it to the bundler."""

    def __init__(
        self,
        bundler: "BundlerProvider",
        rpc: "ExecutionRpcProvider",
        delegate: WalletDelegate,
        registry: EntryPointRegistry,
        settlement_timeout: Optional[float] = None,
    ) -> None:
        self.bundler = bundler
        self.rpc = rpc
        self.delegate = delegate
        self.registry = registry
        self.settlement_timeout = settlement_timeout

    async def sign(self, user_op: UserOperation) -> str:
        if user_op.is_signed:
            raise AlreadySignedError(
                "passed UserOperation already signed",
                stage=PipelineStage.SIGN,
                operation=SIGN_OPERATION,
            )
        if not user_op.has_gas_limits:
            raise InvalidRequestError(
                "UserOperation gas limits must be estimated before signing",
                stage=PipelineStage.SIGN,
                operation=SIGN_OPERATION,
            )

        signature = await self.delegate.sign_user_op(user_op)
        user_op.sign(signature, operation=SIGN_OPERATION)
        return user_op.signature

    async def submit(
        self,
        user_op: UserOperation,
        entry_point: Optional[str] = None,
    ) -> PendingUserOperation:
        """Dispatch an already signed UserOperation."""
        if not user_op.is_signed:
            raise NotSignedError(
                "passed UserOperation is not signed",
                stage=PipelineStage.SEND,
                operation=SEND_OPERATION,
            )

        entry_point = await select_entry_point(
            self.registry,
            entry_point,
            stage=PipelineStage.SEND,
            operation=SEND_OPERATION,
        )
        user_op_hash = await self.bundler.send_user_operation(user_op, entry_point)
        logger.info(
            f"UserOperation submitted: hash={user_op_hash}, sender={user_op.sender}, "
            f"nonce={user_op.nonce}, entryPoint={entry_point}"
        )
        return PendingUserOperation(
            user_op_hash=user_op_hash,
            sender=user_op.sender,
            nonce=user_op.nonce,
            entry_point=entry_point,
            user_operation=user_op,
            rpc=self.rpc,
            timeout=self.settlement_timeout,
        )

    async def send(
        self,
        user_op: UserOperation,
        entry_point: Optional[str] = None,
    ) -> PendingUserOperation:
        """Sign ``user_op`` and dispatch it to the bundler."""
        if user_op.is_signed:
            raise AlreadySignedError(
                "passed UserOperation already signed",
                stage=PipelineStage.SEND,
                operation=SEND_OPERATION,
            )

        # EntryPoint is resolved before the single signing step
        entry_point = await select_entry_point(
            self.registry,
            entry_point,
            stage=PipelineStage.SEND,
            operation=SEND_OPERATION,
        )
        await self.sign(user_op)
        return await self.submit(user_op, entry_point)
