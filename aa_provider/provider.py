"""
ERC-4337 provider facade.

Bundles a bundler endpoint, an execution-layer endpoint and a wallet
delegate behind one object. The bundler's supported EntryPoints are
fetched once per provider and shared by every signer it hands out.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from .core.errors import AddressMismatchError, PipelineStage, UnsupportedOperationError
from .core.execution.delegate import WalletDelegate
from .core.execution.entry_points import EntryPointRegistry
from .core.execution.estimator import Estimator
from .core.execution.settlement import SettlementTracker
from .core.execution.signer import Erc4337Signer
from .core.execution.userop import TransactionRequest, UserOperation, UserOpGasEstimate, UserOpReceipt
from .core.execution.userop_builder import NameResolver
from .providers.bundler import BundlerProvider
from .providers.rpc import ExecutionRpcProvider

logger = logging.getLogger(__name__)


class Erc4337Provider:
    def __init__(
        self,
        bundler: BundlerProvider,
        rpc: ExecutionRpcProvider,
        delegate: WalletDelegate,
        *,
        name_resolver: Optional[NameResolver] = None,
        settlement_timeout: Optional[float] = None,
    ) -> None:
        self.bundler = bundler
        self.rpc = rpc
        self.delegate = delegate
        self.name_resolver = name_resolver
        self.settlement_timeout = settlement_timeout
        self.registry = EntryPointRegistry(bundler.supported_entry_points)
        self._estimator = Estimator(bundler, delegate, self.registry)
        self._signer: Optional[Erc4337Signer] = None

    @classmethod
    def from_urls(
        cls,
        bundler_url: str,
        rpc_url: str,
        delegate: WalletDelegate,
        **kwargs: Any,
    ) -> "Erc4337Provider":
        return cls(BundlerProvider(bundler_url), ExecutionRpcProvider(rpc_url), delegate, **kwargs)

    async def get_signer(self, address: Union[int, str, None] = None) -> Erc4337Signer:
        """
        The signer for the delegate's account.

        Only one account is controlled: ``address`` may be omitted, be the
        index ``0`` or be the delegate's address.
        """
        if isinstance(address, int):
            if address != 0:
                raise UnsupportedOperationError(
                    "ERC-4337 Signer only controls one address",
                    stage=PipelineStage.PROVIDER,
                    operation="provider.getSigner",
                    details={"address": address},
                )
        elif address is not None:
            signer_address = await self.delegate.get_address()
            if signer_address.lower() != address.lower():
                raise AddressMismatchError(
                    expected=signer_address,
                    actual=address,
                    stage=PipelineStage.PROVIDER,
                    operation="provider.getSigner",
                )

        if self._signer is None:
            logger.debug("Creating ERC-4337 signer for delegate account")
            self._signer = Erc4337Signer(
                self.bundler,
                self.rpc,
                self.delegate,
                self.registry,
                name_resolver=self.name_resolver,
                settlement_timeout=self.settlement_timeout,
            )
        return self._signer

    async def get_supported_entry_points(self) -> List[str]:
        return list(await self.registry.get())

    async def estimate_user_operation_gas(
        self,
        user_op: UserOperation,
        entry_point: Optional[str] = None,
    ) -> UserOpGasEstimate:
        return await self._estimator.estimate(user_op, entry_point)

    async def estimate_gas(self, tx: TransactionRequest) -> int:
        raise UnsupportedOperationError(
            "cannot estimate ERC-4337 UserOp gas without signer",
            stage=PipelineStage.ESTIMATE,
            operation="provider.estimateGas",
        )

    async def get_user_operation(self, user_op_hash: str) -> Optional[Dict[str, Any]]:
        return await self.bundler.get_user_operation_by_hash(user_op_hash)

    async def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOpReceipt]:
        return await self.bundler.get_user_operation_receipt(user_op_hash)

    def track_user_operation(
        self,
        user_op_hash: str,
        sender: str,
        entry_point: str,
        *,
        nonce: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SettlementTracker:
        return SettlementTracker(
            self.rpc,
            user_op_hash=user_op_hash,
            sender=sender,
            entry_point=entry_point,
            nonce=nonce,
            timeout=timeout if timeout is not None else self.settlement_timeout,
        ).start()

    async def wait_for_user_operation(
        self,
        user_op_hash: str,
        sender: str,
        entry_point: str,
        *,
        nonce: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> UserOpReceipt:
        tracker = self.track_user_operation(
            user_op_hash, sender, entry_point, nonce=nonce, timeout=timeout
        )
        return await tracker.result()

    async def send(self, method: str, params: list[Any]) -> Any:
        """Raw JSON-RPC passthrough to the bundler."""
        return await self.bundler.send(method, params)

    async def close(self) -> None:
        await self.bundler.close()
        await self.rpc.close()
