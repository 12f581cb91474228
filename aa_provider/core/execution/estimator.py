"""
Bundler-backed gas estimation for UserOperations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from ...config import settings
from ..errors import AlreadySignedError, PipelineStage
from .delegate import WalletDelegate
from .entry_points import EntryPointRegistry, select_entry_point
from .userop import UserOperation, UserOpGasEstimate, to_rpc_bytes

if TYPE_CHECKING:
    from ...providers.bundler import BundlerProvider

logger = logging.getLogger(__name__)

ESTIMATE_OPERATION = "provider.estimateUserOperationGas"


class Estimator:
    """
    Fills the gas-limit fields of a UserOperation via eth_estimateUserOperationGas.

    The bundler receives a draft copy carrying placeholder gas limits,
    placeholder paymaster data and a placeholder signature from the
    delegate. Only the estimated gas limits are written back to the caller's
    operation; its signature and paymaster data are left untouched.
    """

    def __init__(
        self,
        bundler: "BundlerProvider",
        delegate: WalletDelegate,
        registry: EntryPointRegistry,
        *,
        call_gas_limit: Optional[int] = None,
        verification_gas_limit: Optional[int] = None,
        pre_verification_gas: Optional[int] = None,
    ) -> None:
        self.bundler = bundler
        self.delegate = delegate
        self.registry = registry
        self.call_gas_limit = call_gas_limit or settings.erc4337_estimate_call_gas_limit
        self.verification_gas_limit = (
            verification_gas_limit or settings.erc4337_estimate_verification_gas_limit
        )
        self.pre_verification_gas = pre_verification_gas or settings.erc4337_estimate_pre_verification_gas

    async def build_draft(self, user_op: UserOperation) -> UserOperation:
        """Copy of ``user_op`` that is well-formed enough to be estimated."""
        draft = user_op.copy(
            call_gas_limit=self.call_gas_limit,
            verification_gas_limit=self.verification_gas_limit,
            pre_verification_gas=self.pre_verification_gas,
            signature=None,
        )
        if draft.paymaster_and_data is None:
            draft.paymaster_and_data = to_rpc_bytes(
                await self.delegate.get_paymaster_and_data_for_estimate_gas(draft)
            )
        draft.signature = to_rpc_bytes(await self.delegate.get_signature_for_estimate_gas(draft))
        return draft

    async def estimate(
        self,
        user_op: UserOperation,
        entry_point: Optional[str] = None,
    ) -> UserOpGasEstimate:
        if user_op.is_signed:
            # Gas limits are part of the signed payload
            raise AlreadySignedError(
                "cannot estimate gas for a signed UserOperation",
                stage=PipelineStage.ESTIMATE,
                operation=ESTIMATE_OPERATION,
            )

        entry_point = await select_entry_point(
            self.registry,
            entry_point,
            stage=PipelineStage.ESTIMATE,
            operation=ESTIMATE_OPERATION,
            require_unique=True,
        )

        draft = await self.build_draft(user_op)
        estimate = await self.bundler.estimate_user_operation_gas(draft, entry_point)
        user_op.apply_gas_estimate(estimate)

        logger.info(
            f"UserOperation gas estimated: callGasLimit={estimate.call_gas_limit}, "
            f"verificationGasLimit={estimate.verification_gas_limit}, "
            f"preVerificationGas={estimate.pre_verification_gas}"
        )
        return estimate
