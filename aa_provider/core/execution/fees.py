"""
Fee field resolution for UserOperations.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Tuple

from ..errors import InvalidRequestError, PipelineStage
from .userop import FeeData, TransactionRequest

FeeDataFetcher = Callable[[], Awaitable[FeeData]]


async def resolve_fees(
    tx: TransactionRequest,
    fetch_fee_data: FeeDataFetcher,
) -> Tuple[int, int]:
    """
    Return ``(max_fee_per_gas, max_priority_fee_per_gas)`` for a request.

    Explicit EIP-1559 fees win, then a legacy ``gas_price`` (used for both
    fields), and only then the network's fee-market suggestion. The network
    is not queried unless needed.
    """
    if tx.max_fee_per_gas is not None and tx.max_priority_fee_per_gas is not None:
        return int(tx.max_fee_per_gas), int(tx.max_priority_fee_per_gas)

    if tx.gas_price is not None:
        return int(tx.gas_price), int(tx.gas_price)

    fee_data = await fetch_fee_data()
    if fee_data.max_fee_per_gas is None or fee_data.max_priority_fee_per_gas is None:
        raise InvalidRequestError(
            "network does not report EIP-1559 fee data; pass maxFeePerGas/maxPriorityFeePerGas or gasPrice",
            stage=PipelineStage.POPULATE,
            operation="signer.populateUserOperation",
        )
    return fee_data.max_fee_per_gas, fee_data.max_priority_fee_per_gas
