"""
ERC-4337 Bundler Provider.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from .base import JsonRpcProvider, RpcError
from ..config import settings
from ..core.execution.userop import UserOperation, UserOpGasEstimate, UserOpReceipt


class BundlerError(RpcError):
    """Bundler provider error."""
    pass


class BundlerProvider(JsonRpcProvider):
    name = "bundler"
    error_class = BundlerError

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        super().__init__(
            rpc_url if rpc_url is not None else settings.erc4337_bundler_url,
            client=client,
            timeout_s=timeout_s if timeout_s is not None else settings.erc4337_request_timeout_seconds,
        )

    async def estimate_user_operation_gas(
        self,
        user_op: UserOperation,
        entry_point: str,
    ) -> UserOpGasEstimate:
        result = await self._rpc_call(
            "eth_estimateUserOperationGas",
            [user_op.to_rpc_dict(), entry_point],
        )
        if not isinstance(result, dict):
            raise BundlerError("Invalid bundler response for eth_estimateUserOperationGas")
        return UserOpGasEstimate.from_rpc(result)

    async def supported_entry_points(self) -> List[str]:
        result = await self._rpc_call("eth_supportedEntryPoints", [])
        if not isinstance(result, list):
            raise BundlerError("Invalid bundler response for eth_supportedEntryPoints")
        return [str(entry_point) for entry_point in result]

    async def send_user_operation(
        self,
        user_op: UserOperation,
        entry_point: str,
    ) -> str:
        result = await self._rpc_call(
            "eth_sendUserOperation",
            [user_op.to_rpc_dict(), entry_point],
        )
        if not isinstance(result, str):
            raise BundlerError("Invalid bundler response for eth_sendUserOperation")
        return result

    async def get_user_operation_by_hash(self, user_op_hash: str) -> Optional[Dict[str, Any]]:
        result = await self._rpc_call("eth_getUserOperationByHash", [user_op_hash])
        if result is None:
            return None
        if not isinstance(result, dict):
            raise BundlerError("Invalid bundler response for eth_getUserOperationByHash")
        return result

    async def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOpReceipt]:
        result = await self._rpc_call("eth_getUserOperationReceipt", [user_op_hash])
        if not result:
            return None
        if not isinstance(result, dict):
            raise BundlerError("Invalid bundler response for eth_getUserOperationReceipt")

        receipt = UserOpReceipt.from_bundler_receipt(result)
        receipt.user_op_hash = receipt.user_op_hash or user_op_hash
        return receipt
