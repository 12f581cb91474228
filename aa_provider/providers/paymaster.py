"""
ERC-4337 Paymaster Provider.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .base import JsonRpcProvider, RpcError
from ..config import settings
from ..core.execution.userop import UserOperation


class PaymasterError(RpcError):
    """Paymaster provider error."""
    pass


class PaymasterProvider(JsonRpcProvider):
    name = "paymaster"
    error_class = PaymasterError

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        rpc_method: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        super().__init__(
            rpc_url if rpc_url is not None else settings.erc4337_paymaster_url,
            client=client,
            timeout_s=timeout_s if timeout_s is not None else settings.erc4337_request_timeout_seconds,
        )
        self.rpc_method = rpc_method or settings.erc4337_paymaster_rpc_method

    async def sponsor_user_operation(
        self,
        user_op: UserOperation,
        entry_point: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        params: list[Any] = [user_op.to_rpc_dict(), entry_point]
        if context:
            params.append(context)
        result = await self._rpc_call(self.rpc_method, params)
        if isinstance(result, dict):
            paymaster_and_data = result.get("paymasterAndData") or result.get("paymaster_and_data")
            if paymaster_and_data:
                return paymaster_and_data
        if isinstance(result, str):
            return result
        raise PaymasterError("Invalid paymaster response")
