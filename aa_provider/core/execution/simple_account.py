"""
Local-key wallet delegate for an EntryPoint v0.6 SimpleAccount.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import to_bytes, to_checksum_address

from ...config import settings
from ..errors import EntryPointNotDeployedError, PipelineStage
from .calldata import (
    build_entrypoint_get_nonce_call,
    build_execute_batch_call_data,
    build_execute_call_data,
    build_init_code,
    get_user_operation_hash,
    selector_from_signature,
)
from .userop import UserOperation, UserOperationCalldata, from_rpc_quantity

if TYPE_CHECKING:
    from ...providers.paymaster import PaymasterProvider
    from ...providers.rpc import ExecutionRpcProvider

logger = logging.getLogger(__name__)

# r || s || v with s in the lower half of the curve order
DUMMY_SIGNATURE = "0x" + "f" * 31 + "0" * 33 + "7" + "a" * 63 + "1c"

FACTORY_GET_ADDRESS_SIGNATURE = "getAddress(address,uint256)"


def _signature_hex(signature: bytes) -> str:
    return "0x" + bytes(signature).hex()


class SimpleAccountDelegate:
    """
    WalletDelegate for a SimpleAccount owned by a local ``LocalAccount`` key.

    The account address is either given or derived from the factory's
    ``getAddress(owner, salt)``. Paymaster data comes from an optional
    ``PaymasterProvider``; without one the account pays its own gas.
    """

    def __init__(
        self,
        owner: LocalAccount,
        rpc: "ExecutionRpcProvider",
        *,
        address: Optional[str] = None,
        entry_point: Optional[str] = None,
        factory: Optional[str] = None,
        salt: int = 0,
        nonce_key: int = 0,
        paymaster: Optional["PaymasterProvider"] = None,
        paymaster_context: Optional[dict] = None,
    ) -> None:
        if address is None and factory is None:
            raise ValueError("SimpleAccountDelegate needs an account address or a factory")

        self.owner = owner
        self.rpc = rpc
        self.entry_point = entry_point or settings.erc4337_entrypoint_address
        if not self.entry_point:
            raise ValueError("SimpleAccountDelegate needs an EntryPoint address")
        self.factory = factory
        self.salt = salt
        self.nonce_key = nonce_key
        self.paymaster = paymaster
        self.paymaster_context = paymaster_context
        self._address = to_checksum_address(address) if address else None
        self._chain_id: Optional[int] = None

    async def get_address(self) -> str:
        if self._address is None:
            data = (
                selector_from_signature(FACTORY_GET_ADDRESS_SIGNATURE)
                + self.owner.address[2:].lower().rjust(64, "0")
                + hex(self.salt)[2:].rjust(64, "0")
            )
            result = await self.rpc.call({"to": self.factory, "data": data})
            self._address = to_checksum_address("0x" + result[-40:])
            logger.debug(f"Derived SimpleAccount address {self._address} from factory {self.factory}")
        return self._address

    async def get_init_code(self) -> str:
        if self.factory is None:
            return "0x"
        return build_init_code(self.factory, self.owner.address, self.salt)

    async def get_nonce(self) -> int:
        sender = await self.get_address()
        result = await self.rpc.call(
            {"to": self.entry_point, "data": build_entrypoint_get_nonce_call(sender, self.nonce_key)}
        )
        if not result or result == "0x":
            raise EntryPointNotDeployedError(
                self.entry_point,
                stage=PipelineStage.POPULATE,
                operation="delegate.getNonce",
            )
        return from_rpc_quantity(result)

    async def encode_calldata(self, call: UserOperationCalldata) -> str:
        return build_execute_call_data(call.to, call.value or 0, call.data or "0x")

    async def encode_batch_calldata(self, calls: List[UserOperationCalldata]) -> str:
        return build_execute_batch_call_data(calls)

    async def get_paymaster_and_data(self, user_op: UserOperation) -> str:
        if self.paymaster is None:
            return "0x"
        return await self.paymaster.sponsor_user_operation(
            user_op,
            self.entry_point,
            context=self.paymaster_context,
        )

    async def get_paymaster_and_data_for_estimate_gas(self, user_op: UserOperation) -> str:
        return "0x"

    async def get_signature_for_estimate_gas(self, user_op: UserOperation) -> str:
        return DUMMY_SIGNATURE

    async def get_user_op_hash(self, user_op: UserOperation) -> str:
        if self._chain_id is None:
            self._chain_id = await self.rpc.chain_id()
        return get_user_operation_hash(user_op, self.entry_point, self._chain_id)

    async def sign_user_op(self, user_op: UserOperation) -> str:
        user_op_hash = await self.get_user_op_hash(user_op)
        signed = self.owner.sign_message(encode_defunct(hexstr=user_op_hash))
        return _signature_hex(signed.signature)

    async def sign_eip1271_message(self, message_hash: str) -> str:
        signed = self.owner.unsafe_sign_hash(to_bytes(hexstr=message_hash))
        return _signature_hex(signed.signature)
