"""
UserOperation population from plain transaction requests.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from eth_utils import is_hex_address, to_checksum_address

from ..errors import AddressMismatchError, InvalidRequestError, PipelineStage
from .delegate import WalletDelegate
from .fees import resolve_fees
from .userop import TransactionRequest, UserOperation, UserOperationCalldata

if TYPE_CHECKING:
    from ...providers.rpc import ExecutionRpcProvider
    from .estimator import Estimator

logger = logging.getLogger(__name__)

NameResolver = Callable[[str], Awaitable[Optional[str]]]

POPULATE_OPERATION = "signer.populateUserOperation"


class UserOperationBuilder:
    """
    Turns a ``TransactionRequest`` into a complete, unsigned UserOperation.

    Steps run strictly in sequence since each depends on the previous one:
    calldata, initCode, nonce, fees, gas estimation, paymaster data.
    """

    def __init__(
        self,
        delegate: WalletDelegate,
        rpc: "ExecutionRpcProvider",
        estimator: "Estimator",
        name_resolver: Optional[NameResolver] = None,
    ) -> None:
        self.delegate = delegate
        self.rpc = rpc
        self.estimator = estimator
        self.name_resolver = name_resolver
        self._is_code_deployed: Optional[bool] = None

    async def resolve_address(self, address: str) -> str:
        if is_hex_address(address):
            return to_checksum_address(address)

        if self.name_resolver is None:
            raise InvalidRequestError(
                f"cannot resolve name {address!r} without a name resolver",
                stage=PipelineStage.POPULATE,
                operation="resolveName",
            )
        resolved = await self.name_resolver(address)
        if not resolved:
            raise InvalidRequestError(
                f"unconfigured name {address!r}",
                stage=PipelineStage.POPULATE,
                operation="resolveName",
            )
        return to_checksum_address(resolved)

    async def check_sender(self, tx: TransactionRequest) -> str:
        """Return the delegate address, failing if ``tx.from_address`` disagrees."""
        address = await self.delegate.get_address()
        if tx.from_address is not None:
            from_address = await self.resolve_address(tx.from_address)
            if from_address.lower() != address.lower():
                raise AddressMismatchError(
                    expected=address,
                    actual=from_address,
                    operation=POPULATE_OPERATION,
                )
        return address

    async def encode_calldata(self, tx: TransactionRequest) -> str:
        if tx.calls:
            calls = []
            for call in tx.calls:
                if not call.to:
                    raise InvalidRequestError(
                        "batch call has no destination",
                        stage=PipelineStage.POPULATE,
                        operation=POPULATE_OPERATION,
                    )
                calls.append(
                    UserOperationCalldata(
                        to=await self.resolve_address(call.to),
                        data=call.data,
                        value=call.value,
                    )
                )
            return await self.delegate.encode_batch_calldata(calls)

        if not tx.to:
            raise InvalidRequestError(
                "transaction request has no destination",
                stage=PipelineStage.POPULATE,
                operation=POPULATE_OPERATION,
            )
        to = await self.resolve_address(tx.to)
        return await self.delegate.encode_calldata(
            UserOperationCalldata(to=to, data=tx.data, value=tx.value)
        )

    async def is_code_deployed(self) -> bool:
        if self._is_code_deployed is None:
            address = await self.delegate.get_address()
            code = await self.rpc.get_code(address)
            self._is_code_deployed = code not in ("", "0x", None)
        return self._is_code_deployed

    def mark_deployed(self) -> None:
        self._is_code_deployed = True

    async def get_init_code(self) -> str:
        if await self.is_code_deployed():
            return "0x"
        return await self.delegate.get_init_code()

    async def populate(self, tx: TransactionRequest) -> UserOperation:
        sender = await self.check_sender(tx)
        call_data = await self.encode_calldata(tx)
        init_code = await self.get_init_code()
        nonce = await self.delegate.get_nonce()
        max_fee_per_gas, max_priority_fee_per_gas = await resolve_fees(tx, self.rpc.get_fee_data)

        user_op = UserOperation(
            sender=sender,
            nonce=nonce,
            init_code=init_code,
            call_data=call_data,
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=max_priority_fee_per_gas,
        )

        if not user_op.has_gas_limits:
            await self.estimator.estimate(user_op)

        # Paymasters may price sponsorship on the final gas and fee values
        user_op.paymaster_and_data = await self.delegate.get_paymaster_and_data(user_op)

        logger.info(
            f"UserOperation populated: sender={user_op.sender}, nonce={user_op.nonce}, "
            f"deployed={self._is_code_deployed}"
        )
        return user_op
