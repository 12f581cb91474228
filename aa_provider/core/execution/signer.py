"""
Signer over the UserOperation pipeline.

``Erc4337Signer`` exposes the familiar signer surface (address, message
signing, send transaction) for a smart account. Plain transactions are
never signed; they are turned into UserOperations, signed by the wallet
delegate and relayed through the bundler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from eth_account.messages import SignableMessage, encode_defunct, encode_typed_data
from eth_utils import keccak

from ..errors import PipelineStage, UnsupportedOperationError
from .delegate import WalletDelegate
from .entry_points import EntryPointRegistry
from .estimator import Estimator
from .submitter import PendingUserOperation, Submitter
from .userop import TransactionRequest, UserOperation, UserOpReceipt
from .userop_builder import NameResolver, UserOperationBuilder

if TYPE_CHECKING:
    from ...providers.bundler import BundlerProvider
    from ...providers.rpc import ExecutionRpcProvider


def hash_signable_message(message: SignableMessage) -> str:
    """EIP-191 digest: keccak256(0x19 || version || header || body)."""
    return "0x" + keccak(b"\x19" + message.version + message.header + message.body).hex()


class Erc4337Signer:
    """Signer for the smart account controlled by ``delegate``."""

    def __init__(
        self,
        bundler: "BundlerProvider",
        rpc: "ExecutionRpcProvider",
        delegate: WalletDelegate,
        registry: EntryPointRegistry,
        *,
        name_resolver: Optional[NameResolver] = None,
        settlement_timeout: Optional[float] = None,
    ) -> None:
        self.bundler = bundler
        self.rpc = rpc
        self.delegate = delegate
        self.registry = registry
        self.estimator = Estimator(bundler, delegate, registry)
        self.builder = UserOperationBuilder(delegate, rpc, self.estimator, name_resolver)
        self.submitter = Submitter(bundler, rpc, delegate, registry, settlement_timeout)

    async def get_address(self) -> str:
        return await self.delegate.get_address()

    async def is_code_deployed(self) -> bool:
        return await self.builder.is_code_deployed()

    async def get_init_code(self) -> str:
        return await self.builder.get_init_code()

    async def get_nonce(self) -> int:
        return await self.delegate.get_nonce()

    async def encode_calldata(self, tx: TransactionRequest) -> str:
        return await self.builder.encode_calldata(tx)

    async def populate_user_operation(self, tx: TransactionRequest) -> UserOperation:
        return await self.builder.populate(tx)

    async def estimate_gas(self, tx: TransactionRequest) -> int:
        """
        Gas limit of the account's inner call.

        Verification and pre-verification gas are dropped; use
        ``populate_user_operation`` for the full picture.
        """
        user_op = await self.builder.populate(tx)
        return user_op.call_gas_limit

    async def sign_user_operation(self, user_op: UserOperation) -> str:
        return await self.submitter.sign(user_op)

    async def send_user_operation(
        self,
        user_op: UserOperation,
        entry_point: Optional[str] = None,
    ) -> PendingUserOperation:
        pending = await self.submitter.submit(user_op, entry_point)
        pending.on_settled.append(self._on_settled)
        return pending

    async def send_transaction(self, tx: TransactionRequest) -> PendingUserOperation:
        """Populate, sign and relay ``tx``; await ``.wait()`` on the result for the receipt."""
        user_op = await self.populate_user_operation(tx)
        pending = await self.submitter.send(user_op)
        pending.on_settled.append(self._on_settled)
        return pending

    async def sign_message(self, message: Union[str, bytes]) -> str:
        if isinstance(message, str):
            signable = encode_defunct(text=message)
        else:
            signable = encode_defunct(primitive=message)
        return await self.delegate.sign_eip1271_message(hash_signable_message(signable))

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, Any],
        value: Dict[str, Any],
    ) -> str:
        signable = encode_typed_data(domain_data=domain, message_types=types, message_data=value)
        return await self.delegate.sign_eip1271_message(hash_signable_message(signable))

    async def sign_transaction(self, tx: TransactionRequest) -> str:
        raise UnsupportedOperationError(
            "cannot sign regular transaction with an Erc4337Signer",
            stage=PipelineStage.SIGN,
            operation="signer.signTransaction",
        )

    def connect(self, provider: Any) -> "Erc4337Signer":
        raise UnsupportedOperationError(
            "cannot reconnect Erc4337Signer",
            stage=PipelineStage.PROVIDER,
            operation="signer.connect",
        )

    def _on_settled(self, receipt: UserOpReceipt) -> None:
        if receipt.success:
            self.builder.mark_deployed()
