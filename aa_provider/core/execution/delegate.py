"""
Wallet delegate capability set.

The pipeline never holds keys itself. Addressing, calldata encoding,
paymaster data and signatures are all supplied by a ``WalletDelegate``:
a local-key signer, a remote HSM or a contract-based smart account can
all conform to this protocol without sharing a base class.
"""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from .userop import UserOperation, UserOperationCalldata


@runtime_checkable
class WalletDelegate(Protocol):
    """Protocol for ERC-4337 wallet delegates. Every method may suspend on I/O."""

    async def get_address(self) -> str:
        """Address of the smart account (the UserOperation sender)."""
        ...

    async def get_init_code(self) -> str:
        """initCode deploying the account; only used while it has no code."""
        ...

    async def get_nonce(self) -> int:
        ...

    async def encode_calldata(self, call: UserOperationCalldata) -> str:
        ...

    async def encode_batch_calldata(self, calls: List[UserOperationCalldata]) -> str:
        ...

    async def get_paymaster_and_data(self, user_op: UserOperation) -> str:
        """Final paymasterAndData for a fully populated operation ("0x" for none)."""
        ...

    async def get_paymaster_and_data_for_estimate_gas(self, user_op: UserOperation) -> str:
        """Placeholder paymasterAndData good enough for gas estimation."""
        ...

    async def get_signature_for_estimate_gas(self, user_op: UserOperation) -> str:
        """
        Placeholder signature for gas estimation.

        What makes it acceptable is a delegate convention (usually a dummy
        value of the right length that passes signature parsing), not a
        cryptographic requirement.
        """
        ...

    async def sign_user_op(self, user_op: UserOperation) -> str:
        ...

    async def sign_eip1271_message(self, message_hash: str) -> str:
        """Sign a 32-byte hash on behalf of the account; raise if unsupported."""
        ...
