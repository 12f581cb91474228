"""
ERC-4337 account-abstraction provider.

Executes plain transaction intents as UserOperations relayed through a
bundler and tracks them to settlement on the execution layer.
"""

from .core.errors import (
    AddressMismatchError,
    AlreadySignedError,
    AmbiguousEntryPointError,
    EntryPointNotDeployedError,
    ExecutionFailureError,
    InvalidRequestError,
    NoEntryPointError,
    NotSignedError,
    SettlementTimeoutError,
    UnsupportedEntryPointError,
    UnsupportedOperationError,
    UserOperationError,
)
from .core.execution import (
    Erc4337Signer,
    PendingUserOperation,
    SimpleAccountDelegate,
    TransactionRequest,
    UserOperation,
    UserOperationCalldata,
    UserOpReceipt,
    WalletDelegate,
)
from .provider import Erc4337Provider

__all__ = [
    "Erc4337Provider",
    "Erc4337Signer",
    "PendingUserOperation",
    "SimpleAccountDelegate",
    "TransactionRequest",
    "UserOperation",
    "UserOperationCalldata",
    "UserOpReceipt",
    "WalletDelegate",
    # Errors
    "UserOperationError",
    "InvalidRequestError",
    "AddressMismatchError",
    "UnsupportedOperationError",
    "AmbiguousEntryPointError",
    "NoEntryPointError",
    "UnsupportedEntryPointError",
    "EntryPointNotDeployedError",
    "AlreadySignedError",
    "NotSignedError",
    "SettlementTimeoutError",
    "ExecutionFailureError",
]
