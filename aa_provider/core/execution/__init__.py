"""
UserOperation Execution Layer

Provides the ERC-4337 pipeline that turns a plain transaction request into
a settled UserOperation:
- UserOperationBuilder: populates calldata, initCode, nonce, fees and paymaster data
- Estimator: fills gas limits via the bundler
- Submitter: signs exactly once and dispatches to the bundler
- SettlementTracker: waits for the EntryPoint UserOperationEvent, bounded by a timeout
- Erc4337Signer: signer surface composed over the pipeline

Usage:
    from aa_provider.core.execution import Erc4337Signer, TransactionRequest

    pending = await signer.send_transaction(TransactionRequest(to="0x...", value=42))
    receipt = await pending.wait()
"""

from .userop import (
    FeeData,
    TransactionRequest,
    UserOperation,
    UserOperationCalldata,
    UserOpGasEstimate,
    UserOpReceipt,
)
from .delegate import WalletDelegate
from .fees import resolve_fees
from .entry_points import EntryPointRegistry, select_entry_point
from .userop_builder import UserOperationBuilder
from .estimator import Estimator
from .submitter import PendingUserOperation, Submitter
from .settlement import SettlementState, SettlementTracker
from .signer import Erc4337Signer
from .simple_account import SimpleAccountDelegate

__all__ = [
    # Models
    "FeeData",
    "TransactionRequest",
    "UserOperation",
    "UserOperationCalldata",
    "UserOpGasEstimate",
    "UserOpReceipt",
    # Delegate
    "WalletDelegate",
    "SimpleAccountDelegate",
    # Pipeline
    "resolve_fees",
    "EntryPointRegistry",
    "select_entry_point",
    "UserOperationBuilder",
    "Estimator",
    "Submitter",
    "PendingUserOperation",
    "SettlementState",
    "SettlementTracker",
    "Erc4337Signer",
]
