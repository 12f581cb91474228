"""
Error Classification

Defines the error types raised by the UserOperation pipeline.
Every error names the pipeline stage that failed so callers can tell
configuration problems (fix the setup) from transient ones (retry end-to-end).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class PipelineStage(str, Enum):
    """Stage of the UserOperation pipeline that raised an error."""

    POPULATE = "populate"
    ESTIMATE = "estimate"
    SIGN = "sign"
    SEND = "send"
    SETTLE = "settle"
    PROVIDER = "provider"


class ErrorCategory(str, Enum):
    """Categories of errors for retry decisions."""

    VALIDATION = "validation"         # Malformed caller input
    CONFIGURATION = "configuration"   # Bundler / EntryPoint setup problem
    PROTOCOL = "protocol"             # Pipeline invariant violated
    TIMEOUT = "timeout"               # Settlement not observed in time
    EXECUTION = "execution"           # Settled, but the inner call reverted


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory
    stage: PipelineStage
    operation: Optional[str] = None
    recoverable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)


class UserOperationError(Exception):
    """Base class for errors raised by the UserOperation pipeline."""

    category: ErrorCategory = ErrorCategory.VALIDATION
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        stage: PipelineStage,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.operation = operation
        self.context = ErrorContext(
            category=self.category,
            stage=stage,
            operation=operation,
            recoverable=self.recoverable,
            details=details or {},
        )

    def __str__(self) -> str:
        if self.operation:
            return f"{self.message} (stage={self.stage.value}, operation={self.operation})"
        return f"{self.message} (stage={self.stage.value})"


# Caller input errors
class InvalidRequestError(UserOperationError):
    """The transaction request or UserOperation is malformed."""

    category = ErrorCategory.VALIDATION


class AddressMismatchError(UserOperationError):
    """The caller asserted a sender the wallet delegate does not control."""

    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        expected: str,
        actual: str,
        stage: PipelineStage = PipelineStage.POPULATE,
        operation: Optional[str] = None,
    ):
        super().__init__(
            f"address mismatch: expected {expected}, got {actual}",
            stage=stage,
            operation=operation,
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class UnsupportedOperationError(UserOperationError):
    """The requested action has no meaning for an ERC-4337 account."""

    category = ErrorCategory.VALIDATION


# EntryPoint configuration errors
class AmbiguousEntryPointError(UserOperationError):
    """Bundler supports several EntryPoints and none was specified."""

    category = ErrorCategory.CONFIGURATION


class NoEntryPointError(UserOperationError):
    """Bundler reported no supported EntryPoints."""

    category = ErrorCategory.CONFIGURATION


class UnsupportedEntryPointError(UserOperationError):
    """The chosen EntryPoint is not supported by the bundler."""

    category = ErrorCategory.CONFIGURATION

    def __init__(
        self,
        entry_point: str,
        stage: PipelineStage,
        operation: Optional[str] = None,
    ):
        super().__init__(
            f"the EntryPoint at {entry_point} is not supported by this bundler",
            stage=stage,
            operation=operation,
            details={"entry_point": entry_point},
        )
        self.entry_point = entry_point


class EntryPointNotDeployedError(UserOperationError):
    """A call to the configured EntryPoint returned no data."""

    category = ErrorCategory.CONFIGURATION

    def __init__(
        self,
        entry_point: str,
        stage: PipelineStage,
        operation: Optional[str] = None,
    ):
        super().__init__(
            f"no EntryPoint contract responded at {entry_point}",
            stage=stage,
            operation=operation,
            details={"entry_point": entry_point},
        )
        self.entry_point = entry_point


# Signing invariant errors
class AlreadySignedError(UserOperationError):
    """The UserOperation already carries a signature."""

    category = ErrorCategory.PROTOCOL


class NotSignedError(UserOperationError):
    """The UserOperation must be signed before it is sent."""

    category = ErrorCategory.PROTOCOL


# Settlement errors
class SettlementTimeoutError(UserOperationError):
    """No UserOperationEvent was observed within the timeout."""

    category = ErrorCategory.TIMEOUT
    recoverable = True

    def __init__(
        self,
        user_op_hash: str,
        timeout: float,
        operation: Optional[str] = None,
    ):
        super().__init__(
            f"UserOperation {user_op_hash} not settled within {timeout}s",
            stage=PipelineStage.SETTLE,
            operation=operation,
            details={"user_op_hash": user_op_hash, "timeout": timeout},
        )
        self.user_op_hash = user_op_hash
        self.timeout = timeout


class ExecutionFailureError(UserOperationError):
    """The UserOperation settled on-chain but its call reverted."""

    category = ErrorCategory.EXECUTION

    def __init__(
        self,
        user_op_hash: str,
        reason: str,
        transaction_hash: Optional[str] = None,
        receipt: Optional[Dict[str, Any]] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(
            f"UserOperation {user_op_hash} reverted: {reason}",
            stage=PipelineStage.SETTLE,
            operation=operation,
            details={
                "user_op_hash": user_op_hash,
                "reason": reason,
                "transaction_hash": transaction_hash,
            },
        )
        self.user_op_hash = user_op_hash
        self.reason = reason
        self.transaction_hash = transaction_hash
        self.receipt = receipt
