"""
Tests for the UserOperation error taxonomy.
"""

from aa_provider.core.errors import (
    AddressMismatchError,
    AlreadySignedError,
    ErrorCategory,
    ExecutionFailureError,
    InvalidRequestError,
    NoEntryPointError,
    PipelineStage,
    SettlementTimeoutError,
    UnsupportedEntryPointError,
    UserOperationError,
)


def test_every_error_carries_stage_and_operation():
    error = InvalidRequestError("no to", stage=PipelineStage.POPULATE, operation="signer.populateUserOperation")

    assert isinstance(error, UserOperationError)
    assert error.context.stage == PipelineStage.POPULATE
    assert error.context.operation == "signer.populateUserOperation"
    assert str(error) == "no to (stage=populate, operation=signer.populateUserOperation)"


def test_categories_separate_configuration_from_transient():
    configuration = [
        NoEntryPointError("none", stage=PipelineStage.SEND),
        UnsupportedEntryPointError("0x" + "00" * 20, stage=PipelineStage.SEND),
    ]
    assert all(e.context.category == ErrorCategory.CONFIGURATION for e in configuration)
    assert not any(e.recoverable for e in configuration)

    timeout = SettlementTimeoutError("0x" + "ab" * 32, 10.0)
    assert timeout.context.category == ErrorCategory.TIMEOUT
    assert timeout.recoverable is True
    assert timeout.stage == PipelineStage.SETTLE


def test_protocol_and_validation_errors_not_recoverable():
    assert AlreadySignedError("signed", stage=PipelineStage.SIGN).context.category == ErrorCategory.PROTOCOL
    mismatch = AddressMismatchError(expected="0xA", actual="0xB")
    assert mismatch.context.category == ErrorCategory.VALIDATION
    assert mismatch.context.details == {"expected": "0xA", "actual": "0xB"}
    assert not mismatch.recoverable


def test_execution_failure_details():
    error = ExecutionFailureError("0x" + "ab" * 32, "out of gas", transaction_hash="0x" + "cd" * 32)

    assert error.reason == "out of gas"
    assert error.context.category == ErrorCategory.EXECUTION
    assert error.context.details["transaction_hash"] == "0x" + "cd" * 32
    assert "out of gas" in str(error)
