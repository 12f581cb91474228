"""
Tests for the UserOperation model and its RPC serialization.
"""

import pytest

from aa_provider.core.errors import AlreadySignedError, PipelineStage
from aa_provider.core.execution.userop import (
    UINT256_MAX,
    UserOperation,
    UserOpGasEstimate,
    UserOpReceipt,
    from_rpc_quantity,
    to_rpc_bytes,
    to_rpc_quantity,
)


def _unsigned_user_op() -> UserOperation:
    return UserOperation(
        sender="0x0F48612d2517e47D72fEc92a2fc6fd64cA6816E0",
        nonce=3,
        init_code="0x",
        call_data="0xB61D27F6",
        max_fee_per_gas=100,
        max_priority_fee_per_gas=2,
    )


class TestQuantities:
    @pytest.mark.parametrize("value", [0, 1, 255, 2**64, 2**128 + 7, UINT256_MAX])
    def test_hex_quantity_round_trip(self, value):
        encoded = to_rpc_quantity(value)
        assert encoded.startswith("0x")
        assert from_rpc_quantity(encoded) == value

    def test_quantity_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            to_rpc_quantity(UINT256_MAX + 1)
        with pytest.raises(ValueError):
            to_rpc_quantity(-1)

    def test_none_passes_through(self):
        assert to_rpc_quantity(None) is None
        assert from_rpc_quantity(None) is None
        assert to_rpc_bytes(None) is None

    def test_bytes_are_lower_case_with_prefix(self):
        assert to_rpc_bytes("0xABCDEF") == "0xabcdef"
        assert to_rpc_bytes("ABCD") == "0xabcd"
        assert to_rpc_bytes(b"\x01\xff") == "0x01ff"

    def test_odd_length_bytes_rejected(self):
        with pytest.raises(ValueError):
            to_rpc_bytes("0xabc")


class TestUserOperation:
    def test_rpc_dict_keeps_missing_fields_as_null(self):
        payload = _unsigned_user_op().to_rpc_dict()

        assert set(payload) == {
            "sender",
            "nonce",
            "initCode",
            "callData",
            "callGasLimit",
            "verificationGasLimit",
            "preVerificationGas",
            "maxFeePerGas",
            "maxPriorityFeePerGas",
            "paymasterAndData",
            "signature",
        }
        assert payload["callGasLimit"] is None
        assert payload["signature"] is None
        assert payload["nonce"] == "0x3"
        assert payload["callData"] == "0xb61d27f6"
        assert payload["maxFeePerGas"] == "0x64"

    def test_rpc_dict_round_trip(self):
        user_op = _unsigned_user_op()
        user_op.apply_gas_estimate(UserOpGasEstimate(35_000, 150_000, 48_000))
        user_op.paymaster_and_data = "0x"
        user_op.sign("0x" + "11" * 65)

        parsed = UserOperation.from_rpc_dict(user_op.to_rpc_dict())

        assert parsed == UserOperation(
            sender=user_op.sender,
            nonce=3,
            init_code="0x",
            call_data="0xb61d27f6",
            max_fee_per_gas=100,
            max_priority_fee_per_gas=2,
            call_gas_limit=35_000,
            verification_gas_limit=150_000,
            pre_verification_gas=48_000,
            paymaster_and_data="0x",
            signature="0x" + "11" * 65,
        )

    def test_gas_limits_unset_until_estimated(self):
        user_op = _unsigned_user_op()
        assert not user_op.has_gas_limits

        user_op.apply_gas_estimate(UserOpGasEstimate(1, 2, 3))

        assert user_op.has_gas_limits
        assert (user_op.call_gas_limit, user_op.verification_gas_limit, user_op.pre_verification_gas) == (1, 2, 3)

    def test_sign_is_single_shot(self):
        user_op = _unsigned_user_op()
        user_op.sign("0x" + "11" * 65)

        with pytest.raises(AlreadySignedError) as exc_info:
            user_op.sign("0x" + "22" * 65)

        assert exc_info.value.stage == PipelineStage.SIGN
        assert user_op.signature == "0x" + "11" * 65

    def test_copy_is_independent(self):
        user_op = _unsigned_user_op()
        draft = user_op.copy(signature="0xee")

        assert draft.signature == "0xee"
        assert user_op.signature is None


class TestGasEstimate:
    def test_from_rpc(self):
        estimate = UserOpGasEstimate.from_rpc(
            {"callGasLimit": "0x88b8", "verificationGasLimit": "0x249f0", "preVerificationGas": "0xbb80"}
        )
        assert estimate.call_gas_limit == 35_000
        assert estimate.verification_gas_limit == 150_000
        assert estimate.pre_verification_gas == 48_000
        assert estimate.paymaster_verification_gas_limit is None

    def test_from_rpc_legacy_verification_gas_key(self):
        estimate = UserOpGasEstimate.from_rpc(
            {"callGasLimit": "0x1", "verificationGas": "0x2", "preVerificationGas": "0x3"}
        )
        assert estimate.verification_gas_limit == 2


class TestUserOpReceipt:
    def test_from_bundler_receipt(self):
        receipt = UserOpReceipt.from_bundler_receipt(
            {
                "userOpHash": "0x" + "ab" * 32,
                "sender": "0x0F48612d2517e47D72fEc92a2fc6fd64cA6816E0",
                "nonce": "0x3",
                "entryPoint": "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789",
                "success": False,
                "reason": "AA21 didn't pay prefund",
                "actualGasCost": "0x10",
                "actualGasUsed": "0x8",
                "receipt": {"transactionHash": "0x" + "cd" * 32, "blockNumber": "0x10", "status": "0x1"},
            }
        )

        assert receipt.success is False
        assert receipt.nonce == 3
        assert receipt.transaction_hash == "0x" + "cd" * 32
        assert receipt.block_number == 16
        assert receipt.revert_reason == "AA21 didn't pay prefund"

    def test_success_falls_back_to_receipt_status(self):
        receipt = UserOpReceipt.from_bundler_receipt({"receipt": {"status": "0x1"}})
        assert receipt.success is True
