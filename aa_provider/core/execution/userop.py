"""
ERC-4337 UserOperation models and helpers.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..errors import AlreadySignedError, PipelineStage

UINT256_MAX = 2**256 - 1

BytesLike = Union[str, bytes]


def to_rpc_quantity(value: Optional[int]) -> Optional[str]:
    """Encode an unsigned integer as a 0x-prefixed hex quantity."""
    if value is None:
        return None
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"Quantity out of uint256 range: {value}")
    return hex(value)


def from_rpc_quantity(value: Union[str, int, None]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16)


def to_rpc_bytes(value: Optional[BytesLike]) -> Optional[str]:
    """Encode bytes (or a hex string) as lower-case 0x-prefixed hex."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    hex_data = value[2:] if value[:2].lower() == "0x" else value
    if len(hex_data) % 2 != 0:
        raise ValueError("Byte data must have an even-length hex string")
    int(hex_data or "0", 16)
    return "0x" + hex_data.lower()


@dataclass
class UserOperation:
    """
    ERC-4337 UserOperation payload.

    Values should be supplied in raw units (wei / gas units) and are encoded
    as hex for RPC calls. Gas limits stay ``None`` until estimation and the
    signature stays ``None`` until the operation is signed.
    """
    sender: str
    nonce: int
    init_code: str
    call_data: str
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    call_gas_limit: Optional[int] = None
    verification_gas_limit: Optional[int] = None
    pre_verification_gas: Optional[int] = None
    paymaster_and_data: Optional[str] = None
    signature: Optional[str] = None

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    @property
    def has_gas_limits(self) -> bool:
        return (
            self.call_gas_limit is not None
            and self.verification_gas_limit is not None
            and self.pre_verification_gas is not None
        )

    def copy(self, **changes: Any) -> "UserOperation":
        return dataclasses.replace(self, **changes)

    def apply_gas_estimate(self, estimate: "UserOpGasEstimate") -> None:
        self.call_gas_limit = estimate.call_gas_limit
        self.verification_gas_limit = estimate.verification_gas_limit
        self.pre_verification_gas = estimate.pre_verification_gas

    def sign(self, signature: str, operation: Optional[str] = None) -> None:
        """Attach the one and only signature of this operation."""
        if self.signature is not None:
            raise AlreadySignedError(
                "passed UserOperation already signed",
                stage=PipelineStage.SIGN,
                operation=operation,
            )
        self.signature = to_rpc_bytes(signature)

    def to_rpc_dict(self) -> Dict[str, Any]:
        return {
            "sender": self.sender,
            "nonce": to_rpc_quantity(self.nonce),
            "initCode": to_rpc_bytes(self.init_code),
            "callData": to_rpc_bytes(self.call_data),
            "callGasLimit": to_rpc_quantity(self.call_gas_limit),
            "verificationGasLimit": to_rpc_quantity(self.verification_gas_limit),
            "preVerificationGas": to_rpc_quantity(self.pre_verification_gas),
            "maxFeePerGas": to_rpc_quantity(self.max_fee_per_gas),
            "maxPriorityFeePerGas": to_rpc_quantity(self.max_priority_fee_per_gas),
            "paymasterAndData": to_rpc_bytes(self.paymaster_and_data),
            "signature": to_rpc_bytes(self.signature),
        }

    @classmethod
    def from_rpc_dict(cls, data: Dict[str, Any]) -> "UserOperation":
        return cls(
            sender=data["sender"],
            nonce=from_rpc_quantity(data["nonce"]),
            init_code=to_rpc_bytes(data.get("initCode") or "0x"),
            call_data=to_rpc_bytes(data.get("callData") or "0x"),
            max_fee_per_gas=from_rpc_quantity(data["maxFeePerGas"]),
            max_priority_fee_per_gas=from_rpc_quantity(data["maxPriorityFeePerGas"]),
            call_gas_limit=from_rpc_quantity(data.get("callGasLimit")),
            verification_gas_limit=from_rpc_quantity(data.get("verificationGasLimit")),
            pre_verification_gas=from_rpc_quantity(data.get("preVerificationGas")),
            paymaster_and_data=to_rpc_bytes(data.get("paymasterAndData")),
            signature=to_rpc_bytes(data.get("signature")),
        )


@dataclass
class UserOperationCalldata:
    """A single call to be executed by the account."""
    to: str
    data: Optional[str] = None
    value: Optional[int] = None


@dataclass
class TransactionRequest:
    """
    A plain transaction intent to be executed as a UserOperation.

    A non-empty ``calls`` list selects the batch calldata form; otherwise
    ``to``/``data``/``value`` describe a single call.
    """
    to: Optional[str] = None
    from_address: Optional[str] = None
    data: Optional[str] = None
    value: Optional[int] = None
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    calls: List[UserOperationCalldata] = field(default_factory=list)


@dataclass
class FeeData:
    """Network fee-market suggestion."""
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None


@dataclass
class UserOpGasEstimate:
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int
    paymaster_verification_gas_limit: Optional[int] = None
    paymaster_post_op_gas_limit: Optional[int] = None

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "UserOpGasEstimate":
        # Some bundlers still report "verificationGas"
        verification = data.get("verificationGasLimit")
        if verification is None:
            verification = data.get("verificationGas")

        return cls(
            call_gas_limit=from_rpc_quantity(data.get("callGasLimit")) or 0,
            verification_gas_limit=from_rpc_quantity(verification) or 0,
            pre_verification_gas=from_rpc_quantity(data.get("preVerificationGas")) or 0,
            paymaster_verification_gas_limit=from_rpc_quantity(data.get("paymasterVerificationGasLimit")),
            paymaster_post_op_gas_limit=from_rpc_quantity(data.get("paymasterPostOpGasLimit")),
        )


@dataclass
class UserOpReceipt:
    user_op_hash: str
    success: bool
    sender: Optional[str] = None
    nonce: Optional[int] = None
    entry_point: Optional[str] = None
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    gas_used: Optional[int] = None
    actual_gas_cost: Optional[int] = None
    actual_gas_used: Optional[int] = None
    revert_reason: Optional[str] = None
    receipt: Optional[Dict[str, Any]] = None

    @classmethod
    def from_bundler_receipt(cls, data: Dict[str, Any]) -> "UserOpReceipt":
        """Parse an ``eth_getUserOperationReceipt`` result."""
        receipt = data.get("receipt") or {}
        success = data.get("success")
        if success is None:
            success = receipt.get("status") == "0x1"

        return cls(
            user_op_hash=data.get("userOpHash", ""),
            success=bool(success),
            sender=data.get("sender"),
            nonce=from_rpc_quantity(data.get("nonce")),
            entry_point=data.get("entryPoint"),
            transaction_hash=receipt.get("transactionHash"),
            block_number=from_rpc_quantity(receipt.get("blockNumber")),
            block_hash=receipt.get("blockHash"),
            gas_used=from_rpc_quantity(receipt.get("gasUsed")),
            actual_gas_cost=from_rpc_quantity(data.get("actualGasCost")),
            actual_gas_used=from_rpc_quantity(data.get("actualGasUsed")),
            revert_reason=data.get("reason"),
            receipt=receipt or None,
        )
