"""
SimpleAccount and EntryPoint (v0.6) calldata builders.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from ...config import settings
from .userop import UserOperation, UserOperationCalldata

EXECUTE_BATCH_SIGNATURE = "executeBatch(address[],bytes[])"
EXECUTE_BATCH_WITH_VALUE_SIGNATURE = "executeBatch(address[],uint256[],bytes[])"
GET_NONCE_SIGNATURE = "getNonce(address,uint192)"
CREATE_ACCOUNT_SIGNATURE = "createAccount(address,uint256)"


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def _to_bytes(data: Optional[str]) -> bytes:
    hex_data = _strip_0x(data or "0x")
    if len(hex_data) % 2 != 0:
        raise ValueError("Byte data must have an even-length hex string")
    return bytes.fromhex(hex_data)


def _encode_uint(value: int) -> str:
    if value < 0:
        raise ValueError("Value must be non-negative")
    return hex(value)[2:].rjust(64, "0")


def _encode_address(address: str) -> str:
    addr = _strip_0x(address).lower()
    if len(addr) != 40:
        raise ValueError(f"Invalid address length: {address}")
    return addr.rjust(64, "0")


def _encode_bytes(data: str) -> str:
    hex_data = _strip_0x(data).lower()
    if len(hex_data) % 2 != 0:
        raise ValueError("Byte data must have an even-length hex string")
    data_len = len(hex_data) // 2
    padded_len = ((data_len + 31) // 32) * 32
    padding = "0" * ((padded_len - data_len) * 2)
    return _encode_uint(data_len) + hex_data + padding


def selector_from_signature(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


def get_execute_selector(
    signature: Optional[str] = None,
    selector_override: Optional[str] = None,
) -> str:
    selector_override = selector_override or settings.erc4337_account_execute_selector
    if selector_override:
        if not selector_override.startswith("0x") or len(selector_override) != 10:
            raise ValueError("Execute selector override must be 4 bytes (0x........)")
        return selector_override.lower()

    signature = signature or settings.erc4337_account_execute_signature
    return selector_from_signature(signature)


def build_execute_call_data(
    to_address: str,
    value_wei: int,
    data: str,
    *,
    signature: Optional[str] = None,
    selector_override: Optional[str] = None,
) -> str:
    """
    Build calldata for execute(address,uint256,bytes).
    """
    selector = get_execute_selector(signature, selector_override)
    head = (
        _encode_address(to_address)
        + _encode_uint(value_wei)
        + _encode_uint(96)  # offset to bytes data
    )
    tail = _encode_bytes(data)
    return selector + head + tail


def build_execute_batch_call_data(calls: Sequence[UserOperationCalldata]) -> str:
    """
    Build calldata for SimpleAccount.executeBatch.

    Uses ``executeBatch(address[],bytes[])`` unless some call carries value,
    in which case the ``uint256[]`` overload is used.
    """
    targets: List[str] = [to_checksum_address(call.to) for call in calls]
    payloads: List[bytes] = [_to_bytes(call.data) for call in calls]
    values: List[int] = [call.value or 0 for call in calls]

    if any(values):
        selector = selector_from_signature(EXECUTE_BATCH_WITH_VALUE_SIGNATURE)
        args = encode(["address[]", "uint256[]", "bytes[]"], [targets, values, payloads])
    else:
        selector = selector_from_signature(EXECUTE_BATCH_SIGNATURE)
        args = encode(["address[]", "bytes[]"], [targets, payloads])
    return selector + args.hex()


def build_entrypoint_get_nonce_call(sender: str, key: int = 0) -> str:
    """
    Build calldata for EntryPoint.getNonce(address,uint192).
    """
    if key >= 2**192:
        raise ValueError("Nonce key out of uint192 range")
    selector = selector_from_signature(GET_NONCE_SIGNATURE)
    return selector + _encode_address(sender) + _encode_uint(key)


def build_init_code(factory: str, owner: str, salt: int = 0) -> str:
    """initCode for SimpleAccountFactory: factory address followed by createAccount calldata."""
    selector = selector_from_signature(CREATE_ACCOUNT_SIGNATURE)
    create_call = _strip_0x(selector) + _encode_address(owner) + _encode_uint(salt)
    return "0x" + _strip_0x(factory).lower() + create_call


def get_user_operation_hash(user_op: UserOperation, entry_point: str, chain_id: int) -> str:
    """
    EntryPoint v0.6 ``getUserOpHash``, computed locally.

    keccak256(abi.encode(keccak256(pack(userOp)), entryPoint, chainId)) where
    the dynamic fields of the packed operation are replaced by their hashes.
    """
    packed = encode(
        [
            "address",
            "uint256",
            "bytes32",
            "bytes32",
            "uint256",
            "uint256",
            "uint256",
            "uint256",
            "uint256",
            "bytes32",
        ],
        [
            to_checksum_address(user_op.sender),
            user_op.nonce,
            keccak(_to_bytes(user_op.init_code)),
            keccak(_to_bytes(user_op.call_data)),
            user_op.call_gas_limit or 0,
            user_op.verification_gas_limit or 0,
            user_op.pre_verification_gas or 0,
            user_op.max_fee_per_gas,
            user_op.max_priority_fee_per_gas,
            keccak(_to_bytes(user_op.paymaster_and_data)),
        ],
    )
    outer = encode(
        ["bytes32", "address", "uint256"],
        [keccak(packed), to_checksum_address(entry_point), chain_id],
    )
    return "0x" + keccak(outer).hex()
