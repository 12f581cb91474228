"""
EntryPoint event topics and log decoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_checksum_address

USER_OPERATION_EVENT_SIGNATURE = (
    "UserOperationEvent(bytes32,address,address,uint256,bool,uint256,uint256)"
)
USER_OPERATION_REVERT_REASON_SIGNATURE = "UserOperationRevertReason(bytes32,address,uint256,bytes)"

USER_OPERATION_EVENT_TOPIC = "0x" + keccak(text=USER_OPERATION_EVENT_SIGNATURE).hex()
USER_OPERATION_REVERT_REASON_TOPIC = "0x" + keccak(text=USER_OPERATION_REVERT_REASON_SIGNATURE).hex()

ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")  # Error(string)
PANIC_SELECTOR = bytes.fromhex("4e487b71")  # Panic(uint256)


def _hex_to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _normalize_hash(value: str) -> str:
    return "0x" + _hex_to_bytes(value).hex().rjust(64, "0")


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte indexed topic."""
    return "0x" + _hex_to_bytes(address).hex().rjust(64, "0")


def _topic_to_address(topic: str) -> str:
    return to_checksum_address("0x" + _hex_to_bytes(topic)[-20:].hex())


@dataclass
class UserOperationEvent:
    user_op_hash: str
    sender: str
    paymaster: str
    nonce: int
    success: bool
    actual_gas_cost: int
    actual_gas_used: int
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    block_hash: Optional[str] = None


@dataclass
class UserOperationRevertReason:
    user_op_hash: str
    sender: str
    nonce: int
    revert_reason: bytes

    @property
    def message(self) -> str:
        return decode_revert_reason(self.revert_reason)


def user_operation_event_filter(
    entry_point: str,
    user_op_hash: str,
    from_block: Optional[int] = None,
    to_block: Optional[int] = None,
) -> Dict[str, Any]:
    log_filter: Dict[str, Any] = {
        "address": entry_point,
        "topics": [USER_OPERATION_EVENT_TOPIC, _normalize_hash(user_op_hash)],
    }
    if from_block is not None:
        log_filter["fromBlock"] = hex(from_block)
    if to_block is not None:
        log_filter["toBlock"] = hex(to_block)
    return log_filter


def revert_reason_filter(
    entry_point: str,
    user_op_hash: str,
    sender: str,
    block_number: int,
) -> Dict[str, Any]:
    return {
        "address": entry_point,
        "topics": [
            USER_OPERATION_REVERT_REASON_TOPIC,
            _normalize_hash(user_op_hash),
            address_topic(sender),
        ],
        "fromBlock": hex(block_number),
        "toBlock": hex(block_number),
    }


def _log_topics(log: Dict[str, Any]) -> List[str]:
    return [t.lower() if isinstance(t, str) else "0x" + t.hex() for t in log.get("topics") or []]


def decode_user_operation_event(log: Dict[str, Any]) -> Optional[UserOperationEvent]:
    """Decode a UserOperationEvent log; ``None`` if the log is some other event."""
    topics = _log_topics(log)
    if len(topics) < 4 or topics[0] != USER_OPERATION_EVENT_TOPIC:
        return None

    nonce, success, actual_gas_cost, actual_gas_used = decode(
        ["uint256", "bool", "uint256", "uint256"],
        _hex_to_bytes(log.get("data") or "0x"),
    )
    block_number = log.get("blockNumber")
    return UserOperationEvent(
        user_op_hash=_normalize_hash(topics[1]),
        sender=_topic_to_address(topics[2]),
        paymaster=_topic_to_address(topics[3]),
        nonce=nonce,
        success=success,
        actual_gas_cost=actual_gas_cost,
        actual_gas_used=actual_gas_used,
        transaction_hash=log.get("transactionHash"),
        block_number=int(block_number, 16) if isinstance(block_number, str) else block_number,
        block_hash=log.get("blockHash"),
    )


def decode_revert_reason_event(log: Dict[str, Any]) -> Optional[UserOperationRevertReason]:
    topics = _log_topics(log)
    if len(topics) < 3 or topics[0] != USER_OPERATION_REVERT_REASON_TOPIC:
        return None

    nonce, revert_reason = decode(["uint256", "bytes"], _hex_to_bytes(log.get("data") or "0x"))
    return UserOperationRevertReason(
        user_op_hash=_normalize_hash(topics[1]),
        sender=_topic_to_address(topics[2]),
        nonce=nonce,
        revert_reason=revert_reason,
    )


def decode_revert_reason(data: Union[str, bytes]) -> str:
    """Human-readable form of revert data: Error(string), Panic(uint256) or raw hex."""
    raw = _hex_to_bytes(data)
    if not raw:
        return "execution reverted without a reason"
    if raw[:4] == ERROR_STRING_SELECTOR:
        try:
            (message,) = decode(["string"], raw[4:])
            return message
        except DecodingError:
            pass
    if raw[:4] == PANIC_SELECTOR:
        try:
            (code,) = decode(["uint256"], raw[4:])
            return f"panic code {hex(code)}"
        except DecodingError:
            pass
    return "0x" + raw.hex()


def same_hash(a: str, b: str) -> bool:
    return _normalize_hash(a) == _normalize_hash(b)
