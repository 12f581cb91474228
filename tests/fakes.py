"""
Fakes and log builders for the UserOperation pipeline tests.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
from eth_abi import encode

from aa_provider.core.execution.events import (
    USER_OPERATION_EVENT_TOPIC,
    USER_OPERATION_REVERT_REASON_TOPIC,
    address_topic,
)
from aa_provider.core.execution.userop import (
    FeeData,
    UserOperation,
    UserOperationCalldata,
    UserOpGasEstimate,
)

ACCOUNT = "0x0F48612d2517e47D72fEc92a2fc6fd64cA6816E0"
ENTRY_POINT = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
OTHER_ENTRY_POINT = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
PAYMASTER = "0x0000000000000000000000000000000000000000"
USER_OP_HASH = "0x" + "ab" * 32
TX_HASH = "0x" + "cd" * 32
BLOCK_HASH = "0x" + "ef" * 32

REAL_SIGNATURE = "0x" + "11" * 65
ESTIMATE_SIGNATURE = "0x" + "ee" * 65
INIT_CODE = "0x" + "9f" * 20 + "5fbfb9cf"


class FakeDelegate:
    """WalletDelegate recording what it was asked."""

    def __init__(self, address: str = ACCOUNT, nonce: int = 7, paymaster_and_data: str = "0x"):
        self.address = address
        self.nonce = nonce
        self.paymaster_and_data = paymaster_and_data
        self.signed: List[UserOperation] = []
        self.paymaster_requests: List[UserOperation] = []
        self.eip1271_hashes: List[str] = []

    async def get_address(self) -> str:
        return self.address

    async def get_init_code(self) -> str:
        return INIT_CODE

    async def get_nonce(self) -> int:
        return self.nonce

    async def encode_calldata(self, call: UserOperationCalldata) -> str:
        return "0xb61d27f6" + call.to[2:].lower() + hex(call.value or 0)[2:].rjust(64, "0")

    async def encode_batch_calldata(self, calls: List[UserOperationCalldata]) -> str:
        return "0x18dfb3c7" + "".join(call.to[2:].lower() for call in calls)

    async def get_paymaster_and_data(self, user_op: UserOperation) -> str:
        self.paymaster_requests.append(user_op.copy())
        return self.paymaster_and_data

    async def get_paymaster_and_data_for_estimate_gas(self, user_op: UserOperation) -> str:
        return "0x"

    async def get_signature_for_estimate_gas(self, user_op: UserOperation) -> str:
        return ESTIMATE_SIGNATURE

    async def sign_user_op(self, user_op: UserOperation) -> str:
        self.signed.append(user_op.copy())
        return REAL_SIGNATURE

    async def sign_eip1271_message(self, message_hash: str) -> str:
        self.eip1271_hashes.append(message_hash)
        return REAL_SIGNATURE


class FakeBundler:
    def __init__(self, entry_points: Optional[List[str]] = None, user_op_hash: str = USER_OP_HASH):
        self.entry_points = [ENTRY_POINT] if entry_points is None else entry_points
        self.user_op_hash = user_op_hash
        self.estimate = UserOpGasEstimate(
            call_gas_limit=35_000,
            verification_gas_limit=150_000,
            pre_verification_gas=48_000,
        )
        self.drafts: List[UserOperation] = []
        self.sent: List[tuple] = []
        self.supported_calls = 0

    async def supported_entry_points(self) -> List[str]:
        self.supported_calls += 1
        return list(self.entry_points)

    async def estimate_user_operation_gas(self, user_op: UserOperation, entry_point: str) -> UserOpGasEstimate:
        self.drafts.append(user_op)
        return self.estimate

    async def send_user_operation(self, user_op: UserOperation, entry_point: str) -> str:
        self.sent.append((user_op.to_rpc_dict(), entry_point))
        return self.user_op_hash


class FakeSubscription:
    def __init__(self, log_filter: Dict[str, Any], callback, on_error=None):
        self.filter = log_filter
        self.callback = callback
        self.on_error = on_error
        self.cancelled = False
        self.installed = False
        self.delivered = 0

    @property
    def active(self) -> bool:
        return not self.cancelled

    def cancel(self) -> None:
        self.cancelled = True

    async def wait_installed(self) -> None:
        self.installed = True

    async def emit(self, log: Dict[str, Any]) -> None:
        """Deliver ``log`` the way the polling loop would; nothing arrives once cancelled."""
        if self.cancelled:
            return
        self.delivered += 1
        await self.callback(log)


class FakeRpc:
    def __init__(self, code: str = "0x", fee_data: Optional[FeeData] = None):
        self.code = code
        self.fee_data = fee_data or FeeData(gas_price=50, max_fee_per_gas=100, max_priority_fee_per_gas=2)
        self.block_number = 5_000
        self.event_logs: List[Dict[str, Any]] = []
        self.revert_logs: List[Dict[str, Any]] = []
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.log_queries: List[Dict[str, Any]] = []
        self.subscriptions: List[FakeSubscription] = []
        self.get_code_calls = 0
        self.fee_data_calls = 0

    async def get_code(self, address: str, block: str = "latest") -> str:
        self.get_code_calls += 1
        return self.code

    async def get_fee_data(self) -> FeeData:
        self.fee_data_calls += 1
        return self.fee_data

    async def get_block_number(self) -> int:
        return self.block_number

    async def chain_id(self) -> int:
        return 80001

    async def get_logs(self, log_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.log_queries.append(log_filter)
        if log_filter["topics"][0] == USER_OPERATION_REVERT_REASON_TOPIC:
            return list(self.revert_logs)
        return list(self.event_logs)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.receipts.get(tx_hash)

    def subscribe_logs(self, log_filter, callback, on_error=None) -> FakeSubscription:
        subscription = FakeSubscription(log_filter, callback, on_error)
        self.subscriptions.append(subscription)
        return subscription


def user_op_event_log(
    user_op_hash: str = USER_OP_HASH,
    sender: str = ACCOUNT,
    success: bool = True,
    nonce: int = 7,
    tx_hash: str = TX_HASH,
    block_number: int = 4_990,
    entry_point: str = ENTRY_POINT,
) -> Dict[str, Any]:
    data = encode(["uint256", "bool", "uint256", "uint256"], [nonce, success, 21_000 * 10, 21_000])
    return {
        "address": entry_point,
        "topics": [
            USER_OPERATION_EVENT_TOPIC,
            user_op_hash,
            address_topic(sender),
            address_topic(PAYMASTER),
        ],
        "data": "0x" + data.hex(),
        "transactionHash": tx_hash,
        "blockNumber": hex(block_number),
        "blockHash": BLOCK_HASH,
    }


def revert_reason_log(
    revert_data: bytes,
    user_op_hash: str = USER_OP_HASH,
    sender: str = ACCOUNT,
    nonce: int = 7,
) -> Dict[str, Any]:
    data = encode(["uint256", "bytes"], [nonce, revert_data])
    return {
        "address": ENTRY_POINT,
        "topics": [USER_OPERATION_REVERT_REASON_TOPIC, user_op_hash, address_topic(sender)],
        "data": "0x" + data.hex(),
        "transactionHash": TX_HASH,
        "blockNumber": hex(4_990),
    }


def error_string(message: str) -> bytes:
    return bytes.fromhex("08c379a0") + encode(["string"], [message])


def tx_receipt(block_number: int = 4_990, status: str = "0x1") -> Dict[str, Any]:
    return {
        "transactionHash": TX_HASH,
        "blockNumber": hex(block_number),
        "blockHash": BLOCK_HASH,
        "gasUsed": hex(90_000),
        "status": status,
    }




class JsonRpcError:
    """Marks a scripted JSON-RPC ``error`` payload."""

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data


def json_rpc_transport(results: Dict[str, Any], requests: List[Dict[str, Any]]) -> httpx.MockTransport:
    """
    MockTransport answering JSON-RPC calls from ``results`` (method -> result).

    A callable result is called with the request params; a ``JsonRpcError``
    is answered as an error payload. Every request body is appended to
    ``requests``.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        result = results[body["method"]]
        if callable(result):
            result = result(body["params"])
        if isinstance(result, JsonRpcError):
            error = {"code": result.code, "message": result.message}
            if result.data is not None:
                error["data"] = result.data
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    return httpx.MockTransport(handler)
