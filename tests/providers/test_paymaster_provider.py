"""
Wire-level tests for the paymaster JSON-RPC provider.
"""

import httpx
import pytest

from aa_provider.core.execution.userop import UserOperation
from aa_provider.providers.paymaster import PaymasterError, PaymasterProvider

from fakes import ACCOUNT, ENTRY_POINT, json_rpc_transport

PAYMASTER_AND_DATA = "0x" + "aa" * 20 + "bb" * 32


def _paymaster(result, requests, rpc_method=None) -> PaymasterProvider:
    method = rpc_method or "pm_sponsorUserOperation"
    client = httpx.AsyncClient(transport=json_rpc_transport({method: result}, requests))
    return PaymasterProvider("https://paymaster.test", rpc_method=method, client=client)


def _user_op() -> UserOperation:
    return UserOperation(
        sender=ACCOUNT,
        nonce=1,
        init_code="0x",
        call_data="0xb61d27f6",
        max_fee_per_gas=100,
        max_priority_fee_per_gas=2,
        call_gas_limit=1,
        verification_gas_limit=2,
        pre_verification_gas=3,
    )


@pytest.mark.asyncio
async def test_sponsor_returns_paymaster_and_data():
    requests = []
    paymaster = _paymaster({"paymasterAndData": PAYMASTER_AND_DATA}, requests)

    result = await paymaster.sponsor_user_operation(_user_op(), ENTRY_POINT, context={"type": "payg"})

    assert result == PAYMASTER_AND_DATA
    params = requests[0]["params"]
    assert params[1] == ENTRY_POINT
    assert params[2] == {"type": "payg"}
    assert params[0]["callGasLimit"] == "0x1"


@pytest.mark.asyncio
async def test_plain_string_result_and_custom_method():
    requests = []
    paymaster = _paymaster(PAYMASTER_AND_DATA, requests, rpc_method="alchemy_requestPaymasterAndData")

    assert await paymaster.sponsor_user_operation(_user_op(), ENTRY_POINT) == PAYMASTER_AND_DATA
    assert requests[0]["method"] == "alchemy_requestPaymasterAndData"
    assert len(requests[0]["params"]) == 2


@pytest.mark.asyncio
async def test_invalid_response():
    paymaster = _paymaster({"unexpected": True}, [])

    with pytest.raises(PaymasterError):
        await paymaster.sponsor_user_operation(_user_op(), ENTRY_POINT)
