"""
Shared fixtures for the UserOperation pipeline tests.
"""

import pytest

from aa_provider.core.execution.entry_points import EntryPointRegistry
from aa_provider.core.execution.userop import UserOperation

from fakes import ACCOUNT, FakeBundler, FakeDelegate, FakeRpc


@pytest.fixture
def delegate() -> FakeDelegate:
    return FakeDelegate()


@pytest.fixture
def bundler() -> FakeBundler:
    return FakeBundler()


@pytest.fixture
def rpc() -> FakeRpc:
    return FakeRpc()


@pytest.fixture
def registry(bundler: FakeBundler) -> EntryPointRegistry:
    return EntryPointRegistry(bundler.supported_entry_points)


@pytest.fixture
def populated_user_op() -> UserOperation:
    """Fully estimated, unsigned operation."""
    return UserOperation(
        sender=ACCOUNT,
        nonce=7,
        init_code="0x",
        call_data="0xb61d27f6",
        max_fee_per_gas=100,
        max_priority_fee_per_gas=2,
        call_gas_limit=35_000,
        verification_gas_limit=150_000,
        pre_verification_gas=48_000,
        paymaster_and_data="0x",
    )
