from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    # Endpoints
    erc4337_bundler_url: str = Field(default="", description="Bundler JSON-RPC endpoint")
    erc4337_rpc_url: str = Field(default="", description="Execution-layer JSON-RPC endpoint")
    erc4337_paymaster_url: str = Field(default="", description="Paymaster JSON-RPC endpoint")
    erc4337_paymaster_rpc_method: str = Field(
        default="pm_sponsorUserOperation",
        description="JSON-RPC method used to request paymasterAndData",
    )
    erc4337_entrypoint_address: str = Field(
        default="",
        description="EntryPoint used by delegates and paymaster routing",
    )
    erc4337_request_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for a single JSON-RPC request",
    )

    # Settlement tracking
    erc4337_settlement_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How long to wait for a UserOperationEvent before giving up",
    )
    erc4337_log_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Poll interval for live log filters",
    )
    erc4337_settlement_lookback_blocks: int = Field(
        default=1000,
        ge=0,
        description="Blocks scanned by the historical settlement query",
    )

    # Placeholder gas limits sent with eth_estimateUserOperationGas
    erc4337_estimate_call_gas_limit: int = Field(default=1_000_000, gt=0)
    erc4337_estimate_verification_gas_limit: int = Field(default=1_000_000, gt=0)
    erc4337_estimate_pre_verification_gas: int = Field(default=50_000, gt=0)

    # SimpleAccount calldata
    erc4337_account_execute_signature: str = Field(
        default="execute(address,uint256,bytes)",
        description="Function signature of the account execute method",
    )
    erc4337_account_execute_selector: str = Field(
        default="",
        description="Optional 4-byte selector override for execute",
    )


# Global settings instance
settings = Settings()
