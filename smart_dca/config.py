"""Application configuration via environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings

SUI_RPC_URLS = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
}


class Settings(BaseSettings):
    database_url: str = "sqlite:///./smart_dca.db"
    encryption_key: str = ""  # Fernet key; generate with: python -m smart_dca.cli generate-key
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]  # Next.js dev server

    # Admin routes (delete, manual sweep, scheduler status)
    admin_api_key: str = ""

    # Telegram
    telegram_bot_token: str = ""
    telegram_admin_chat_ids: list[int] = []

    # Sui network
    sui_network: Literal["testnet", "mainnet"] = "testnet"
    sui_rpc_url: str = ""  # derived from sui_network when empty
    vault_object_id: str = "0x629a54343d8ec44e333edd9793d1df573c5329f37743d194ddb3a5b853f904ce"

    # Cetus aggregator
    cetus_aggregator_url: str = "https://api-sui.cetus.zone/router_v3"
    router_paper_trading: bool = True
    router_timeout_s: float = 15.0

    # Scheduling
    execute_sweep_minutes: int = 5
    yield_sweep_minutes: int = 30

    # Yield estimate used until the vault reports a real rate
    default_apy: float = 0.12

    model_config = {"env_prefix": "DCA_", "env_file": ".env"}

    @property
    def resolved_rpc_url(self) -> str:
        return self.sui_rpc_url or SUI_RPC_URLS[self.sui_network]


settings = Settings()
