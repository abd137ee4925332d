"""
Configuration for the sendwallet CLI.

Library entry points take explicit parameters; only the CLI reads settings.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sendwallet.backends.esplora import DEFAULT_TIMEOUT, default_api_url
from sendwallet.history import DEFAULT_MAX_PAGES
from sendwallet.models import DEFAULT_FEE_RATE, NetworkType


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SENDWALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    network: NetworkType = NetworkType.TESTNET

    # Empty means the public default for the selected network
    esplora_api_url: str = ""

    fee_rate: int = Field(default=DEFAULT_FEE_RATE, ge=1, description="sat/vB")
    request_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    history_max_pages: int = Field(default=DEFAULT_MAX_PAGES, ge=1)

    log_level: str = "INFO"

    def get_esplora_api_url(self, network: NetworkType | None = None) -> str:
        return self.esplora_api_url.rstrip("/") or default_api_url(network or self.network)


def get_settings() -> Settings:
    return Settings()
