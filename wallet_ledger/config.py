"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class WalletConfig(BaseSettings):
    """Wallet ledger configuration"""

    # Storage configuration
    database_url: str = "sqlite:///wallet.db"  # memory://, sqlite:///path or postgresql://...
    lock_timeout_seconds: Optional[float] = 5.0  # None waits forever for an account lock
    postgres_pool_min: int = 1
    postgres_pool_max: int = 10

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    max_transaction_amount: str = "999999.99"
    default_page_size: int = 10
    max_page_size: int = 100

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "WALLET_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = WalletConfig()


def get_config() -> WalletConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> WalletConfig:
    """Reload configuration from environment"""
    global config
    config = WalletConfig()
    return config
