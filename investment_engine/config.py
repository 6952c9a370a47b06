"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class EngineConfig(BaseSettings):
    """Investment engine configuration"""

    # Storage configuration
    database_url: str = "memory://"  # memory:// or sqlite:///path/to/file.db

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Plan catalog
    plans_file: Optional[str] = None  # JSON list of plan records; built-in catalog if unset

    # Business rules configuration
    withdrawal_fee_percent: str = "3"  # Decimal as string
    default_rejection_reason: str = "Rejected by administrator"
    auto_confirm_balance_deposits: bool = True
    max_bulk_size: int = 500

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "INVEST_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = EngineConfig()


def get_config() -> EngineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> EngineConfig:
    """Reload configuration from environment"""
    global config
    config = EngineConfig()
    return config
