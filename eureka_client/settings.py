from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-level settings for the Eureka client"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EUREKA_CLIENT_",
        case_sensitive=True,
        extra="ignore",
    )

    ENVIRONMENT: str = Field(default="development", description="Deployment environment")
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FORMAT: str = Field(default="json", description="Log format (json or console)")

    # Location of the YAML configuration files
    CONFIG_DIR: str = Field(default=".", description="Directory holding the configuration files")
    CONFIG_FILENAME: str = Field(
        default="eureka-client",
        description="Base name of the configuration files (<name>.yml, <name>-<env>.yml)"
    )


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings"""
    return Settings()
