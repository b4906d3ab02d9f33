"""Runtime configuration, read from SONOSNET_* environment variables."""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for discovery, device requests and the HTTP front end."""

    model_config = SettingsConfigDict(env_prefix="SONOSNET_", populate_by_name=True, extra="ignore")

    listen_on_interface: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SONOSNET_LISTEN_ON_INTERFACE", "LISTEN_ON_INTERFACE"),
        description="Interface name or IPv4 address to bind the discovery socket to.")
    request_timeout: float = Field(default=5.0, gt=0, le=60, description="Timeout for one SOAP round-trip in seconds.")
    multicast_ttl: int = Field(default=4, ge=1, le=255, description="TTL of outgoing probe datagrams.")
    probe_count: int = Field(default=2, ge=1, le=10, description="Identical probe datagrams sent per probe.")
    http_bind: str = Field(default="0.0.0.0:5000", description="Address the HTTP front end listens on.")
    log_level: str = Field(default="INFO", description="Log level")


@lru_cache(maxsize=1)
def get_settings():
    return Settings()
