"""
Cordra Client - Configuration
Client settings, process-wide defaults and environment loading
"""

import os
from dataclasses import dataclass
from typing import Optional

from .models import Options


DEFAULT_BASE_URI = "https://localhost:8443/"


@dataclass
class ClientConfig:
    """
    CordraClient configuration object.
    """
    # Cordra instance, including protocol
    base_uri: str = DEFAULT_BASE_URI

    # Request timeouts in seconds
    timeout: float = 30.0
    connect_timeout: float = 10.0

    # Verify TLS certificates
    verify_ssl: bool = True

    # Cached tokens unused for this long are discarded client-side
    token_refresh_seconds: int = 600

    # Connection pool
    max_connections: int = 100
    max_keepalive_connections: int = 20

    user_agent: str = "cordra-client-python/1.0"

    # Default credentials
    username: Optional[str] = None
    user_id: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    as_user_id: Optional[str] = None

    def default_options(self) -> Options:
        """Build request Options from the configured credentials"""
        return Options(
            user_id=self.user_id,
            username=self.username,
            password=self.password,
            token=self.token,
            as_user_id=self.as_user_id,
        )


# Global configuration instance
_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = ClientConfig()
    return _config


def set_config(config: ClientConfig) -> None:
    """Set the global configuration instance"""
    global _config
    _config = config


def load_config_from_env() -> ClientConfig:
    """Load configuration from environment variables"""
    return ClientConfig(
        base_uri=os.getenv("CORDRA_BASE_URI", DEFAULT_BASE_URI),
        timeout=float(os.getenv("CORDRA_TIMEOUT", "30")),
        verify_ssl=os.getenv("CORDRA_VERIFY_SSL", "true").lower() == "true",
        token_refresh_seconds=int(os.getenv("CORDRA_TOKEN_REFRESH", "600")),
        username=os.getenv("CORDRA_USERNAME"),
        user_id=os.getenv("CORDRA_USER_ID"),
        password=os.getenv("CORDRA_PASSWORD"),
        token=os.getenv("CORDRA_TOKEN"),
        as_user_id=os.getenv("CORDRA_AS_USER_ID"),
    )
