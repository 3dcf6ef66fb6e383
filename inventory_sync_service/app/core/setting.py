"""
Inventory Sync Service configuration
"""

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the inventory sync service directory path
INVENTORY_SYNC_SERVICE_DIR = Path(__file__).parent.parent.parent
ENV_FILE = INVENTORY_SYNC_SERVICE_DIR / ".env"


class InventorySyncSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str
    APP_VERSION: str
    DEBUG: bool = False
    ENVIRONMENT: str
    LOG_LEVEL: str = "INFO"

    # Service specific
    SERVICE_NAME: str

    # Database
    INVENTORY_DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 25
    DATABASE_MAX_OVERFLOW: int = 50

    # Distribution channel ("kafka" or "memory")
    DISTRIBUTION_CHANNEL: str = "kafka"

    # Kafka for cross-process fan-out
    KAFKA_BOOTSTRAP_SERVERS: str
    KAFKA_GROUP_ID: str
    KAFKA_TOPIC_INVENTORY_UPDATES: str = "inventory.updates"
    KAFKA_MAX_RETRIES: int = 20
    KAFKA_RETRY_DELAY: float = 2.0
    KAFKA_CONNECT_TIMEOUT: float = 30.0

    # Search result cache
    SEARCH_CACHE_DEFAULT_TTL: int = 300  # 5 minutes
    SEARCH_CACHE_MAX_ENTRIES: int = 10000
    SEARCH_CACHE_EVICTION_TARGET: float = 0.9

    # Realtime notifications ("logging" or "http")
    NOTIFICATION_SINK: str = "logging"
    NOTIFICATION_SERVICE_URL: Optional[str] = None
    NOTIFICATION_TIMEOUT: float = 5.0

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_CREDENTIALS: bool = False
    CORS_METHODS: List[str] = ["GET", "POST", "PUT", "PATCH", "DELETE"]
    CORS_HEADERS: List[str] = ["*"]


# Create a singleton instance
_settings_instance = None


def get_settings() -> InventorySyncSettings:
    """Get settings singleton instance"""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = InventorySyncSettings()
    return _settings_instance
