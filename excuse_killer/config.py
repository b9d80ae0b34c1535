"""Configuration management"""
import os
from pathlib import Path
from dotenv import load_dotenv

from excuse_killer.exceptions import ConfigurationError

load_dotenv()

# Storage
# Single JSON document holding every key of the local key-value store
DATA_PATH: Path = Path(os.getenv("DATA_PATH", "./data"))
STORE_FILE: Path = DATA_PATH / os.getenv("STORE_FILE", "excuse-killer.json")

# Maximum serialized size of the store in bytes (0 = unlimited)
STORAGE_QUOTA_BYTES: int = int(os.getenv("STORAGE_QUOTA_BYTES", "0"))

# Timer
TIMER_TICK_INTERVAL: float = float(os.getenv("TIMER_TICK_INTERVAL", "1.0"))

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


# Validation
def validate_config() -> None:
    """Validate configuration values"""
    if STORAGE_QUOTA_BYTES < 0:
        raise ConfigurationError(
            "STORAGE_QUOTA_BYTES must be zero or positive",
            config_key="STORAGE_QUOTA_BYTES",
        )
    if TIMER_TICK_INTERVAL <= 0:
        raise ConfigurationError(
            "TIMER_TICK_INTERVAL must be positive",
            config_key="TIMER_TICK_INTERVAL",
        )
    if LOG_LEVEL.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigurationError(
            f"Unknown LOG_LEVEL: {LOG_LEVEL}",
            config_key="LOG_LEVEL",
        )
