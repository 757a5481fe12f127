from pydantic_settings import BaseSettings
from pathlib import Path

# Project root directory (where this config file's parent/parent/parent is)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    # API Settings
    PROJECT_NAME: str = "TV Remote"
    PROJECT_VERSION: str = "1.0.0"

    # Credential database
    DATABASE_URL: str = f"sqlite:///{PROJECT_ROOT / 'tvremote.db'}"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Names announced to TVs during pairing
    REMOTE_APP_NAME: str = "PhoneRemote"
    REMOTE_DEVICE_NAME: str = "TV Remote App"

    # Samsung
    SAMSUNG_PINNED_TLS: bool = False  # Use the certificate-pinned wss channel
    SAMSUNG_TOKEN_TIMEOUT: float = 4.0  # seconds, when a cached token is presented
    SAMSUNG_PROMPT_TIMEOUT: float = 12.0  # seconds, TV shows "allow this device?"
    SAMSUNG_CONNECT_TIMEOUT: float = 5.0
    PINNED_TOKEN_WAIT: float = 0.6

    # LG webOS
    LG_KEY_TIMEOUT: float = 6.0
    LG_PROMPT_TIMEOUT: float = 15.0

    # HTTP adapters
    SONY_REQUEST_TIMEOUT: float = 3.2
    VIZIO_REQUEST_TIMEOUT: float = 3.2
    PANASONIC_REQUEST_TIMEOUT: float = 2.8
    PHILIPS_REQUEST_TIMEOUT: float = 2.6
    ROKU_REQUEST_TIMEOUT: float = 2.2

    # Bridge fallback
    BRIDGE_DEFAULT_PORT: int = 8080
    BRIDGE_PING_TIMEOUT: float = 1.2
    BRIDGE_COMMAND_TIMEOUT: float = 2.2
    BRIDGE_FALLBACK_FOR_DECLARED_BRANDS: bool = False

    # Discovery
    PROBE_TIMEOUT_SCALE: float = 1.0  # Multiplier applied to every probe timeout
    SCAN_DEFAULT_PREFIXES: list[str] = [
        "192.168.1",
        "192.168.0",
        "192.168.50",
        "10.0.0",
        "10.0.1",
        "172.20.10",
    ]
    SCAN_MAX_CONCURRENCY: int = 28

    # CORS Configuration
    CORS_ORIGINS: list[str] = ["*"]

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
