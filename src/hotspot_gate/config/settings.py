"""
Pydantic Settings Configuration
=================================

Type-safe configuration management using Pydantic.
Validates all configuration values at startup and fails fast with clear error messages.
"""

from typing import List, Optional
from pathlib import Path
from importlib import metadata
from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic_settings import BaseSettings
import yaml


def _project_version() -> str:
    """Resolve the project version from package metadata."""
    try:
        return metadata.version("hotspot-gate")
    except metadata.PackageNotFoundError:
        return "0.0.0-dev"


_CHANGEME_PREFIXES = ("changeme", "change-me", "your_", "your-", "placeholder")


def _is_placeholder(value: str) -> bool:
    """Return True if value looks like an unfilled template placeholder."""
    v = value.lower()
    return any(v.startswith(p) or p in v for p in _CHANGEME_PREFIXES)


class TelegramConfig(BaseModel):
    """Telegram admin channel configuration"""
    bot_token: Optional[str] = Field(None, description="Telegram bot token from BotFather")
    admin_chat_id: Optional[str] = Field(None, description="Chat that receives requests and may decide them")

    @field_validator('bot_token')
    @classmethod
    def validate_token(cls, v: Optional[str]) -> Optional[str]:
        """Validate bot token format"""
        if v is None:
            return v
        if _is_placeholder(v):
            raise ValueError(
                "Telegram bot token is still set to a placeholder value. "
                "Set a real token from @BotFather."
            )
        if ':' not in v:
            raise ValueError("Bot token must be in format: 123456:ABC-DEF...")
        return v

    @field_validator('admin_chat_id', mode='before')
    @classmethod
    def coerce_chat_id(cls, v):
        """Chat ids arrive as ints from YAML and as strings from the environment"""
        return None if v is None else str(v)

    model_config = ConfigDict(extra='allow')


class RouterConfig(BaseModel):
    """RouterOS API target for direct provisioning"""
    enabled: bool = Field(False, description="Provision approved requests directly on the router")
    host: str = Field("192.168.88.1", description="Router address")
    port: int = Field(8728, ge=1, le=65535, description="RouterOS API port")
    username: str = Field("admin", description="API user")
    password: str = Field("", description="API password")
    connect_timeout: float = Field(5.0, gt=0, le=120, description="Connect timeout in seconds")
    read_timeout: float = Field(10.0, gt=0, le=300, description="Per-sentence read timeout in seconds")
    hotspot_server: Optional[str] = Field(None, description="Hotspot server name for new users")

    model_config = ConfigDict(extra='allow')


class LedgerConfig(BaseModel):
    """Token ledger configuration"""
    path: Path = Field(Path("data/reqs.json"), description="JSON file holding the ledger")
    allowed_profiles: List[str] = Field(
        default_factory=lambda: ["1h", "3h"],
        description="Profiles the administrator may grant"
    )
    max_claim: int = Field(50, ge=1, le=1000, description="Upper bound for one poll's claim limit")

    @field_validator('allowed_profiles')
    @classmethod
    def validate_profiles(cls, v: List[str]) -> List[str]:
        profiles = [p.strip() for p in v if p and p.strip()]
        if not profiles:
            raise ValueError("At least one allowed profile is required")
        for p in profiles:
            if '|' in p:
                raise ValueError(f"Profile name may not contain '|': {p!r}")
        return profiles

    model_config = ConfigDict(extra='allow')


class WebConfig(BaseModel):
    """HTTP gateway configuration"""
    host: str = Field("0.0.0.0", description="Host to bind to")
    port: int = Field(3000, ge=1, le=65535, description="Port to bind to")

    model_config = ConfigDict(extra='allow')


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field("json", description="Log format (json, text)")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in {'json', 'text'}:
            raise ValueError("Log format must be 'json' or 'text'")
        return v

    model_config = ConfigDict(extra='allow')


class Settings(BaseSettings):
    """
    Main application settings with type validation.

    Configuration is loaded from:
    1. YAML config file (if provided)
    2. Environment variables with HOTSPOT_ prefix, for anything the YAML leaves unset
    3. Default values (fallback)

    Environment variable mapping uses double-underscore nesting:
      HOTSPOT_TELEGRAM__BOT_TOKEN
      HOTSPOT_TELEGRAM__ADMIN_CHAT_ID
      HOTSPOT_PUBLIC_URL
      HOTSPOT_ROUTER__HOST
    """

    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    public_url: Optional[str] = Field(None, description="Externally reachable base URL, e.g. https://gate.example.com")
    version: str = Field(default_factory=_project_version, description="Project version")

    model_config = ConfigDict(
        env_prefix='HOTSPOT_',
        env_nested_delimiter='__',
        extra='allow',
        validate_assignment=True,
    )

    @field_validator('public_url')
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip('/') if v else v

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Settings instance with validated configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If configuration is invalid
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables only."""
        return cls()

    def ensure_directories(self) -> None:
        """Create the ledger directory if it doesn't exist"""
        self.ledger.path.parent.mkdir(parents=True, exist_ok=True)

    def validate_required_config(self) -> List[str]:
        """
        Validate that all required configuration is present.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.telegram.bot_token:
            errors.append("Telegram bot token is missing (HOTSPOT_TELEGRAM__BOT_TOKEN)")
        if not self.telegram.admin_chat_id:
            errors.append("Telegram admin chat id is missing (HOTSPOT_TELEGRAM__ADMIN_CHAT_ID)")
        if not self.public_url:
            errors.append("Public URL is missing (HOTSPOT_PUBLIC_URL)")
        if self.router.enabled and not self.router.host:
            errors.append("Direct provisioning is enabled but router.host is empty")

        return errors


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """
    Load and validate application settings.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Validated Settings instance

    Raises:
        ValueError: If configuration is invalid
    """
    if config_path:
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings.from_env()

    errors = settings.validate_required_config()
    if errors:
        raise ValueError(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    settings.ensure_directories()
    return settings


__all__ = [
    'Settings',
    'TelegramConfig',
    'RouterConfig',
    'LedgerConfig',
    'WebConfig',
    'LoggingConfig',
    'load_settings',
]
