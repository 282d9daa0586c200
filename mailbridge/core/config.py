"""
Configuration management for the Gmail to LINE notification bridge.

Loads configuration from:
1. .env file (secrets - never committed)
2. config.yaml (runtime settings - limits, server, logging)
"""

from dataclasses import dataclass, field
from typing import List, Optional
import os
import yaml
from dotenv import load_dotenv


DEFAULT_PUBSUB_TOPIC = "projects/line-gmail-bot/topics/gmail-notifications"


@dataclass
class LineConfig:
    """LINE Messaging API configuration."""

    channel_token: str = ""
    channel_secret: str = ""

    def is_configured(self) -> bool:
        """Check if both the channel token and secret are set."""
        return bool(self.channel_token and self.channel_secret)


@dataclass
class GmailConfig:
    """Gmail API / Google OAuth configuration."""

    credentials_path: str = ""
    redirect_uri: str = ""  # Falls back to the first redirect_uris entry of the credentials file
    pubsub_topic: str = DEFAULT_PUBSUB_TOPIC
    scopes: List[str] = field(
        default_factory=lambda: ["https://www.googleapis.com/auth/gmail.readonly"]
    )

    def is_configured(self) -> bool:
        """Check if a credentials file path is set."""
        return bool(self.credentials_path)


@dataclass
class DatabaseConfig:
    """Relational database configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "mailbridge"
    user: str = "postgres"
    password: str = ""
    url: str = ""  # Full SQLAlchemy URL, overrides the fields above

    @property
    def connection_string(self) -> str:
        """Generate the SQLAlchemy connection string."""
        if self.url:
            return self.url
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class AppConfig:
    """Runtime application configuration (from config.yaml)."""

    # Web server
    host: str = "0.0.0.0"
    port: int = 8080

    # Mail listing
    unread_limit: int = 10  # Max messages for the unread list command
    recent_list_limit: int = 10  # Max messages for the recent list command
    push_limit: int = 5  # Max unread messages scanned per user per push notification
    snippet_length: int = 100  # Body preview is truncated to this many characters

    # OAuth handshake
    pending_auth_ttl_minutes: Optional[int] = 10  # None = pending auth never expires

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class ConfigManager:
    """Central configuration manager.

    Loads configuration from:
    - .env file for secrets (LINE channel, Gmail credentials, DB credentials)
    - config.yaml for runtime settings
    """

    def __init__(self, env_file: Optional[str] = None, config_file: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            env_file: Path to .env file (default: .env in working directory)
            config_file: Path to config.yaml file (default: config.yaml in working directory)
        """
        if env_file is None:
            env_file = ".env"
        load_dotenv(env_file)

        if config_file is None:
            config_file = "config.yaml"
        self.config_file = config_file

        self._load_env_config()
        self._load_yaml_config()

    def _load_env_config(self):
        """Load secrets from environment (.env already applied)."""

        self.line = LineConfig(
            channel_token=os.getenv("LINE_CHANNEL_TOKEN", ""),
            channel_secret=os.getenv("LINE_CHANNEL_SECRET", ""),
        )

        self.gmail = GmailConfig(
            credentials_path=os.getenv("GMAIL_CREDENTIALS_PATH", ""),
            redirect_uri=os.getenv("GMAIL_REDIRECT_URI", ""),
            pubsub_topic=os.getenv("PUBSUB_TOPIC") or DEFAULT_PUBSUB_TOPIC,
        )

        self.database = DatabaseConfig(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "mailbridge"),
            user=os.getenv("DB_USER", "postgres"),
            password=os.getenv("DB_PASSWORD", ""),
            url=os.getenv("DATABASE_URL", ""),
        )

        # PORT from the environment wins over config.yaml (container platforms set it)
        self._env_port = os.getenv("PORT")

    def _load_yaml_config(self):
        """Load runtime configuration from config.yaml."""
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file, "r") as f:
                    data = yaml.safe_load(f) or {}
                self.app = AppConfig(**data)
            except Exception as e:
                print(f"WARNING: Failed to load {self.config_file}: {e}")
                print("Using default configuration")
                self.app = AppConfig()
        else:
            self.app = AppConfig()

        if self._env_port:
            self.app.port = int(self._env_port)

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.line.channel_token:
            errors.append("LINE_CHANNEL_TOKEN not set in .env")
        if not self.line.channel_secret:
            errors.append("LINE_CHANNEL_SECRET not set in .env")

        if not self.gmail.credentials_path:
            errors.append("GMAIL_CREDENTIALS_PATH not set in .env (Gmail features disabled)")
        elif not os.path.exists(self.gmail.credentials_path):
            errors.append(f"Gmail credentials file not found: {self.gmail.credentials_path}")

        if not self.database.url and not self.database.password:
            errors.append("DB_PASSWORD not set in .env")

        if self.app.unread_limit < 1:
            errors.append("unread_limit must be >= 1")
        if self.app.push_limit < 1:
            errors.append("push_limit must be >= 1")
        if self.app.recent_list_limit < 1:
            errors.append("recent_list_limit must be >= 1")

        return errors


# Global singleton instance
_config: Optional[ConfigManager] = None


def get_config(env_file: Optional[str] = None, config_file: Optional[str] = None) -> ConfigManager:
    """
    Get global configuration manager instance (singleton).

    Args:
        env_file: Path to .env file (only used on first call)
        config_file: Path to config.yaml file (only used on first call)

    Returns:
        ConfigManager instance
    """
    global _config
    if _config is None:
        _config = ConfigManager(env_file=env_file, config_file=config_file)
    return _config
