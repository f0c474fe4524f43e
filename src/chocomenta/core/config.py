"""
Configuration management for Chocomenta Radio
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

DEFAULT_CHAT_COLORS = ["#e74c3c", "#3498db", "#2ecc71", "#f1c40f", "#e67e22", "#1abc9c"]


@dataclass
class ServerConfig:
    """Configuration for the HTTP/WebSocket server."""

    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000"]
    )
    static_dir: str = "public"  # Served at / when the directory exists


@dataclass
class YouTubeConfig:
    """Configuration for the YouTube Data API."""

    api_keys: List[str] = field(default_factory=list)
    search_limit: int = 5
    playlist_limit: int = 50
    timeout: float = 10.0
    quota_cooldown_seconds: int = 3600  # How long an exhausted key sits out


@dataclass
class SpotifyConfig:
    """Configuration for the Spotify Web API (client credentials only)."""

    client_id: str = ""
    client_secret: str = ""
    playlist_limit: int = 30
    timeout: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class AutoplayConfig:
    """Configuration for automatic continuation when the queue runs dry."""

    enabled: bool = True
    candidate_count: int = 5

    def validate(self) -> None:
        """Validate autoplay configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.candidate_count < 1:
            raise ValueError(
                f"candidate_count must be at least 1, got {self.candidate_count}"
            )


@dataclass
class AnnouncementsConfig:
    """Configuration for the daily announcement lookup."""

    path: str = "surprises.json"


@dataclass
class ChatConfig:
    """Configuration for chat colors and system messages."""

    colors: List[str] = field(default_factory=lambda: list(DEFAULT_CHAT_COLORS))
    system_sender: str = "Radio"
    system_color: str = "#95a5a6"

    def validate(self) -> None:
        """Validate chat configuration values.

        Raises:
            ValueError: If the palette is empty
        """
        if not self.colors:
            raise ValueError("Chat color palette must not be empty")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # Default: ~/.local/share/chocomenta/chocomenta.log
    console_output: bool = True


@dataclass
class Config:
    """Main configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    youtube: YouTubeConfig = field(default_factory=YouTubeConfig)
    spotify: SpotifyConfig = field(default_factory=SpotifyConfig)
    autoplay: AutoplayConfig = field(default_factory=AutoplayConfig)
    announcements: AnnouncementsConfig = field(default_factory=AnnouncementsConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "chocomenta"
    return Path.home() / ".config" / "chocomenta"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "chocomenta"
    return Path.home() / ".local" / "share" / "chocomenta"


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Current working directory
    2. XDG_CONFIG_HOME/chocomenta (or ~/.config/chocomenta)
    """
    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config
    return get_config_dir() / "config.toml"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Chocomenta Radio Configuration

[server]
host = "0.0.0.0"
port = 3000

# Origins allowed to call the HTTP API
allowed_origins = ["http://localhost:3000"]

# Directory with the browser client, served at / when present
static_dir = "public"

[youtube]
# API keys are rotated round-robin; a key that runs out of quota sits out
# for quota_cooldown_seconds. Prefer YOUTUBE_API_KEYS in .env over this list.
# api_keys = ["key-one", "key-two"]
search_limit = 5
playlist_limit = 50
timeout = 10.0
quota_cooldown_seconds = 3600

[spotify]
# Client credentials for playlist import and search normalisation.
# Prefer SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET in .env.
# client_id = "your-client-id"
# client_secret = "your-client-secret"
playlist_limit = 30
timeout = 10.0

[autoplay]
# Continue with a related track when the queue runs out
enabled = true

# Number of candidates to pick randomly from
candidate_count = 5

[announcements]
# JSON list of {"date": "YYYY-MM-DD", ...} records
path = "surprises.json"

[chat]
colors = ["#e74c3c", "#3498db", "#2ecc71", "#f1c40f", "#e67e22", "#1abc9c"]
system_sender = "Radio"
system_color = "#95a5a6"

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/chocomenta/chocomenta.log)
# log_file = "/path/to/chocomenta.log"

# Also output logs to stderr
console_output = true
""".strip()


def _split_env_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _apply_env_overrides(config: Config) -> None:
    """Override credentials and server settings with environment variables."""
    api_keys = os.environ.get("YOUTUBE_API_KEYS")
    if api_keys:
        config.youtube.api_keys = _split_env_list(api_keys)
    api_key = os.environ.get("YOUTUBE_API_KEY")
    if api_key and api_key not in config.youtube.api_keys:
        config.youtube.api_keys = [api_key] + config.youtube.api_keys

    spotify_client_id = os.environ.get("SPOTIFY_CLIENT_ID")
    spotify_client_secret = os.environ.get("SPOTIFY_CLIENT_SECRET")
    if spotify_client_id:
        config.spotify.client_id = spotify_client_id
    if spotify_client_secret:
        config.spotify.client_secret = spotify_client_secret

    allowed_origins = os.environ.get("ALLOWED_ORIGINS")
    if allowed_origins:
        config.server.allowed_origins = _split_env_list(allowed_origins)

    port = os.environ.get("PORT")
    if port:
        try:
            config.server.port = int(port)
        except ValueError:
            logger.warning(f"Ignoring invalid PORT value: {port!r}")


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file, falling back to defaults.

    Environment variables override TOML values:
    - YOUTUBE_API_KEY / YOUTUBE_API_KEYS
    - SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET
    - ALLOWED_ORIGINS
    - PORT
    """
    from dotenv import load_dotenv

    load_dotenv(Path.cwd() / ".env")
    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    path = Path(config_path) if config_path else get_config_path()
    config = Config()

    if not path.exists():
        logger.info(f"No configuration file at {path}, using defaults")
        _apply_env_overrides(config)
        return config

    try:
        with open(path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error(f"Error loading configuration from {path}: {e}")
        logger.error("Using default configuration.")
        _apply_env_overrides(config)
        return config

    if "server" in toml_data:
        server_data = toml_data["server"]
        config.server = ServerConfig(
            host=server_data.get("host", config.server.host),
            port=server_data.get("port", config.server.port),
            allowed_origins=server_data.get(
                "allowed_origins", config.server.allowed_origins
            ),
            static_dir=server_data.get("static_dir", config.server.static_dir),
        )

    if "youtube" in toml_data:
        youtube_data = toml_data["youtube"]
        config.youtube = YouTubeConfig(
            api_keys=list(youtube_data.get("api_keys", config.youtube.api_keys)),
            search_limit=youtube_data.get("search_limit", config.youtube.search_limit),
            playlist_limit=youtube_data.get(
                "playlist_limit", config.youtube.playlist_limit
            ),
            timeout=youtube_data.get("timeout", config.youtube.timeout),
            quota_cooldown_seconds=youtube_data.get(
                "quota_cooldown_seconds", config.youtube.quota_cooldown_seconds
            ),
        )

    if "spotify" in toml_data:
        spotify_data = toml_data["spotify"]
        config.spotify = SpotifyConfig(
            client_id=spotify_data.get("client_id", config.spotify.client_id),
            client_secret=spotify_data.get(
                "client_secret", config.spotify.client_secret
            ),
            playlist_limit=spotify_data.get(
                "playlist_limit", config.spotify.playlist_limit
            ),
            timeout=spotify_data.get("timeout", config.spotify.timeout),
        )

    if "autoplay" in toml_data:
        autoplay_data = toml_data["autoplay"]
        config.autoplay = AutoplayConfig(
            enabled=autoplay_data.get("enabled", config.autoplay.enabled),
            candidate_count=autoplay_data.get(
                "candidate_count", config.autoplay.candidate_count
            ),
        )
        try:
            config.autoplay.validate()
        except ValueError as e:
            logger.warning(f"Invalid autoplay configuration: {e}")
            logger.warning("Using default autoplay configuration.")
            config.autoplay = AutoplayConfig()

    if "announcements" in toml_data:
        config.announcements = AnnouncementsConfig(
            path=toml_data["announcements"].get("path", config.announcements.path),
        )

    if "chat" in toml_data:
        chat_data = toml_data["chat"]
        config.chat = ChatConfig(
            colors=list(chat_data.get("colors", config.chat.colors)),
            system_sender=chat_data.get("system_sender", config.chat.system_sender),
            system_color=chat_data.get("system_color", config.chat.system_color),
        )
        try:
            config.chat.validate()
        except ValueError as e:
            logger.warning(f"Invalid chat configuration: {e}")
            logger.warning("Using default chat configuration.")
            config.chat = ChatConfig()

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level),
            log_file=logging_data.get("log_file"),
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    _apply_env_overrides(config)
    return config
