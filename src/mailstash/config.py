# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and validating mailstash configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/mailstash/  (default: ~/.config/mailstash/)
#   - Data:    $XDG_DATA_HOME/mailstash/    (default: ~/.local/share/mailstash/)
#
# Files:
#   - config.toml: User configuration (store defaults, blob store, logging)
#   - mailstash.db: SQLite blob database (in data directory)
# =============================================================================

import os
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # For writing TOML (tomllib is read-only)

from mailstash.core import NAMESPACE_TYPES, SYSTEM_FLAGS


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "mailstash"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for mailstash.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/mailstash/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


def get_xdg_data_home() -> Path:
    """
    Returns the XDG data directory for mailstash.

    Respects $XDG_DATA_HOME if set, otherwise uses ~/.local/share/mailstash/
    This is where the blob database lives.
    """
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        base = Path(xdg_data)
    else:
        base = Path.home() / ".local" / "share"
    return base / APP_NAME


# =============================================================================
# Configuration Data Structures
# =============================================================================

@dataclass
class StoreConfig:
    """
    Defaults for the folder tree.

    Attributes:
        system_flags: Permanent flags of folders that declare none.
        allow_permanent_flags: When False, flag updates drop flags that are
                               not in a folder's permanent flags.
        namespaces: Namespace layout, prefix -> {"separator", "type"}.
    """
    system_flags: list[str] = field(default_factory=lambda: list(SYSTEM_FLAGS))
    allow_permanent_flags: bool = True
    namespaces: dict[str, dict[str, str]] = field(
        default_factory=lambda: {"": {"separator": "/", "type": "personal"}}
    )


@dataclass
class BlobConfig:
    """
    Configuration for the blob store.

    Attributes:
        database: SQLite file of the bundled blob store ("" = XDG default).
        bucket: Bucket holding incoming messages. Derived from the user
                when empty, see bucket_for().
        bucket_suffix: Appended to the derived bucket name.
        snapshot_key: Name under which mailbox snapshots are saved.
        skip_suffix: Listing entries whose key contains this are not messages.
        page_size: Entries per listing page.
    """
    database: str = ""
    bucket: str = ""
    bucket_suffix: str = ".inbound"
    snapshot_key: str = "mbox.json"
    skip_suffix: str = ".json"
    page_size: int = 1000

    def bucket_for(self, user: str) -> str:
        """
        Bucket name for a user.

        Example:
            >>> BlobConfig().bucket_for("alice@example.com")
            'alice--example.com.inbound'
        """
        if self.bucket:
            return self.bucket
        return user.replace("@", "--") + self.bucket_suffix


@dataclass
class LoggingConfig:
    """
    Configuration for logging.

    Attributes:
        level: Root log level name ("DEBUG", "INFO", "WARNING", ...).
    """
    level: str = "WARNING"


@dataclass
class Config:
    """
    Main configuration container for mailstash.

    Attributes:
        user: Mailbox owner (e.g., "alice@example.com").
        store: Folder tree defaults.
        blobs: Blob store configuration.
        logging: Logging configuration.

    Usage:
        >>> config = Config.load()
        >>> config.blobs.bucket_for(config.user)
        'alice--example.com.inbound'
    """
    user: str = ""

    store: StoreConfig = field(default_factory=StoreConfig)
    blobs: BlobConfig = field(default_factory=BlobConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    @staticmethod
    def database_path() -> Path:
        """Returns the default path of the SQLite blob database."""
        return get_xdg_data_home() / "mailstash.db"

    @property
    def blob_database(self) -> Path:
        """The configured blob database path, or the XDG default."""
        if self.blobs.database:
            return Path(self.blobs.database).expanduser()
        return self.database_path()

    @property
    def bucket(self) -> str:
        """Bucket of the configured user."""
        return self.blobs.bucket_for(self.user)

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from the config file.

        If the config file doesn't exist, returns default configuration.

        Args:
            path: Config file to read. Defaults to the XDG location.

        Returns:
            Loaded Config object.

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or cls.config_file_path()

        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file: {e}") from e

        return cls._from_dict(data)

    def save(self, path: Path | None = None) -> None:
        """
        Save configuration to the config file.

        Creates the config directory if it doesn't exist.
        """
        config_path = path or self.config_file_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).

        Raises:
            ConfigError: If a value has the wrong shape.
        """
        config = cls()

        general = data.get("general", {})
        config.user = general.get("user", "")

        store = data.get("store", {})
        namespaces = store.get("namespaces", {"": {"separator": "/", "type": "personal"}})
        for prefix, namespace in namespaces.items():
            if not isinstance(namespace, dict):
                raise ConfigError(f"Namespace {prefix!r} must be a table")
            if namespace.get("type", "personal") not in NAMESPACE_TYPES:
                raise ConfigError(
                    f"Namespace {prefix!r} has invalid type {namespace.get('type')!r}"
                )
        config.store = StoreConfig(
            system_flags=list(store.get("system_flags", SYSTEM_FLAGS)),
            allow_permanent_flags=store.get("allow_permanent_flags", True),
            namespaces=dict(namespaces),
        )

        blobs = data.get("blobs", {})
        config.blobs = BlobConfig(
            database=blobs.get("database", ""),
            bucket=blobs.get("bucket", ""),
            bucket_suffix=blobs.get("bucket_suffix", ".inbound"),
            snapshot_key=blobs.get("snapshot_key", "mbox.json"),
            skip_suffix=blobs.get("skip_suffix", ".json"),
            page_size=blobs.get("page_size", 1000),
        )
        if config.blobs.page_size < 1:
            raise ConfigError("blobs.page_size must be at least 1")

        log = data.get("logging", {})
        config.logging = LoggingConfig(level=str(log.get("level", "WARNING")).upper())

        return config

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert Config to a dictionary for TOML serialization.
        """
        data: dict[str, Any] = {}

        data["general"] = {
            "user": self.user,
        }

        data["store"] = {
            "system_flags": list(self.store.system_flags),
            "allow_permanent_flags": self.store.allow_permanent_flags,
            "namespaces": {
                prefix: dict(namespace) for prefix, namespace in self.store.namespaces.items()
            },
        }

        data["blobs"] = {
            "database": self.blobs.database,
            "bucket": self.blobs.bucket,
            "bucket_suffix": self.blobs.bucket_suffix,
            "snapshot_key": self.blobs.snapshot_key,
            "skip_suffix": self.blobs.skip_suffix,
            "page_size": self.blobs.page_size,
        }

        data["logging"] = {
            "level": self.logging.level,
        }

        return data


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print all XDG paths for debugging.
    Useful for users wondering where their config/data is stored.
    """
    print(f"Config:  {get_xdg_config_home()}")
    print(f"Data:    {get_xdg_data_home()}")
    print()
    print(f"Config file:  {Config.config_file_path()}")
    print(f"Database:     {Config.database_path()}")
