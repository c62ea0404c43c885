"""
Configuration management for the CMS server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set an explicit DATA_DIR
    - The expiry interval is always positive

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
    - Keep log_config() free of anything sensitive
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

LOG_FORMATS = ("json", "text")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for the SQLite database
        db_filename: Database file name
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    data_dir: str = "./data"
    db_filename: str = "cms.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "./data"),
            db_filename=os.getenv("DB_FILENAME", "cms.db"),
            wal_mode=_env_bool("SQLITE_WAL_MODE", "true"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class ExpiryConfig:
    """Banner expiry scanner configuration.

    Attributes:
        enabled: Whether the scanner runs
        interval_seconds: Fixed delay between sweeps
    """

    enabled: bool = True
    interval_seconds: float = 3600  # 1 hour

    @classmethod
    def from_env(cls) -> ExpiryConfig:
        """Load configuration from environment variables."""
        return cls(
            enabled=_env_bool("BANNER_EXPIRY_ENABLED", "true"),
            interval_seconds=float(os.getenv("BANNER_EXPIRY_INTERVAL_SECONDS", "3600")),
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind
        port: Port to listen on
        cors_origins: Allowed CORS origins ("*" allows any)
    """

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: tuple[str, ...] = ("http://localhost:4200",)

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        origins = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:4200")
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json").lower(),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        storage: Local storage configuration
        expiry: Banner expiry scanner configuration
        http: HTTP server configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    expiry: ExpiryConfig = field(default_factory=ExpiryConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            expiry=ExpiryConfig.from_env(),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.expiry.interval_seconds <= 0:
            raise ValueError("BANNER_EXPIRY_INTERVAL_SECONDS must be positive")

        if not 0 < self.http.port < 65536:
            raise ValueError(f"HTTP_PORT out of range: {self.http.port}")

        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )

        if not self.storage.db_filename:
            raise ValueError("DB_FILENAME must not be empty")

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "data_dir": self.storage.data_dir,
                "db_filename": self.storage.db_filename,
                "expiry_enabled": self.expiry.enabled,
                "expiry_interval_seconds": self.expiry.interval_seconds,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "cors_origins": list(self.http.cors_origins),
                "log_level": self.observability.log_level,
            },
        )
