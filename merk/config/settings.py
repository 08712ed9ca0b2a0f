"""
Configuration for Merk.

A YAML file with one mapping per section (``store``, ``database``, ``redis``,
``logging``, ``metrics``). Every key is optional; anything omitted keeps its
dataclass default. String values may reference the environment as
``${NAME}`` or ``${NAME:fallback}``.
"""

import os
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Type, TypeVar

import yaml

from merk.exceptions import InvalidConfigurationError
from merk.logging_config import get_logger

logger = get_logger(__name__)


VALID_BACKENDS = ["memory", "sqlite", "sql", "redis"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_ENV_REF = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

# Values holding filesystem paths get ``~`` expanded
_PATH_FIELDS = {"ssl_ca_certs", "ssl_certfile", "ssl_keyfile", "file"}

T = TypeVar("T")


def _expand_env_vars(value: Any) -> Any:
    """
    Substitute ``${NAME}`` and ``${NAME:fallback}`` references.

    Walks nested dicts and lists. An unset variable without a fallback
    becomes the empty string.
    """
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), value)
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


@dataclass
class StoreConfig:
    """Backing store selection."""

    backend: str = "memory"  # "memory", "sqlite"/"sql" or "redis"
    prefix: str = ""  # Namespace prefix for tree keys (UTF-8)

    @property
    def prefix_bytes(self) -> bytes:
        return self.prefix.encode("utf-8")


@dataclass
class DatabaseConfig:
    """SQL store configuration."""

    url: str = "sqlite:///~/.merk/merk.db"
    echo: bool = False


@dataclass
class RedisConfig:
    """Redis store configuration."""

    host: str = "localhost"
    port: int = 6379
    password: str = ""
    db: int = 0
    ssl: bool = False
    ssl_ca_certs: str = ""
    ssl_certfile: str = ""
    ssl_keyfile: str = ""
    namespace: str = "merk"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = ""  # stderr when empty
    json_format: bool = True


@dataclass
class MetricsConfig:
    enabled: bool = False


@dataclass
class MerkConfig:
    """All configuration sections."""

    store: StoreConfig = field(default_factory=StoreConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)


def get_default_config_path() -> str:
    return os.path.expanduser("~/.merk/config.yaml")


def get_default_config() -> MerkConfig:
    return MerkConfig()


def _as_bool(value: Any) -> bool:
    # Env var expansion turns booleans into strings
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _coerce(name: str, default: Any, value: Any) -> Any:
    if isinstance(default, bool):
        return _as_bool(value)
    if isinstance(default, int):
        return int(value)
    text = "" if value is None else str(value)
    if name in _PATH_FIELDS:
        text = os.path.expanduser(text)
    return text


def _build_section(section_type: Type[T], data: Any) -> T:
    """
    Build one section dataclass, coercing each value to its default's type.

    Unknown keys are ignored.

    Raises:
        InvalidConfigurationError: If the section is not a mapping
        ValueError: If a value cannot be coerced
    """
    section = section_type()
    if data is None:
        return section
    if not isinstance(data, dict):
        raise InvalidConfigurationError(
            f"Section '{section_type.__name__}' must be a mapping, got {type(data).__name__}"
        )
    for f in fields(section_type):
        if f.name in data:
            setattr(section, f.name, _coerce(f.name, getattr(section, f.name), data[f.name]))
    return section


def _build_config_from_dict(config_data: Dict[str, Any]) -> MerkConfig:
    config = MerkConfig(
        store=_build_section(StoreConfig, config_data.get("store")),
        database=_build_section(DatabaseConfig, config_data.get("database")),
        redis=_build_section(RedisConfig, config_data.get("redis")),
        logging=_build_section(LoggingConfig, config_data.get("logging")),
        metrics=_build_section(MetricsConfig, config_data.get("metrics")),
    )
    config.store.backend = config.store.backend.lower()
    return config


def _validate_config(config: MerkConfig) -> None:
    """
    Check cross-field constraints.

    Redis settings are only checked when Redis is the selected backend, and
    the database URL only for the SQL backends.

    Raises:
        InvalidConfigurationError: On the first violated constraint
    """
    backend = config.store.backend
    if backend not in VALID_BACKENDS:
        raise InvalidConfigurationError(
            f"store backend must be one of {VALID_BACKENDS}, got '{backend}'"
        )

    if backend in ("sqlite", "sql") and not config.database.url:
        raise InvalidConfigurationError("database url cannot be empty for the SQL backend")

    if backend == "redis":
        redis_config = config.redis
        if not redis_config.host:
            raise InvalidConfigurationError("redis host cannot be empty for the Redis backend")
        if not 0 < redis_config.port < 65536:
            raise InvalidConfigurationError(f"redis port must be in 1..65535, got {redis_config.port}")
        if redis_config.db < 0:
            raise InvalidConfigurationError(f"redis db must be non-negative, got {redis_config.db}")
        if not redis_config.namespace:
            raise InvalidConfigurationError("redis namespace cannot be empty")

    if config.logging.level.upper() not in VALID_LOG_LEVELS:
        raise InvalidConfigurationError(
            f"logging level must be one of {VALID_LOG_LEVELS}, got '{config.logging.level}'"
        )


def load_config(config_path: Optional[str] = None) -> MerkConfig:
    """
    Read and validate a configuration file.

    A missing or empty file yields the defaults.

    Args:
        config_path: File to read (``~/.merk/config.yaml`` if None)

    Returns:
        Validated configuration

    Raises:
        InvalidConfigurationError: If the file cannot be read or parsed, is
            not a mapping, or holds invalid values
    """
    path = os.path.expanduser(str(config_path or get_default_config_path()))

    if not os.path.exists(path):
        logger.info(f"No configuration at {path}, using defaults")
        return get_default_config()

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Cannot parse {path}: {e}")
        raise InvalidConfigurationError(f"Failed to parse YAML in '{path}': {e}") from e
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        raise InvalidConfigurationError(f"Failed to read '{path}': {e}") from e

    if raw is None:
        logger.info(f"Configuration at {path} is empty, using defaults")
        return get_default_config()

    if not isinstance(raw, dict):
        raise InvalidConfigurationError(
            f"Configuration file '{path}' must contain a mapping at top level"
        )

    try:
        config = _build_config_from_dict(_expand_env_vars(raw))
        _validate_config(config)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid value in {path}: {e}")
        raise InvalidConfigurationError(f"Invalid configuration in '{path}': {e}") from e
    except InvalidConfigurationError as e:
        logger.error(f"Invalid configuration in {path}: {e}")
        raise

    logger.debug(f"Loaded configuration from {path}", backend=config.store.backend)
    return config


def apply_config(config: MerkConfig) -> None:
    """
    Configure logging and, if enabled, the global metrics registry.

    Args:
        config: Loaded configuration
    """
    from merk.logging_config import setup_logging
    from merk.monitoring.metrics import initialize_metrics_registry

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file or None,
        json_format=config.logging.json_format,
    )

    if config.metrics.enabled:
        initialize_metrics_registry()
