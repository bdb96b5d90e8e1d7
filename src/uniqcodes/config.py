"""Configuration management for the unique code generator.

This module handles loading configuration from environment variables and config files,
with sensible defaults for optional values.
"""

import logging
import os
import sys
from types import ModuleType
from typing import Any, Optional
from typing import TypedDict

from uniqcodes.pipeline import DEFAULT_NAMESPACE
from uniqcodes.sampler import DEFAULT_ALPHABET, MAX_ALPHABET_SIZE

# Configure logging
logger = logging.getLogger(__name__)

# Handle tomllib/tomli for Python 3.11+ vs earlier versions
tomllib: ModuleType | None
if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None


class _ConfigValues(TypedDict):
    quantity: int
    size: int
    prefix: str
    output: str
    namespace: str
    alphabet: str
    max_threads: int | None
    listen_port: int


class ConfigError(Exception):
    """Raised when configuration is invalid or missing required values."""

    pass


# Environment variable -> (config key, converter)
_ENV_VARS = {
    "CODES_QUANTITY": ("quantity", int),
    "CODES_SIZE": ("size", int),
    "CODES_PREFIX": ("prefix", str),
    "CODES_OUTPUT": ("output", str),
    "CODES_NAMESPACE": ("namespace", str),
    "CODES_ALPHABET": ("alphabet", str),
    "CODES_MAX_THREADS": ("max_threads", int),
    "LISTEN_PORT": ("listen_port", int),
}


def _defaults() -> _ConfigValues:
    return {
        "quantity": 10_000,
        "size": 10,
        "prefix": "",
        "output": "codes.txt",
        "namespace": DEFAULT_NAMESPACE,
        "alphabet": DEFAULT_ALPHABET,
        "max_threads": None,
        "listen_port": 8080,
    }


class Config:
    """Configuration for the unique code generator.

    Configuration is loaded with the following priority:
    1. Environment variables (highest priority)
    2. Configuration file (TOML format)
    3. Default values (lowest priority)

    Settings:
    - quantity: Number of codes to generate (default: 10000)
    - size: Length of each code including the prefix (default: 10)
    - prefix: Literal prefix of every code (default: none)
    - output: File the codes are written to; ".csv" selects CSV (default: codes.txt)
    - namespace: Namespace of dedup keys (default: "prefix")
    - alphabet: Symbols codes are drawn from (default: A-Z and 0-9)
    - max_threads: Worker thread pool size (default: executor default)
    - listen_port: Port for the HTTP service (default: 8080)
    """

    def __init__(
        self,
        quantity: int = 10_000,
        size: int = 10,
        prefix: str = "",
        output: str = "codes.txt",
        namespace: str = DEFAULT_NAMESPACE,
        alphabet: str = DEFAULT_ALPHABET,
        max_threads: Optional[int] = None,
        listen_port: int = 8080,
    ):
        """Initialize configuration with validated values.

        Raises:
            ConfigError: If configuration values are invalid
        """
        self.quantity = quantity
        self.size = size
        self.prefix = prefix
        self.output = output
        self.namespace = namespace
        self.alphabet = alphabet
        self.max_threads = max_threads
        self.listen_port = listen_port
        self.validate()

    @classmethod
    def from_env_and_file(cls, config_file: Optional[str] = None) -> "Config":
        """Load configuration from environment variables and optional config file.

        Environment variables take precedence over config file values.

        Environment variables:
        - CODES_QUANTITY, CODES_SIZE, CODES_PREFIX, CODES_OUTPUT
        - CODES_NAMESPACE, CODES_ALPHABET, CODES_MAX_THREADS
        - LISTEN_PORT

        Args:
            config_file: Path to TOML config file (optional)

        Returns:
            Config instance with loaded values

        Raises:
            ConfigError: If configuration is invalid
        """
        config_values: dict[str, Any] = dict(_defaults())

        # Load from config file if provided
        if config_file:
            config_values.update(cls._load_from_file(config_file))

        # Override with environment variables
        for env_name, (key, convert) in _ENV_VARS.items():
            if env_name in os.environ:
                try:
                    config_values[key] = convert(os.environ[env_name])
                except ValueError:
                    raise ConfigError(f"Invalid {env_name}: must be an integer")

        config = cls(**config_values)
        logger.info(f"Configuration loaded: {config}")
        return config

    @staticmethod
    def _load_from_file(config_file: str) -> dict[str, Any]:
        """Load configuration from TOML file.

        Only known keys are taken; anything else in the file is ignored.

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        if tomllib is None:
            raise ConfigError(
                "TOML support not available. Install tomli for Python < 3.11"
            )

        try:
            with open(config_file, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {config_file}")
        except Exception as e:
            raise ConfigError(f"Failed to parse config file: {e}")

        known = _defaults().keys()
        return {key: value for key, value in data.items() if key in known}

    def validate(self) -> None:
        """Check that values are usable for a generation run.

        Raises:
            ConfigError: If any value is out of range
        """
        for name in ("quantity", "size", "listen_port"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"Invalid {name}: must be an integer")
        for name in ("prefix", "output", "namespace", "alphabet"):
            if not isinstance(getattr(self, name), str):
                raise ConfigError(f"Invalid {name}: must be a string")

        if self.quantity < 0:
            logger.error(f"Invalid quantity: {self.quantity}")
            raise ConfigError("Invalid quantity: must not be negative")
        if self.size <= 0:
            logger.error(f"Invalid size: {self.size}")
            raise ConfigError("Invalid size: must be positive")
        if len(self.prefix) >= self.size:
            logger.error(f"Prefix {self.prefix!r} too long for size {self.size}")
            raise ConfigError("Invalid prefix: must be shorter than size")
        if not self.output:
            raise ConfigError("Invalid output: must not be empty")
        if not self.alphabet or len(self.alphabet) > MAX_ALPHABET_SIZE:
            raise ConfigError(
                f"Invalid alphabet: must have 1 to {MAX_ALPHABET_SIZE} symbols"
            )
        if len(set(self.alphabet)) != len(self.alphabet):
            raise ConfigError("Invalid alphabet: symbols must be distinct")
        if self.max_threads is not None and (
            not isinstance(self.max_threads, int) or self.max_threads < 1
        ):
            raise ConfigError("Invalid max_threads: must be at least 1")
        if not (1 <= self.listen_port <= 65535):
            logger.error(f"Invalid listen_port: {self.listen_port}")
            raise ConfigError("Invalid listen_port: must be between 1 and 65535")

    def __repr__(self) -> str:
        """String representation of configuration."""
        return (
            f"Config(quantity={self.quantity}, size={self.size}, "
            f"prefix={self.prefix!r}, output={self.output!r}, "
            f"namespace={self.namespace!r}, alphabet={self.alphabet!r}, "
            f"max_threads={self.max_threads}, listen_port={self.listen_port})"
        )
