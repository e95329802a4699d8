"""
Configuration management for the labirint book parser.
"""

import os
import re
import json
import logging
from typing import Dict, Any, List, Optional, Tuple, Union
from dataclasses import dataclass, field, asdict
from pathlib import Path
from jsonschema import validate, ValidationError

from labirint_parser.utils.errors import ConfigurationError


@dataclass
class ParserConfig:
    """Parser configuration settings."""
    books_ids_file: str = "books_ids.json"
    parallel: int = 5
    delay: float = 1.0  # Upper bound of the random pause per request, seconds
    base_url: str = "https://www.labirint.ru/books"
    image_base_url: str = "https://static10.labirint.ru/books"
    output_file: str = "results.json"
    parse_images: bool = False
    request_timeout: float = 30.0


@dataclass
class LoggerConfig:
    """Logger configuration settings."""
    level: str = "INFO"
    format: str = "console"  # "console" or "json"
    file: Optional[str] = None


@dataclass
class RequestProfileConfig:
    """Overrides of the built-in browser request profile."""
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    cookie_domain: Optional[str] = None
    cookies: Optional[List[Tuple[str, str]]] = None


@dataclass
class SystemConfig:
    """Main system configuration."""
    parser: ParserConfig = field(default_factory=ParserConfig)
    logger: LoggerConfig = field(default_factory=LoggerConfig)
    request_profile: RequestProfileConfig = field(default_factory=RequestProfileConfig)


DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


# Configuration schema for validation
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "parser": {
            "type": "object",
            "properties": {
                "books_ids_file": {"type": "string", "minLength": 1},
                "parallel": {"type": "integer", "minimum": 1, "maximum": 100},
                "delay": {
                    "oneOf": [
                        {"type": "number", "minimum": 0, "maximum": 3600},
                        {"type": "string", "pattern": DURATION_PATTERN.pattern}
                    ]
                },
                "base_url": {"type": "string", "pattern": "^https?://"},
                "image_base_url": {"type": "string", "pattern": "^https?://"},
                "output_file": {"type": "string", "minLength": 1},
                "parse_images": {"type": "boolean"},
                "request_timeout": {"type": "number", "exclusiveMinimum": 0, "maximum": 600}
            },
            "required": ["books_ids_file", "parallel"],
            "additionalProperties": False
        },
        "logger": {
            "type": "object",
            "properties": {
                "level": {
                    "type": "string",
                    "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
                             "debug", "info", "warning", "error", "critical"]
                },
                "format": {"type": "string", "enum": ["console", "json"]},
                "file": {"type": ["string", "null"]}
            },
            "additionalProperties": False
        },
        "request_profile": {
            "type": "object",
            "properties": {
                "user_agent": {"type": "string", "minLength": 10},
                "referer": {"type": "string", "pattern": "^https?://"},
                "cookie_domain": {"type": "string", "minLength": 1},
                "cookies": {
                    "type": "array",
                    "items": {
                        "type": "array",
                        "items": {"type": "string"},
                        "minItems": 2,
                        "maxItems": 2
                    }
                }
            },
            "additionalProperties": False
        }
    },
    "required": ["parser"],
    "additionalProperties": False
}


def parse_duration(value: Union[int, float, str]) -> float:
    """
    Convert a delay setting to seconds.

    Numbers are taken as seconds; strings accept an optional unit
    suffix: "500ms", "2s", "1.5m", "1h".

    Raises:
        ConfigurationError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigurationError(f"Duration must not be negative: {value!r}")
        return float(value)

    match = DURATION_PATTERN.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * DURATION_UNITS[unit or "s"]


def load_book_ids(file_path: str) -> List[str]:
    """
    Load the list of book identifiers.

    The file must contain a JSON array of strings.

    Raises:
        ConfigurationError: If the file is unreadable or malformed
    """
    path = Path(file_path).resolve()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read book ids file {path}",
            {"file": str(path), "error": str(e)}
        )
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Book ids file {path} is not valid JSON",
            {"file": str(path), "error": str(e)}
        )

    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise ConfigurationError(
            f"Book ids file {path} must contain a JSON array of strings",
            {"file": str(path)}
        )

    return data


class ConfigManager:
    """Configuration loader with schema validation and environment overrides."""

    ENV_OVERRIDES = {
        "LABIRINT_PARALLEL": ("parser", "parallel"),
        "LABIRINT_DELAY": ("parser", "delay"),
        "LABIRINT_IDS_FILE": ("parser", "books_ids_file"),
        "LABIRINT_LOG_LEVEL": ("logger", "level"),
    }

    def __init__(self, config_path: str = "config.json", env_file: Optional[str] = ".env"):
        self.config_path = Path(config_path)
        self.env_file = Path(env_file) if env_file else None
        self._config: Optional[SystemConfig] = None

    def validate_config(self, config_data: Dict[str, Any]) -> None:
        """Validate configuration data against schema."""
        try:
            validate(instance=config_data, schema=CONFIG_SCHEMA)
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e.message}",
                {"path": "/".join(str(p) for p in e.absolute_path)}
            )

    def load_config(self) -> SystemConfig:
        """
        Load, override and validate the configuration file.

        Raises:
            ConfigurationError: If the file is missing, malformed or invalid
        """
        if not self.config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self.config_path}",
                {"file": str(self.config_path)}
            )

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to read configuration from {self.config_path}",
                {"file": str(self.config_path), "error": str(e)}
            )

        if isinstance(config_data, dict):
            self._override_with_env_vars(config_data)

        self.validate_config(config_data)
        self._config = self._dict_to_config(config_data)

        logging.getLogger(__name__).info(f"Configuration loaded and validated from {self.config_path}")
        return self._config

    def _load_env_file(self) -> None:
        """Load KEY=VALUE lines from the .env file without replacing set variables."""
        if not self.env_file or not self.env_file.exists():
            return
        with open(self.env_file, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    os.environ.setdefault(key.strip(), value.strip())

    def _override_with_env_vars(self, config_data: Dict[str, Any]) -> None:
        """Override configuration values with environment variables."""
        self._load_env_file()

        for env_name, (section, key) in self.ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is None or value == "":
                continue
            target = config_data.setdefault(section, {})
            if not isinstance(target, dict):
                continue
            if key == "parallel":
                try:
                    target[key] = int(value)
                except ValueError:
                    raise ConfigurationError(
                        f"{env_name} must be an integer",
                        {"value": value}
                    )
            else:
                target[key] = value

    def _dict_to_config(self, data: Dict[str, Any]) -> SystemConfig:
        """Convert dictionary to SystemConfig object."""
        config = SystemConfig()

        parser_data = dict(data["parser"])
        if "delay" in parser_data:
            parser_data["delay"] = parse_duration(parser_data["delay"])
        config.parser = ParserConfig(**parser_data)

        if "logger" in data:
            config.logger = LoggerConfig(**data["logger"])
        config.logger.level = config.logger.level.upper()

        if "request_profile" in data:
            profile_data = dict(data["request_profile"])
            if "cookies" in profile_data:
                profile_data["cookies"] = [tuple(pair) for pair in profile_data["cookies"]]
            config.request_profile = RequestProfileConfig(**profile_data)

        return config

    def export_config(self) -> Dict[str, Any]:
        """Export current configuration as dictionary."""
        if not self._config:
            return {}
        return asdict(self._config)
