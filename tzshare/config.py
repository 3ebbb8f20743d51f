"""
tzshare/config.py

Settings loading and logging setup.

Settings come from a JSON file, or YAML when the file ends in .yaml/.yml,
with environment variables taking precedence for the values that usually
differ per deployment.
"""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'

# Environment variable -> settings field
ENV_OVERRIDES = {
    "TZSHARE_BASE_URL": "base_url",
    "TZSHARE_SHORTENER_URL": "shortener_url",
    "TZSHARE_LOG_LEVEL": "log_level",
    "TZSHARE_LOG_FILE": "log_file",
}


@dataclass(frozen=True)
class Settings:
    """
    Application settings.

    Attributes:
        base_url: Origin the share page is served from.
        shortener_url: Link shortener "create" endpoint.
        shortener_timeout: Shortener request timeout (seconds).
        shorten_links: Whether to shorten links by default.
        tick_interval: Countdown refresh interval (seconds).
        default_color: Theme color for new events.
        log_level: Logging level name.
        log_file: Extra log file for tzshare loggers (empty for none).
    """

    base_url: str = "https://tzshare.example"
    shortener_url: str = "https://tinyurl.com/api-create.php"
    shortener_timeout: float = 10.0
    shorten_links: bool = True
    tick_interval: float = 1.0
    default_color: str = "blue"
    log_level: str = "info"
    log_file: str = ""


def load_config(path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> Settings:
    """
    Load settings from a config file and the environment.

    Args:
        path: JSON or YAML file (optional; defaults apply without one).
        env: Environment mapping (default: os.environ).

    Returns:
        Settings.

    Raises:
        ConfigError: If the file cannot be read or parsed, or a value has
            the wrong type.
    """
    conf: Dict[str, Any] = {}
    if path:
        conf = _read_file(path)

    env = os.environ if env is None else env
    for var, name in ENV_OVERRIDES.items():
        if env.get(var):
            conf[name] = env[var]

    return settings_from_dict(conf)


def settings_from_dict(conf: Dict[str, Any]) -> Settings:
    """
    Build Settings from a plain dictionary.

    Unknown keys are ignored with a warning.
    """
    if not isinstance(conf, dict):
        raise ConfigError("Config must be a mapping")

    known = {f.name: f for f in fields(Settings)}
    values = {}
    for key, value in conf.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        values[key] = _coerce(key, value, type(getattr(Settings, key)))

    return replace(Settings(), **values)


def configure_logger(logger, log_file=None, log_format=LOG_FORMAT, log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance
    """
    if isinstance(log_file, str):
        handler = logging.FileHandler(log_file, mode='a', encoding='utf-8', errors='replace')
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    handler.setFormatter(logging.Formatter(log_format))

    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


def _read_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as fp:
            if path.endswith(('.yaml', '.yml')):
                conf = yaml.safe_load(fp)
            else:
                conf = json.load(fp)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}") from e

    if conf is None:
        return {}
    if not isinstance(conf, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return conf


def _coerce(key: str, value: Any, expected: type) -> Any:
    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
    elif expected is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                pass
    elif isinstance(value, expected):
        return value
    raise ConfigError(f"Config key '{key}' must be {expected.__name__}, got {value!r}")
