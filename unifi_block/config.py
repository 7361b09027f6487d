"""
Configuration loading for unifi-block.

Sources, later ones winning: built-in defaults, a YAML config file,
UNIFI_* environment variables, then command-line options. Empty values are
treated as unset at every level.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import yaml

from .session import SessionConfig

logger = logging.getLogger(__name__)

CONFIG_ENV = 'UNIFI_BLOCK_CONFIG'

# Config file key -> environment variable
ENV_VARS = {
    'endpoint': 'UNIFI_ENDPOINT',
    'username': 'UNIFI_USERNAME',
    'password': 'UNIFI_PASSWORD',
    'site': 'UNIFI_SITE',
    'timeout': 'UNIFI_TIMEOUT',
    'verify_ssl': 'UNIFI_VERIFY_SSL',
}


class ConfigError(Exception):
    """Configuration file or value is invalid."""


@dataclass
class ConsulConfig:
    address: Optional[str] = None
    token: Optional[str] = None
    scheme: Optional[str] = None


@dataclass
class Config:
    session: SessionConfig = field(default_factory=SessionConfig)
    consul: ConsulConfig = field(default_factory=ConsulConfig)


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes', 'on'):
        return True
    if text in ('0', 'false', 'no', 'off'):
        return False
    raise ConfigError(f"invalid boolean for {key}: {value!r}")


def _parse_timeout(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid timeout: {value!r}")


def load_config_yaml(file_path: str) -> Dict[str, Any]:
    """
    Parse a config.yaml file.

    Example:
        endpoint: https://192.168.1.1
        username: admin
        password: secret
        site: default
        verify_ssl: false
        consul:
          address: 127.0.0.1:8500
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {file_path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML error in config file {file_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {file_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {file_path} must contain a mapping")
    if 'consul' in data and not isinstance(data['consul'] or {}, dict):
        raise ConfigError(f"'consul' in {file_path} must be a mapping")
    return data


def _set(values: Dict[str, Any], key: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return
    values[key] = value


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Config:
    """
    Build the effective configuration.

    Args:
        path: YAML config file; falls back to $UNIFI_BLOCK_CONFIG when None
        environ: Environment mapping (defaults to os.environ)
        overrides: Command-line values keyed like the config file

    Raises:
        ConfigError: unreadable file or invalid value
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get(CONFIG_ENV, '').strip() or None

    file_data: Dict[str, Any] = {}
    if path:
        file_data = load_config_yaml(path)
        logger.debug(f"Loaded configuration from {path}")

    values: Dict[str, Any] = {}
    for key in ENV_VARS:
        _set(values, key, file_data.get(key))
    for key, env_var in ENV_VARS.items():
        _set(values, key, environ.get(env_var))
    for key, value in (overrides or {}).items():
        _set(values, key, value)

    session = SessionConfig()
    if 'endpoint' in values:
        session = session.with_endpoint(str(values['endpoint']))
    if 'username' in values or 'password' in values:
        session = session.with_credentials(
            str(values.get('username', session.username)),
            str(values.get('password', session.password)),
        )

    extra: Dict[str, Any] = {}
    if 'site' in values:
        extra['site'] = str(values['site'])
    if 'timeout' in values:
        extra['timeout'] = _parse_timeout(values['timeout'])
    if 'verify_ssl' in values:
        extra['verify_ssl'] = _parse_bool('verify_ssl', values['verify_ssl'])
    if extra:
        session = replace(session, **extra)

    consul_data = file_data.get('consul') or {}
    consul = ConsulConfig(
        address=consul_data.get('address'),
        token=consul_data.get('token'),
        scheme=consul_data.get('scheme'),
    )
    return Config(session=session, consul=consul)
