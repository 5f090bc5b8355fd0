"""
Provider connection settings.

Sources, lowest to highest precedence:
    1. YAML file with an "nsx" section
    2. Environment variables (NSX_HOST, NSX_USERNAME, NSX_PASSWORD,
       NSX_VERIFY_SSL, NSX_AUTH_METHOD)
    3. Explicit overrides (command line flags)

Example file:
    nsx:
      host: nsx-manager.example.com
      username: admin
      verify_ssl: false
      auth_method: auto
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .client import AUTH_METHODS
from .errors import ConfigError

ENV_VARS = {
    "host": "NSX_HOST",
    "username": "NSX_USERNAME",
    "password": "NSX_PASSWORD",
    "verify_ssl": "NSX_VERIFY_SSL",
    "auth_method": "NSX_AUTH_METHOD",
}

_TRUE_VALUES = ("1", "true", "yes", "on")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


class ProviderConfig:
    """Connection settings for one NSX Manager."""

    def __init__(
        self,
        host: str,
        username: str,
        password: str = "",
        verify_ssl: bool = False,
        auth_method: str = "auto",
    ):
        self.host = host
        self.username = username
        self.password = password
        self.verify_ssl = verify_ssl
        self.auth_method = auth_method

    def __repr__(self) -> str:
        # Never print the password
        return (
            f"ProviderConfig(host={self.host!r}, username={self.username!r}, "
            f"verify_ssl={self.verify_ssl}, auth_method={self.auth_method!r})"
        )

    @classmethod
    def load(
        cls,
        path: Optional[Union[str, Path]] = None,
        environ: Optional[Dict[str, str]] = None,
        **overrides: Any,
    ) -> "ProviderConfig":
        """
        Merge file, environment and overrides into a config.

        Args:
            path:      Optional YAML config file
            environ:   Environment mapping (defaults to os.environ)
            overrides: Explicit values; None values are ignored

        Raises:
            ConfigError: Unreadable file, or host/username missing, or
                         unknown auth method
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        if path:
            values.update(_load_file(Path(path)))

        for key, env_var in ENV_VARS.items():
            if environ.get(env_var):
                values[key] = environ[env_var]

        values.update({key: value for key, value in overrides.items() if value is not None})

        unknown = set(values) - set(ENV_VARS)
        if unknown:
            raise ConfigError(f"Unknown provider settings: {', '.join(sorted(unknown))}")
        if not values.get("host"):
            raise ConfigError("NSX host is required (or set NSX_HOST environment variable)")
        if not values.get("username"):
            raise ConfigError("NSX username is required (or set NSX_USERNAME environment variable)")

        auth_method = values.get("auth_method", "auto")
        if auth_method not in AUTH_METHODS:
            raise ConfigError(
                f"Unknown auth method '{auth_method}' (expected one of {', '.join(AUTH_METHODS)})"
            )

        return cls(
            host=values["host"],
            username=values["username"],
            password=values.get("password") or "",
            verify_ssl=_as_bool(values.get("verify_ssl", False)),
            auth_method=auth_method,
        )


def _load_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    section = data.get("nsx", {}) if isinstance(data, dict) else None
    if not isinstance(section, dict):
        raise ConfigError(f"Config file {path} must contain an 'nsx' mapping")
    return section
