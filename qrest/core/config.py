# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Configuration models for qrest.

Example YAML:
    server:
      host: 127.0.0.1
      port: 8000
    apis:
      - name: petstore
        spec_url: https://petstore.swagger.io/v2/swagger.json
        auth:
          type: bearer
          token: ${PETSTORE_TOKEN}
        timeout: 10s
    defaults:
      max_limit: 1000
      default_limit: 100
    logging:
      level: INFO
      format: text
"""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pythonjsonlogger import jsonlogger

CONFIG_ENV_VAR = "QREST_CONFIG"
CONFIG_FILENAME = "qrest.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}
_API_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def parse_duration(value: Any) -> float:
    """Parse seconds from a number or a string such as ``30s``, ``500ms`` or ``2m``."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION.match(str(value))
        if not match:
            raise ValueError(f"Invalid duration: {value!r}")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


class AuthConfig(BaseModel):
    """Credential applied to every outbound request of one API."""
    type: Literal["none", "bearer", "apikey", "basic"] = "none"
    token: str = ""
    header: str = "X-API-Key"  # apikey only

    @model_validator(mode="after")
    def check_token(self) -> "AuthConfig":
        if self.type != "none" and not self.token:
            raise ValueError(f"auth.token is required for auth type '{self.type}'")
        return self


class APIConfig(BaseModel):
    """One REST API exposed as SQL tables."""
    name: str
    description: str = ""
    spec_url: Optional[str] = None
    spec_path: Optional[str] = None
    spec_inline: Optional[Union[dict[str, Any], str]] = None
    base_url: Optional[str] = None  # overrides the servers/host in the document
    auth: AuthConfig = Field(default_factory=AuthConfig)
    timeout: Optional[float] = None  # falls back to defaults.timeout

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if not _API_NAME.match(v):
            raise ValueError(
                f"API name '{v}' must start with a letter or underscore and contain only letters, digits and underscores"
            )
        return v

    @field_validator("timeout", mode="before")
    @classmethod
    def parse_timeout(cls, v: Any) -> Optional[float]:
        return None if v is None else parse_duration(v)

    @model_validator(mode="after")
    def check_spec_source(self) -> "APIConfig":
        sources = [s for s in (self.spec_url, self.spec_path, self.spec_inline) if s]
        if len(sources) != 1:
            raise ValueError(
                f"API '{self.name}' needs exactly one of spec_url, spec_path or spec_inline"
            )
        return self


class DefaultsConfig(BaseModel):
    """Settings shared by every API unless overridden."""
    max_limit: int = 1000
    default_limit: int = 100
    timeout: float = 30.0
    strict_pagination: bool = False

    @field_validator("timeout", mode="before")
    @classmethod
    def parse_timeout(cls, v: Any) -> float:
        return parse_duration(v)

    @model_validator(mode="after")
    def check_limits(self) -> "DefaultsConfig":
        if self.max_limit <= 0 or self.default_limit <= 0:
            raise ValueError("max_limit and default_limit must be positive")
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"default_limit ({self.default_limit}) cannot exceed max_limit ({self.max_limit})"
            )
        return self


class JsonLogFormatter(jsonlogger.JsonFormatter):
    """JSON log lines carrying time, logger and level alongside the message."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["time"] = self.formatTime(record, self.datefmt)
        log_record["logger"] = record.name
        log_record["level"] = record.levelname


class LoggingConfig(BaseModel):
    """Logging settings for the ``qrest`` logger."""
    level: str = "INFO"
    format: Literal["text", "json"] = "text"
    file: Optional[str] = None

    @field_validator("level")
    @classmethod
    def check_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level '{v}'. Expected one of {LOG_LEVELS}")
        return level

    def apply(self, level: Optional[str] = None) -> logging.Logger:
        """Install a single handler on the ``qrest`` logger."""
        logger = logging.getLogger("qrest")
        logger.setLevel(level or self.level)

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        if self.file:
            handler: logging.Handler = logging.FileHandler(self.file)
        else:
            handler = logging.StreamHandler(sys.stderr)
        if self.format == "json":
            handler.setFormatter(JsonLogFormatter())
        else:
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        return logger


class ServerConfig(BaseModel):
    """Configuration for the HTTP front-end.

    QREST_HOST and QREST_PORT take precedence over YAML values.
    """

    host: str = Field(
        default="127.0.0.1",
        description="Host address to bind the server to",
    )
    port: int = Field(
        default=8000,
        description="Port to listen on",
    )
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins for the API",
    )

    @model_validator(mode="after")
    def apply_env_overrides(self) -> "ServerConfig":
        """Apply environment variable overrides after model creation."""
        host_env = os.environ.get("QREST_HOST")
        if host_env:
            self.host = host_env

        port_env = os.environ.get("QREST_PORT")
        if port_env:
            try:
                self.port = int(port_env)
            except ValueError:
                raise ValueError(f"QREST_PORT must be an integer, got '{port_env}'")

        return self


class Config(BaseModel):
    """Root configuration model."""
    model_config = {"extra": "ignore"}

    server: ServerConfig = Field(default_factory=ServerConfig)
    apis: list[APIConfig] = Field(default_factory=list)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def check_unique_names(self) -> "Config":
        seen = set()
        for api in self.apis:
            if api.name in seen:
                raise ValueError(f"Duplicate API name: {api.name}")
            seen.add(api.name)
        return self

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """
        Load config from YAML file with env var substitution.

        Args:
            path: Path to the config YAML file

        Returns:
            Validated Config
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            raw_content = f.read()

        # Substitute environment variables: ${VAR_NAME}
        substituted = _substitute_env_vars(raw_content)

        data = yaml.safe_load(substituted) or {}
        return cls.model_validate(data)

    @classmethod
    def load(cls, path: Optional[str | Path] = None) -> "Config":
        """Load from ``path``, or from the first file found on the search path."""
        if path is None:
            path = find_config_path()
            if path is None:
                raise FileNotFoundError(
                    f"No config file found. Set ${CONFIG_ENV_VAR}, create ./{CONFIG_FILENAME}, "
                    f"or run 'qrest init'"
                )
        return cls.from_yaml(path)

    @classmethod
    def from_cli(
        cls,
        spec: str,
        base_url: Optional[str] = None,
        auth_type: str = "none",
        auth_token: str = "",
        name: str = "api",
    ) -> "Config":
        """Build a single-API config from command-line flags.

        ``spec`` is a URL when it has an http(s) scheme, else a file path.
        """
        source = "spec_url" if spec.startswith(("http://", "https://")) else "spec_path"
        api = APIConfig.model_validate({
            "name": name,
            source: spec,
            "base_url": base_url,
            "auth": {"type": auth_type, "token": auth_token},
        })
        return cls(apis=[api])

    def get_api(self, name: str) -> Optional[APIConfig]:
        """Get API config by name."""
        for api in self.apis:
            if api.name == name:
                return api
        return None

    def timeout_for(self, api: APIConfig) -> float:
        return api.timeout if api.timeout is not None else self.defaults.timeout

    def redacted(self) -> dict[str, Any]:
        """Dump the config with credentials removed."""
        data = self.model_dump()
        for api in data["apis"]:
            api["auth"].pop("token", None)
            if isinstance(api.get("spec_inline"), (dict, str)):
                api["spec_inline"] = "<inline>"
        return data


def find_config_path() -> Optional[Path]:
    """Return the first existing config file on the search path."""
    candidates = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path))
    candidates.append(Path.cwd() / CONFIG_FILENAME)
    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(xdg_home) if xdg_home else Path.home() / ".config"
    candidates.append(config_home / "qrest" / CONFIG_FILENAME)

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _substitute_env_vars(content: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""
    pattern = re.compile(r'\$\{([^}]+)\}')

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable not set: {var_name}")
        return value

    return pattern.sub(replacer, content)
