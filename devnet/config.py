"""Configuration for the devnet checkout and container tooling."""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from devnet.errors import DevnetError
from devnet.runner.poller import DEFAULT_MAX_DURATION, DEFAULT_POLL_INTERVAL

__all__ = [
    "DEFAULT_BRANCH",
    "DEFAULT_COMPOSE_FILE",
    "DEFAULT_REPO_URL",
    "ConfigError",
    "DevnetConfig",
    "config_path",
    "default_checkout_path",
    "load_config",
    "save_config",
]

DEFAULT_REPO_URL = "https://github.com/zippiehq/cartesi-coprocessor"
DEFAULT_BRANCH = "main"
DEFAULT_COMPOSE_FILE = "docker-compose-devnet.yaml"
_CHECKOUT_DIRNAME = ".cartesi-coprocessor-repo"
_CONFIG_FILENAME = "config.toml"
_ENV_HOME = "DEVNET_HOME"
_ENV_REPO_URL = "DEVNET_REPO_URL"
_ENV_BRANCH = "DEVNET_BRANCH"
_ENV_CHECKOUT = "DEVNET_CHECKOUT"
_ENV_COMPOSE = "DEVNET_COMPOSE_FILE"


class ConfigError(DevnetError):
    """Raised when persisted configuration cannot be interpreted."""


def default_checkout_path() -> Path:
    return Path.home() / _CHECKOUT_DIRNAME


@dataclass(slots=True)
class DevnetConfig:
    """Settings shared by the synchronizer, the controller, and the CLI."""

    repo_url: str = DEFAULT_REPO_URL
    branch: str = DEFAULT_BRANCH
    checkout_path: Path | None = None
    compose_file: str = DEFAULT_COMPOSE_FILE
    git_executable: str = "git"
    docker_executable: str = "docker"
    poll_interval: float = DEFAULT_POLL_INTERVAL
    submodule_timeout: float = DEFAULT_MAX_DURATION
    kill_on_timeout: bool = True

    @property
    def checkout(self) -> Path:
        return (self.checkout_path or default_checkout_path()).expanduser().absolute()

    def merged(
        self,
        *,
        repo_url: str | None = None,
        branch: str | None = None,
        checkout_path: Path | None = None,
        compose_file: str | None = None,
    ) -> DevnetConfig:
        """Return a copy that applies CLI/env overrides."""

        return replace(
            self,
            repo_url=repo_url or self.repo_url,
            branch=branch or self.branch,
            checkout_path=Path(checkout_path) if checkout_path else self.checkout_path,
            compose_file=compose_file or self.compose_file,
        )


def _config_dir(create: bool = False) -> Path:
    custom = os.environ.get(_ENV_HOME)
    base = Path(custom) if custom else Path.home() / ".devnet"
    if create:
        base.mkdir(parents=True, exist_ok=True)
    return base


def config_path() -> Path:
    """Return the path to the persisted configuration file."""

    return _config_dir(create=False) / _CONFIG_FILENAME


def _float(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be a number (received {value!r})") from None


def _bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false (received {value!r})")
    return value


def _validate(config: DevnetConfig) -> DevnetConfig:
    if config.poll_interval <= 0:
        raise ConfigError(f"'poll_interval' must be positive (received {config.poll_interval})")
    if config.submodule_timeout < 0:
        raise ConfigError(
            f"'submodule_timeout' must not be negative (received {config.submodule_timeout})"
        )
    return config


def load_config(*, apply_env: bool = True) -> DevnetConfig:
    """Load configuration from disk + environment overrides.

    With ``apply_env=False`` only the persisted file is read, which is what
    ``configure`` rewrites.
    """

    data: dict[str, Any] = {}
    path = config_path()
    if path.exists():
        try:
            data = tomllib.loads(path.read_text())
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc

    checkout = data.get("checkout_path")
    config = DevnetConfig(
        repo_url=str(data.get("repo_url", DEFAULT_REPO_URL)),
        branch=str(data.get("branch", DEFAULT_BRANCH)),
        checkout_path=Path(checkout).expanduser() if checkout else None,
        compose_file=str(data.get("compose_file", DEFAULT_COMPOSE_FILE)),
        git_executable=str(data.get("git_executable", "git")),
        docker_executable=str(data.get("docker_executable", "docker")),
        poll_interval=_float(data, "poll_interval", DEFAULT_POLL_INTERVAL),
        submodule_timeout=_float(data, "submodule_timeout", DEFAULT_MAX_DURATION),
        kill_on_timeout=_bool(data, "kill_on_timeout", True),
    )
    _validate(config)
    if not apply_env:
        return config

    env_checkout = os.environ.get(_ENV_CHECKOUT)
    return config.merged(
        repo_url=os.environ.get(_ENV_REPO_URL),
        branch=os.environ.get(_ENV_BRANCH),
        checkout_path=Path(env_checkout).expanduser() if env_checkout else None,
        compose_file=os.environ.get(_ENV_COMPOSE),
    )


def save_config(config: DevnetConfig) -> Path:
    """Persist configuration to ~/.devnet/config.toml."""

    _validate(config)
    base = _config_dir(create=True)
    path = base / _CONFIG_FILENAME
    lines = [
        f"repo_url = {json.dumps(config.repo_url)}",
        f"branch = {json.dumps(config.branch)}",
        f"compose_file = {json.dumps(config.compose_file)}",
        f"git_executable = {json.dumps(config.git_executable)}",
        f"docker_executable = {json.dumps(config.docker_executable)}",
        f"poll_interval = {config.poll_interval}",
        f"submodule_timeout = {config.submodule_timeout}",
        f"kill_on_timeout = {'true' if config.kill_on_timeout else 'false'}",
    ]
    if config.checkout_path is not None:
        lines.append(f"checkout_path = {json.dumps(str(config.checkout_path))}")
    lines.append("")
    path.write_text("\n".join(lines), encoding="utf-8")
    return path
