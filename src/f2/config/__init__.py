"""Configuration management for f2.

Settings come from four layers, lowest first: model defaults, the YAML file at
``~/.f2/config.yaml``, ``F2__SECTION__FIELD`` environment variables, and CLI
flags. Commands that only read settings never create the file.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import F2Config
from .resolver import assign_dotted, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.f2/config.yaml")
ENV_PREFIX = "F2__"
_CONFIG_HEADER = (
    "# f2 configuration file\n"
    "# Update values with `f2 config set KEY --value VALUE`; "
    "F2__SECTION__FIELD environment variables take precedence.\n"
)


def parse_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Return nested overrides for every ``F2__`` variable in ``environ``.

    ``F2__CONFLICTS__FIX_CONFLICTS=true`` becomes
    ``{"conflicts": {"fix_conflicts": True}}``; values are parsed as YAML
    scalars and fall back to the raw string.

    Raises:
        ConfigError: If two variables address overlapping keys.
    """

    overrides: dict[str, Any] = {}
    for name in sorted(environ):
        dotted = name[len(ENV_PREFIX) :] if name.startswith(ENV_PREFIX) else ""
        if not dotted:
            continue
        raw = environ[name]
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        try:
            assign_dotted(overrides, dotted.lower().split("__"), value)
        except ConfigError as exc:
            raise ConfigError(f"Environment override {name} conflicts with another.") from exc
    return overrides


class ConfigManager:
    """Read and write the f2 configuration file."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = os.environ if env is None else env

    @property
    def config_path(self) -> Path:
        return self._path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> F2Config:
        """Return the effective configuration; a missing file counts as empty."""
        environ = self._env if env_overrides is None else env_overrides
        return resolve_with_precedence(
            defaults=F2Config(),
            file_overrides=self.load_file_overrides(),
            env_overrides=parse_env_overrides(environ) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the mapping stored in the configuration file.

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        text = self.read_text()
        try:
            data = yaml.safe_load(text) if text else None
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return data

    def read_text(self) -> str:
        """Return the raw file contents, or an empty string when absent."""
        if not self._path.exists():
            return ""
        return self._path.read_text(encoding="utf-8")

    def save(self, config: F2Config | Mapping[str, Any]) -> None:
        """Write ``config`` to the file behind a header and update stamp."""
        data = config.model_dump(mode="python") if isinstance(config, F2Config) else dict(config)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = yaml.safe_dump(data, sort_keys=False)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
            )
        except OSError as exc:
            raise ConfigError(f"Unable to write configuration file: {exc}") from exc

    def ensure_exists(self) -> Path:
        """Write a file holding the defaults unless one is already present."""
        if not self._path.exists():
            self.save(F2Config())
        return self._path


__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "F2Config",
    "assign_dotted",
    "parse_env_overrides",
    "resolve_with_precedence",
]
