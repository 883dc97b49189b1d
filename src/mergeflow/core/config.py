"""Application state and configuration."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from mergeflow.core.base import BaseConfig, BaseState
from mergeflow.core.log import Logger
from mergeflow.core.yaml_settings import (
    CONFIG_FILENAME,
    YamlWithIncludesSettingsSource,
)

# Modules reachable from {...} templates in YAML values, e.g.
# {platformdirs.user_state_dir}, {os.getcwd} or {Path.home}.
# platformdirs functions get the app name; other callables take no
# arguments.
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}


class GitConfig(BaseConfig):
    """Repository the session works on and how git is invoked."""

    workdir: Path = Field(
        default_factory=Path.cwd,
        description="Git working tree root (default: current directory)",
    )
    commands: dict[str, str] = Field(
        default_factory=dict,
        description=(
            "Git command templates keyed by action (list_unmerged, "
            "add_file, show_stage, checkout_side, git_dir, continue, "
            "abort). Missing keys use built-in defaults."
        ),
    )
    timeout: int = Field(
        default=60,
        description="Timeout for a single git command in seconds",
    )


class ConflictConfig(BaseConfig):
    """Marker parsing and resolution behavior."""

    marker_size: int = Field(
        default=7,
        ge=1,
        description=(
            "Length of conflict marker runs (git's conflict-marker-size)"
        ),
    )
    verify_before_write: bool = Field(
        default=True,
        description=(
            "Re-read a file before writing a resolution and refuse if "
            "it changed since it was indexed"
        ),
    )


class Config(BaseConfig):
    """Configuration loaded from YAML, environment and CLI."""

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance"
    )
    git: GitConfig = Field(
        default_factory=GitConfig,
        description="Git repository settings"
    )
    conflict: ConflictConfig = Field(
        default_factory=ConflictConfig,
        description="Conflict parsing and resolution settings"
    )
    log_level: str = Field(
        default="info",
        alias="log-level",
        description=(
            "Console log level: 'spew', 'trace', 'debug', 'info', "
            "'warn', 'error', 'fatal'"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "mergeflow"
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode='after')
    def _setup_logger(self) -> Config:
        """Initialize the global logger once configuration is loaded."""
        from mergeflow.core.log import setup_logger
        from mergeflow.core.yaml_settings import _cleanup_bootstrap_logger

        if self.logger is None:
            self.logger = Logger()
        self.logger.console.level = self.log_level

        setup_logger(
            log_root=self.log_root,
            session_name=self.git.workdir.resolve().name or "session",
            console=self.logger.console,
            otlp=self.logger.otlp,
            file=self.logger.file,
            logfire=self.logger.logfire,
            level=self.logger.level,
        )
        _cleanup_bootstrap_logger()
        return self

    def close(self):
        """Close the global logger, then the remaining children."""
        from mergeflow.core.log import logger
        logger.close()
        super().close()


class SessionState(BaseState):
    """Conflict session opened by the running command."""

    session: Any = Field(
        default=None,
        description="Active ConflictSession, once opened",
    )
    status: str = Field(
        default="pending",
        description="Command status: pending, running, complete, failed",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Runtime(BaseModel):
    """Runtime state grouped by concern."""

    session: SessionState = Field(
        default_factory=SessionState,
        description="Conflict session state"
    )


class State(BaseSettings):
    """Configuration plus runtime state, passed to every command.

    Loads from YAML files (with includes), .env, environment
    variables (MERGEFLOW_CONFIG__GIT__WORKDIR=...) and the command
    line (--config.git.workdir ...).
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)"
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state (mutates while a command runs)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file=CONFIG_FILENAME,
        env_file=".env",
        env_prefix="MERGEFLOW_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore'
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Source priority, highest first: init arguments, YAML
        files, .env, environment, file secrets."""
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> State:
        """Replace {config.*} and {platformdirs.*} style templates in
        every string and Path value."""
        self._substitute_recursive(self)
        return self

    def _substitute_recursive(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for field_name in obj.__class__.model_fields:
                value = getattr(obj, field_name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i in range(len(obj)):
                obj[i] = self._substitute_value(obj[i])

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        if isinstance(value, Path):
            return Path(self._substitute_string(str(value)))
        if isinstance(value, (BaseModel, dict, list)):
            self._substitute_recursive(value)
        return value

    def _substitute_string(self, value: str) -> str:
        """Resolve {dotted.path} references.

        Examples:
            "{config.git.workdir}/logs" -> "/home/user/repo/logs"
            "{platformdirs.user_state_dir}" -> "~/.local/state/mergeflow"
            "{os.getcwd}/out" -> "/home/user/repo/out"

        Unknown references are left untouched, so git command
        templates such as "{filepath}" survive.
        """
        def replace_template(match):
            parts = match.group(1).split(".")
            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                parts = parts[1:]
            else:
                obj = self

            root = obj
            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    if root is self:
                        return match.group(0)
                    if root is platformdirs:
                        obj = obj('mergeflow', appauthor=False)
                    else:
                        obj = obj()
                return str(obj)
            except (AttributeError, TypeError):
                return match.group(0)

        return re.sub(
            r'\{([A-Za-z_][A-Za-z0-9._]*)\}', replace_template, value
        )


__all__ = ["State", "Config", "BaseConfig", "BaseState"]
