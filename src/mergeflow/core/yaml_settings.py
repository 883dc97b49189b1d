"""YAML configuration loading with include directive support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

CONFIG_FILENAME = "mergeflow.yaml"

# Logger used while settings load, before Config sets up the real one
_bootstrap_logger = None


def _get_bootstrap_logger():
    global _bootstrap_logger
    if _bootstrap_logger is None:
        from mergeflow.core.log import Logger
        _bootstrap_logger = Logger()
        _bootstrap_logger.setup(log_root=Path.home(), session_name="bootstrap")
    return _bootstrap_logger


def _cleanup_bootstrap_logger():
    """Called once Config has initialized the global logger."""
    global _bootstrap_logger
    if _bootstrap_logger:
        _bootstrap_logger.close()
        _bootstrap_logger = None


def config_files(includes=None) -> list[Path]:
    """Candidate configuration files, lowest priority first.

    1. Package defaults (mergeflow/defaults/default.yaml)
    2. User config in the platform config directory
    3. ./mergeflow.yaml in the current directory
    4. The source's own yaml_file and files named by --include

    A file named more than once loads once, at its first position.
    """
    files = [
        Path(__file__).parent.parent / "defaults" / "default.yaml",
        Path(user_config_dir("mergeflow", appauthor=False)) / CONFIG_FILENAME,
        Path(CONFIG_FILENAME),
    ]
    if includes:
        if isinstance(includes, (str, os.PathLike)):
            includes = [includes]
        files.extend(Path(f).expanduser() for f in includes)

    unique = {}
    for path in files:
        unique.setdefault(path.resolve(), path)
    return list(unique.values())


def deep_merge(base: dict, override: dict) -> dict:
    """Merge override into a copy of base; nested dicts merge, other
    values from override win."""
    result = base.copy()
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _cli_includes(argv: list[str]) -> list[str]:
    includes = []
    args = iter(argv[1:])
    for arg in args:
        if arg == "--include":
            value = next(args, None)
            if value is not None:
                includes.append(value)
        elif arg.startswith("--include="):
            includes.append(arg.split("=", 1)[1])
    return includes


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML settings source that layers every config file found.

    Package defaults, user config, project config and --include
    files are deep merged in that order. Any file may itself name
    further files under an ``include:`` key; those load first and
    the including file overrides them.
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        # --include is needed before pydantic parses the command line
        base = yaml_file or settings_cls.model_config.get("yaml_file")
        if isinstance(base, (str, os.PathLike)):
            base = [base]
        files = list(base or []) + _cli_includes(sys.argv)
        super().__init__(settings_cls, files or None)

    def _read_files(self, files):
        result = {}
        for file_path in config_files(files):
            if file_path.is_file():
                with _get_bootstrap_logger().span(
                    "Configuration loading", file=str(file_path)
                ):
                    data = self._load_file_recursive(file_path, set())
                    result = deep_merge(result, data)
            else:
                _get_bootstrap_logger().debug(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )
        return result

    def _load_file_recursive(self, filepath: Path, visited: set[Path]) -> dict:
        """Load filepath and everything it includes.

        Raises:
            ValueError: If an include chain loops back on itself
        """
        filepath = filepath.resolve()
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        includes = data.pop("include", None) or []
        if isinstance(includes, str):
            includes = [includes]

        merged = {}
        for inc in includes:
            inc_path = Path(inc).expanduser()
            if not inc_path.is_absolute():
                inc_path = filepath.parent / inc_path
            with _get_bootstrap_logger().span(
                f"Including {inc_path.name}",
                included_from=str(filepath),
                include_file=str(inc_path),
            ):
                merged = deep_merge(
                    merged, self._load_file_recursive(inc_path, visited.copy())
                )
        return deep_merge(merged, data)
