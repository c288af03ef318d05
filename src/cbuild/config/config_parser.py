"""
TOML configuration parser.

Parses config_linux.toml files into a ProjectConfig.

Example config_linux.toml:
    [build]
    compiler = "gcc"
    packages = ["owner/repo, branch"]

    [os]
    name = "ruxos"
    services = ["alloc", "fs"]
    ulib = "ruxlibc"

    [os.platform]
    name = "x86_64-qemu-q35"
    mode = "release"

    [[targets]]
    name = "libfoo"
    src = "./foo"
    include_dir = "./foo/include"
    type = "static"
    cflags = "-g"
    deps = []
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import ConfigurationError
from .target_config import (
    BuildConfig,
    OSConfig,
    PlatformConfig,
    ProjectConfig,
    TargetConfig,
    TargetKind,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "config_linux.toml"


class ConfigParser:
    """
    Parser for cbuild TOML configuration files.

    Usage:
        config = ConfigParser(Path("config_linux.toml")).parse()
        for target in config.targets:
            print(target.name)
    """

    def __init__(self, config_path: Path):
        """
        Initialize the parser with a config file.

        Args:
            config_path: Path to the TOML file

        Raises:
            ConfigurationError: If the file doesn't exist or isn't valid TOML
        """
        self.config_path = Path(config_path)

        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "rb") as f:
                self.data: Dict[str, Any] = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Failed to parse {self.config_path}: {e}") from e

    @property
    def base_dir(self) -> Path:
        return self.config_path.parent

    def parse(self) -> ProjectConfig:
        """Parse the whole file and run the structural checks.

        Returns:
            ProjectConfig with all sections populated

        Raises:
            ConfigurationError: On malformed sections, duplicate names, invalid kinds
        """
        config = ProjectConfig(
            project_dir=self.base_dir,
            build=self.parse_build(),
            os=self.parse_os(),
            targets=self.parse_targets(),
        )
        config.validate_structure()
        logger.debug(f"Parsed {self.config_path}: {len(config.targets)} targets")
        return config

    def parse_build(self) -> BuildConfig:
        table = self._table(self.data, "build")
        return BuildConfig(
            compiler=self._string(table, "compiler", "gcc"),
            packages=self._string_list(table, "packages"),
        )

    def parse_os(self) -> OSConfig:
        table = self._table(self.data, "os")
        if not table:
            return OSConfig()

        platform_table = self._table(table, "platform")
        platform = PlatformConfig(
            name=self._string(platform_table, "name", "x86_64-qemu-q35"),
            smp=str(platform_table.get("smp", "1")),
            mode=self._string(platform_table, "mode", ""),
            log=self._string(platform_table, "log", "warn"),
        )
        return OSConfig(
            name=self._string(table, "name", ""),
            services=self._string_list(table, "services"),
            ulib=self._string(table, "ulib", ""),
            platform=platform,
        )

    def parse_targets(self) -> List[TargetConfig]:
        raw_targets = self.data.get("targets", [])
        if not isinstance(raw_targets, list):
            raise ConfigurationError("'targets' must be an array of tables ([[targets]])")

        targets = []
        for raw in raw_targets:
            if not isinstance(raw, dict):
                raise ConfigurationError("Each [[targets]] entry must be a table")
            targets.append(self._parse_target(raw))
        return targets

    def _parse_target(self, table: Dict[str, Any]) -> TargetConfig:
        name = self._string(table, "name", "")
        kind = TargetKind.parse(self._string(table, "type", ""), name)

        # include_dir accepts both a string and a list of strings
        raw_include: Union[str, List[str]] = table.get("include_dir", "./")
        if isinstance(raw_include, str):
            include_dirs = [raw_include]
        elif isinstance(raw_include, list) and all(isinstance(i, str) for i in raw_include):
            include_dirs = raw_include
        else:
            raise ConfigurationError(f"Target '{name}': invalid include_dir field")

        return TargetConfig(
            name=name,
            kind=kind,
            src=self._resolve(self._string(table, "src", "./")),
            include_dirs=[self._resolve(d) for d in include_dirs if d],
            src_only=self._string_list(table, "src_only"),
            src_exclude=self._string_list(table, "src_exclude"),
            cflags=self._string(table, "cflags", ""),
            ldflags=self._string(table, "ldflags", ""),
            archive=self._string(table, "archive", ""),
            linker=self._string(table, "linker", ""),
            deps=self._string_list(table, "deps"),
        )

    def _resolve(self, value: str) -> Optional[Path]:
        """Path relative to the config file; an empty string means "none"."""
        return self.base_dir / value if value else None

    @staticmethod
    def _table(data: Dict[str, Any], key: str) -> Dict[str, Any]:
        value = data.get(key, {})
        if not isinstance(value, dict):
            raise ConfigurationError(f"[{key}] must be a table")
        return value

    @staticmethod
    def _string(data: Dict[str, Any], key: str, default: str) -> str:
        value = data.get(key, default)
        if not isinstance(value, str):
            raise ConfigurationError(f"'{key}' must be a string (got {type(value).__name__})")
        return value

    @staticmethod
    def _string_list(data: Dict[str, Any], key: str) -> List[str]:
        value = data.get(key, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigurationError(f"'{key}' must be a list of strings")
        return list(value)


def load_project(config_path: Path) -> ProjectConfig:
    """Convenience wrapper: parse a config file into a ProjectConfig."""
    return ConfigParser(config_path).parse()
