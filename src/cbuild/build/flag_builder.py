"""Compilation Flag Builder.

This module turns configuration into compiler and linker flag lists.

Design:
    - Parses flag strings from the config with proper handling of quoted values
    - Builds freestanding/kernel flags from the [os] section
    - Adds architecture-specific flags (riscv64 ABI, no SSE / no FP registers)
    - Hosted builds (no [os] section) get no extra flags
"""

import shlex
from typing import List

from ..config.target_config import OSConfig
from .build_layout import BuildLayout


class FlagBuilder:
    """Builds the OS-derived flags shared by every target of a project.

    This class handles:
    - Parsing flag strings with quoted values
    - Feature macros (-DAX_CONFIG_<FEATURE>) and the log level macro
    - Freestanding compile flags and the C library include directory
    - Kernel link flags (linker script, --gc-sections, ...)
    """

    def __init__(self, os_config: OSConfig, layout: BuildLayout):
        """Initialize flag builder.

        Args:
            os_config: The project's [os] section
            layout: Build layout (OS root, linker script location)
        """
        self.os_config = os_config
        self.layout = layout

    @staticmethod
    def parse_flag_string(flag_string: str) -> List[str]:
        """Parse a flag string that may contain quoted values.

        Args:
            flag_string: String containing compiler flags

        Returns:
            List of individual flags

        Example:
            >>> FlagBuilder.parse_flag_string('-DFOO="bar baz" -DTEST')
            ['-DFOO=bar baz', '-DTEST']
        """
        try:
            return shlex.split(flag_string)
        except ValueError:
            return flag_string.split()

    @staticmethod
    def feature_macro(feature: str) -> str:
        return "-DAX_CONFIG_" + feature.upper().replace("-", "_")

    def build_os_cflags(self) -> List[str]:
        """Compile flags for kernel targets; empty for hosted builds."""
        if not self.os_config.enabled:
            return []

        platform = self.os_config.platform
        flags = [self.feature_macro(feat) for feat in self.os_config.lib_features()]
        flags.append(self.feature_macro(platform.log))

        if platform.mode == "release":
            flags.append("-O3")

        flags.extend(["-nostdinc", "-fno-builtin", "-ffreestanding", "-Wall"])
        flags.append(f"-I{self.layout.ulib_include_dir(self.os_config)}")

        if platform.arch == "riscv64":
            flags.extend(["-march=rv64gc", "-mabi=lp64d", "-mcmodel=medany"])

        if "fp_simd" not in self.os_config.features:
            if platform.arch == "x86_64":
                flags.append("-mno-sse")
            elif platform.arch == "aarch64":
                flags.append("-mgeneral-regs-only")

        return flags

    def build_os_ldflags(self) -> List[str]:
        """Link flags for kernel executables; empty for hosted builds."""
        if not self.os_config.enabled:
            return []

        flags = ["-nostdlib", "-static", "-no-pie", "--gc-sections"]
        flags.append(f"-T{self.layout.linker_script(self.os_config)}")
        if self.os_config.platform.arch == "x86_64":
            flags.append("--no-relax")
        return flags
