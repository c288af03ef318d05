"""Tests for OS-derived compile and link flags."""

import pytest

from cbuild.build.build_layout import OS_ROOT_ENV, BuildLayout
from cbuild.build.flag_builder import FlagBuilder
from cbuild.config.target_config import OSConfig, PlatformConfig


@pytest.fixture
def layout(tmp_path, monkeypatch):
    monkeypatch.setenv(OS_ROOT_ENV, str(tmp_path / "ruxos"))
    return BuildLayout(tmp_path / "project", build_root=tmp_path / "project" / "cbuild_bld")


def os_config(platform="x86_64-qemu-q35", services=(), smp="1", mode="", log="warn"):
    return OSConfig(
        name="ruxos",
        services=list(services),
        ulib="ruxlibc",
        platform=PlatformConfig(name=platform, smp=smp, mode=mode, log=log),
    )


class TestParseFlagString:
    """Test flag string splitting."""

    def test_quoted_values(self):
        assert FlagBuilder.parse_flag_string('-DFOO="bar baz" -DTEST') == ["-DFOO=bar baz", "-DTEST"]

    def test_empty(self):
        assert FlagBuilder.parse_flag_string("") == []

    def test_unbalanced_quote_falls_back_to_whitespace(self):
        assert FlagBuilder.parse_flag_string('-DFOO="bar -DX') == ['-DFOO="bar', "-DX"]


class TestOSCflags:
    """Test kernel compile flags."""

    def test_hosted_build_has_no_flags(self, layout):
        """Test a project without an OS gets no extra flags."""
        builder = FlagBuilder(OSConfig(), layout)
        assert builder.build_os_cflags() == []
        assert builder.build_os_ldflags() == []

    def test_x86_64_defaults(self, layout, tmp_path):
        """Test the freestanding flags for x86_64 without fp_simd."""
        flags = FlagBuilder(os_config(services=["alloc"]), layout).build_os_cflags()

        assert flags == [
            "-DAX_CONFIG_ALLOC",
            "-DAX_CONFIG_WARN",
            "-nostdinc",
            "-fno-builtin",
            "-ffreestanding",
            "-Wall",
            f"-I{tmp_path / 'ruxos' / 'ulib' / 'axlibc' / 'include'}",
            "-mno-sse",
        ]

    def test_fp_simd_keeps_sse(self, layout):
        flags = FlagBuilder(os_config(services=["fp_simd"]), layout).build_os_cflags()
        assert "-DAX_CONFIG_FP_SIMD" in flags
        assert "-mno-sse" not in flags

    def test_riscv64(self, layout):
        """Test riscv64 gets its ABI flags and no SSE flag."""
        flags = FlagBuilder(os_config("riscv64-qemu-virt"), layout).build_os_cflags()

        assert flags[-3:] == ["-march=rv64gc", "-mabi=lp64d", "-mcmodel=medany"]
        assert "-mno-sse" not in flags

    def test_aarch64_without_fp_simd(self, layout):
        flags = FlagBuilder(os_config("aarch64-qemu-virt"), layout).build_os_cflags()
        assert flags[-1] == "-mgeneral-regs-only"

    def test_smp_and_release(self, layout):
        """Test multi-core platforms and release mode."""
        flags = FlagBuilder(os_config(smp="4", mode="release"), layout).build_os_cflags()

        assert flags[0] == "-DAX_CONFIG_SMP"
        assert "-O3" in flags

    def test_fd_implied_by_fs(self, layout):
        """Test services that need file descriptors enable fd."""
        flags = FlagBuilder(os_config(services=["fs"]), layout).build_os_cflags()

        assert "-DAX_CONFIG_FS" in flags
        assert "-DAX_CONFIG_FD" in flags

    def test_non_library_services_are_not_forwarded(self, layout):
        flags = FlagBuilder(os_config(services=["paging", "random-hw"]), layout).build_os_cflags()

        assert "-DAX_CONFIG_PAGING" not in flags
        assert "-DAX_CONFIG_RANDOM_HW" in flags

    def test_log_level_macro(self, layout):
        flags = FlagBuilder(os_config(log="debug"), layout).build_os_cflags()
        assert "-DAX_CONFIG_DEBUG" in flags


class TestOSLdflags:
    """Test kernel link flags."""

    def test_x86_64(self, layout, tmp_path):
        flags = FlagBuilder(os_config(), layout).build_os_ldflags()

        assert flags == [
            "-nostdlib",
            "-static",
            "-no-pie",
            "--gc-sections",
            f"-T{tmp_path / 'ruxos' / 'modules' / 'axhal' / 'linker_x86_64-qemu-q35.lds'}",
            "--no-relax",
        ]

    def test_riscv64_has_no_no_relax(self, layout):
        flags = FlagBuilder(os_config("riscv64-qemu-virt"), layout).build_os_ldflags()
        assert "--no-relax" not in flags
        assert flags[-1].endswith("linker_riscv64-qemu-virt.lds")
