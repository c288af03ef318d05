"""Tests for source discovery and include resolution."""

from pathlib import Path

import pytest

from cbuild.build.build_layout import BuildLayout
from cbuild.build.source_scanner import IncludeResolver, SourceScanner
from cbuild.config.target_config import TargetConfig, TargetKind
from cbuild.errors import DiscoveryError


def make_target(src, include_dirs=(), **kwargs):
    return TargetConfig(
        name=kwargs.pop("name", "app"),
        kind=kwargs.pop("kind", TargetKind.EXE),
        src=src,
        include_dirs=list(include_dirs),
        **kwargs,
    )


class TestSourceScanner:
    """Test source file discovery."""

    @pytest.fixture
    def temp_project(self, tmp_path):
        """Create temporary project structure."""
        project = tmp_path / "test_project"
        src = project / "src"
        src.mkdir(parents=True)

        layout = BuildLayout(project, build_root=project / "cbuild_bld")

        return {
            'project': project,
            'src': src,
            'layout': layout,
        }

    def test_scan_empty_directory(self, temp_project):
        """Test scanning empty source directory."""
        scanner = SourceScanner(temp_project['layout'])
        assert scanner.scan(make_target(temp_project['src'])) == []

    def test_scan_keeps_only_compiled_extensions(self, temp_project):
        """Test only .c/.cc/.cpp/.cxx files are compiled."""
        src = temp_project['src']
        for name in ["a.c", "b.cc", "c.cpp", "d.cxx", "e.h", "f.hpp", "g.txt", "h.S"]:
            (src / name).write_text("\n")

        sources = SourceScanner(temp_project['layout']).scan(make_target(src))

        assert [s.path.name for s in sources] == ["a.c", "b.cc", "c.cpp", "d.cxx"]

    def test_scan_is_recursive_and_sorted(self, temp_project):
        """Test nested directories are walked and results sorted."""
        src = temp_project['src']
        (src / "net").mkdir()
        (src / "net" / "socket.c").write_text("\n")
        (src / "main.c").write_text("\n")

        sources = SourceScanner(temp_project['layout']).scan(make_target(src))

        assert [s.path for s in sources] == sorted([src / "main.c", src / "net" / "socket.c"])

    def test_exclude_directory(self, temp_project):
        """Test src_exclude = ["tests/"] drops everything under tests/."""
        src = temp_project['src']
        (src / "tests").mkdir()
        (src / "tests" / "test_main.c").write_text("\n")
        (src / "tests" / "helper.cpp").write_text("\n")
        (src / "main.c").write_text("\n")

        target = make_target(src, src_exclude=["tests/"])
        sources = SourceScanner(temp_project['layout']).scan(target)

        assert [s.path.name for s in sources] == ["main.c"]

    def test_exclude_file_suffix(self, temp_project):
        """Test a file is excluded when its path ends with a pattern."""
        src = temp_project['src']
        (src / "main.c").write_text("\n")
        (src / "debug_only.c").write_text("\n")

        target = make_target(src, src_exclude=["debug_only.c"])
        sources = SourceScanner(temp_project['layout']).scan(target)

        assert [s.path.name for s in sources] == ["main.c"]

    def test_src_only_allow_list(self, temp_project):
        """Test only paths matching the allow-list are kept."""
        src = temp_project['src']
        (src / "core").mkdir()
        (src / "core" / "core.c").write_text("\n")
        (src / "extra.c").write_text("\n")

        target = make_target(src, src_only=["core/"])
        sources = SourceScanner(temp_project['layout']).scan(target)

        assert [s.path.name for s in sources] == ["core.c"]

    def test_build_root_is_never_walked(self, temp_project):
        """Test sources under the build root are ignored when src is the project."""
        project = temp_project['project']
        (project / "main.c").write_text("\n")
        generated = project / "cbuild_bld" / "gen"
        generated.mkdir(parents=True)
        (generated / "generated.c").write_text("\n")

        sources = SourceScanner(temp_project['layout']).scan(make_target(project))

        assert [s.path.name for s in sources] == ["main.c"]

    def test_empty_src_means_no_sources(self, temp_project):
        """Test a target without a source root has no sources."""
        assert SourceScanner(temp_project['layout']).scan(make_target(None)) == []

    def test_missing_src_directory(self, temp_project):
        """Test a source root that does not exist is a discovery error."""
        target = make_target(temp_project['project'] / "nope")
        with pytest.raises(DiscoveryError, match="nope"):
            SourceScanner(temp_project['layout']).scan(target)

    def test_object_path(self, temp_project):
        """Test objects live in a per-target directory named by the stem up to its first dot."""
        src = temp_project['src']
        (src / "foo.test.c").write_text("\n")

        sources = SourceScanner(temp_project['layout']).scan(make_target(src, name="libfoo"))

        assert sources[0].object_path == temp_project['layout'].obj_dir / "libfoo" / "foo.o"

    def test_object_paths_distinct_across_targets(self, temp_project):
        """Test libfoo/bar.c and libfoob/ar.c do not share an object file."""
        layout = temp_project['layout']

        first = layout.object_path("libfoo", Path("bar.c"))
        second = layout.object_path("libfoob", Path("ar.c"))

        assert first != second
        assert first == layout.obj_dir / "libfoo" / "bar.o"
        assert second == layout.obj_dir / "libfoob" / "ar.o"

    def test_duplicate_object_names(self, temp_project):
        """Test two sources compiling to the same object are rejected."""
        src = temp_project['src']
        (src / "sub").mkdir()
        (src / "util.c").write_text("\n")
        (src / "sub" / "util.cpp").write_text("\n")

        with pytest.raises(DiscoveryError, match="Duplicate source files"):
            SourceScanner(temp_project['layout']).scan(make_target(src))

    def test_unreadable_source_is_fatal(self, temp_project, monkeypatch):
        """Test a primary source that cannot be read aborts discovery."""
        src = temp_project['src']
        (src / "main.c").write_text("\n")

        def fail(path):
            raise PermissionError(f"Permission denied: {path}")

        monkeypatch.setattr(IncludeResolver, "read_include_names", staticmethod(fail))

        with pytest.raises(DiscoveryError, match="main.c"):
            SourceScanner(temp_project['layout']).scan(make_target(src))

    def test_sources_carry_includes(self, temp_project):
        """Test each source gets its own transitive include set."""
        src = temp_project['src']
        inc = temp_project['project'] / "include"
        inc.mkdir()
        (inc / "api.h").write_text('#include "types.h"\n')
        (inc / "types.h").write_text("typedef int t;\n")
        (src / "a.c").write_text('#include "api.h"\n')
        (src / "b.c").write_text("#include <stdio.h>\n")

        sources = SourceScanner(temp_project['layout']).scan(make_target(src, [inc]))
        by_name = {s.path.name: s for s in sources}

        assert by_name["a.c"].includes == frozenset({inc / "api.h", inc / "types.h"})
        assert by_name["b.c"].includes == frozenset()


class TestIncludeResolver:
    """Test quoted-include resolution."""

    def test_read_include_names(self, tmp_path):
        """Test only quoted includes are returned, in order."""
        path = tmp_path / "main.c"
        path.write_text(
            '#include <stdio.h>\n'
            '#include "a.h"\n'
            '  #  include "sub/b.h"\n'
            '// #include "commented.h"\n'
            'int main(void) { return 0; }\n'
        )

        assert IncludeResolver.read_include_names(path) == ["a.h", "sub/b.h"]

    def test_include_dirs_searched_in_order(self, tmp_path):
        """Test the first include directory containing the header wins."""
        first = tmp_path / "first"
        second = tmp_path / "second"
        for d in (first, second):
            d.mkdir()
            (d / "config.h").write_text("\n")
        source = tmp_path / "main.c"
        source.write_text('#include "config.h"\n')

        resolver = IncludeResolver([first, second])

        assert resolver.resolve_source(source, {}) == frozenset({first / "config.h"})

    def test_include_beside_source(self, tmp_path):
        """Test headers next to the including file are found."""
        source = tmp_path / "main.c"
        source.write_text('#include "local.h"\n')
        (tmp_path / "local.h").write_text("\n")

        resolver = IncludeResolver([tmp_path / "include"])

        assert resolver.resolve_source(source, {}) == frozenset({tmp_path / "local.h"})

    def test_unresolved_include_is_skipped(self, tmp_path, caplog):
        """Test a header that cannot be found is logged and left out."""
        source = tmp_path / "main.c"
        source.write_text('#include "missing.h"\n')

        with caplog.at_level("WARNING"):
            includes = IncludeResolver([tmp_path]).resolve_source(source, {})

        assert includes == frozenset()
        assert "missing.h" in caplog.text

    def test_unreadable_header_is_dead_end(self, tmp_path, monkeypatch, caplog):
        """Test a header that cannot be read stops that branch only."""
        source = tmp_path / "main.c"
        source.write_text('#include "broken.h"\n#include "ok.h"\n')
        (tmp_path / "broken.h").write_text('#include "never.h"\n')
        (tmp_path / "ok.h").write_text("\n")

        original = IncludeResolver.read_include_names

        def read(path):
            if Path(path).name == "broken.h":
                raise OSError("I/O error")
            return original(path)

        monkeypatch.setattr(IncludeResolver, "read_include_names", staticmethod(read))

        with caplog.at_level("WARNING"):
            includes = IncludeResolver([tmp_path]).resolve_source(source, {})

        assert includes == frozenset({tmp_path / "broken.h", tmp_path / "ok.h"})
        assert "broken.h" in caplog.text

    def test_include_cycle_terminates(self, tmp_path):
        """Test headers that include each other resolve to both headers."""
        (tmp_path / "a.h").write_text('#include "b.h"\n')
        (tmp_path / "b.h").write_text('#include "a.h"\n')
        source = tmp_path / "main.c"
        source.write_text('#include "a.h"\n')

        includes = IncludeResolver([tmp_path]).resolve_source(source, {})

        assert includes == frozenset({tmp_path / "a.h", tmp_path / "b.h"})

    def test_include_cycle_entered_midway(self, tmp_path):
        """Test a second source entering a cycle in the middle still sees every header of it."""
        (tmp_path / "a.h").write_text('#include "b.h"\n')
        (tmp_path / "b.h").write_text('#include "c.h"\n')
        (tmp_path / "c.h").write_text('#include "a.h"\n')
        first = tmp_path / "first.c"
        first.write_text('#include "a.h"\n')
        second = tmp_path / "second.c"
        second.write_text('#include "c.h"\n')

        resolver = IncludeResolver([tmp_path])
        memo = {}
        cycle = frozenset({tmp_path / "a.h", tmp_path / "b.h", tmp_path / "c.h"})

        assert resolver.resolve_source(first, memo) == cycle
        assert resolver.resolve_source(second, memo) == cycle

    def test_memo_is_reused(self, tmp_path, monkeypatch):
        """Test a shared header is read once per memo."""
        (tmp_path / "common.h").write_text('#include "deep.h"\n')
        (tmp_path / "deep.h").write_text("\n")
        sources = []
        for name in ("a.c", "b.c", "c.c"):
            path = tmp_path / name
            path.write_text('#include "common.h"\n')
            sources.append(path)

        reads = []
        original = IncludeResolver.read_include_names

        def read(path):
            reads.append(Path(path).name)
            return original(path)

        monkeypatch.setattr(IncludeResolver, "read_include_names", staticmethod(read))

        resolver = IncludeResolver([tmp_path])
        memo = {}
        for source in sources:
            assert resolver.resolve_source(source, memo) == frozenset(
                {tmp_path / "common.h", tmp_path / "deep.h"}
            )

        assert reads.count("common.h") == 1
        assert reads.count("deep.h") == 1
