"""Tests for the rebuild decision."""

import pytest

from cbuild.build.hash_store import HashStore
from cbuild.build.rebuild import needs_rebuild, plan_rebuild
from cbuild.build.source_scanner import SourceFile


class TestNeedsRebuild:
    """Test per-source staleness."""

    @pytest.fixture
    def built_source(self, tmp_path):
        """A source with one header, compiled and recorded."""
        header = tmp_path / "util.h"
        header.write_text("int util(void);\n")
        path = tmp_path / "util.c"
        path.write_text('#include "util.h"\n')
        obj = tmp_path / "obj" / "apputil.o"
        obj.parent.mkdir()
        obj.write_bytes(b"obj")

        hashes = HashStore()
        hashes.update(path)
        hashes.update(header)

        source = SourceFile("app", path, obj, frozenset({header}))
        return source, hashes

    def test_fresh_source(self, built_source):
        """Test nothing changed means nothing to do."""
        source, hashes = built_source
        stale, reason = needs_rebuild(source, hashes)
        assert not stale
        assert "does not need to be built" in reason

    def test_missing_object(self, built_source):
        """Test a deleted object file forces a recompile."""
        source, hashes = built_source
        source.object_path.unlink()

        stale, reason = needs_rebuild(source, hashes)
        assert stale
        assert "Object file does not exist" in reason

    def test_changed_source(self, built_source):
        """Test editing the source forces a recompile."""
        source, hashes = built_source
        source.path.write_text('#include "util.h"\nint x;\n')

        stale, reason = needs_rebuild(source, hashes)
        assert stale
        assert "Source file has changed" in reason

    def test_changed_include(self, built_source):
        """Test editing an included header forces a recompile."""
        source, hashes = built_source
        header = next(iter(source.includes))
        header.write_text("int util(int);\n")

        stale, reason = needs_rebuild(source, hashes)
        assert stale
        assert "util.h" in reason

    def test_unrecorded_source(self, built_source):
        """Test a source missing from the store is stale."""
        source, _ = built_source
        stale, _ = needs_rebuild(source, HashStore())
        assert stale

    def test_check_does_not_modify_store(self, built_source):
        """Test the decision only reads the hash store."""
        source, hashes = built_source
        before = dict(hashes.hashes)
        source.path.write_text("changed\n")

        needs_rebuild(source, hashes)

        assert hashes.hashes == before


class TestPlanRebuild:
    """Test partitioning a target's sources."""

    def test_partition(self, tmp_path):
        """Test sources are split into stale and fresh."""
        hashes = HashStore()
        sources = []
        for name in ("a", "b"):
            path = tmp_path / f"{name}.c"
            path.write_text(f"int {name};\n")
            obj = tmp_path / f"app{name}.o"
            obj.write_bytes(b"obj")
            hashes.update(path)
            sources.append(SourceFile("app", path, obj, frozenset()))

        sources[1].path.write_text("int b = 2;\n")
        plan = plan_rebuild(sources, hashes)

        assert plan.stale == [sources[1]]
        assert plan.fresh == [sources[0]]
        assert plan.total == 2
