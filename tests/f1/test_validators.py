"""Tests for path validation helpers (F1)."""

from pathlib import Path

import pytest

from epubprune.utils.validators import (
    UnsafePathError,
    archive_stem,
    resolve_member_path,
    split_duplicate_stems,
)


class TestResolveMemberPath:
    """Tests for resolve_member_path."""

    def test_nested_member(self, tmp_path):
        """Nested members resolve below dest."""
        target = resolve_member_path(tmp_path, "OEBPS/Text/page1.html")
        assert target == (tmp_path / "OEBPS" / "Text" / "page1.html").resolve()

    def test_inner_dotdot_allowed(self, tmp_path):
        """.. that stays inside dest is fine."""
        target = resolve_member_path(tmp_path, "a/../b.html")
        assert target == (tmp_path / "b.html").resolve()

    @pytest.mark.parametrize(
        "member",
        ["../evil.txt", "a/../../evil.txt", "/etc/passwd", "..\\evil.txt", "C:/evil.txt"],
    )
    def test_escaping_members_rejected(self, tmp_path, member):
        """Absolute paths and climbs out of dest raise UnsafePathError."""
        with pytest.raises(UnsafePathError) as exc:
            resolve_member_path(tmp_path, member)
        assert exc.value.member == member


class TestArchiveStem:
    """Tests for archive_stem."""

    def test_strips_last_extension(self):
        """Only the final extension is removed."""
        assert archive_stem(Path("Volume01.epub")) == "Volume01"
        assert archive_stem(Path("dir/vol.1.epub")) == "vol.1"


class TestSplitDuplicateStems:
    """Tests for split_duplicate_stems."""

    def test_first_occurrence_wins(self):
        """Later archives with an existing stem are duplicates."""
        paths = [Path("a/Vol.epub"), Path("b/Other.epub"), Path("c/Vol.epub")]

        unique, duplicates = split_duplicate_stems(paths)

        assert unique == [0, 1]
        assert duplicates == [2]

    def test_no_duplicates(self):
        """Distinct stems are all unique."""
        paths = [Path("x.epub"), Path("y.epub")]
        assert split_duplicate_stems(paths) == ([0, 1], [])

    def test_same_path_twice(self):
        """A repeated path is reported at its own position."""
        paths = [Path("Vol.epub"), Path("Vol.epub")]
        assert split_duplicate_stems(paths) == ([0], [1])
